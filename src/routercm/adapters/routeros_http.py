"""
HTTP client for the RouterOS REST API (v7+).

Turns logical resource operations into REST calls against one node:
list = GET, create = PUT, update = PATCH, delete = DELETE, commands = POST.
"""
import asyncio
import json
from dataclasses import replace
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from .base import BaseDeviceClient
from ..cluster.node import Node
from ..utils.exceptions import (
    DeviceError,
    DeviceRequestError,
    DeviceTimeoutError,
    MalformedResponseError,
    NodeUnreachableError
)


WIREGUARD_PATH = "/interface/wireguard"
WIREGUARD_PEERS_PATH = "/interface/wireguard/peers"
GRE_PATH = "/interface/gre"
ADDRESS_PATH = "/ip/address"
DNS_STATIC_PATH = "/ip/dns/static"
DNS_PATH = "/ip/dns"
DNS_CACHE_PATH = "/ip/dns/cache"
USER_PATH = "/user"
USER_GROUP_PATH = "/user/group"
USER_ACTIVE_PATH = "/user/active"
SYSTEM_RESOURCE_PATH = "/system/resource"
SYSTEM_IDENTITY_PATH = "/system/identity"


class RouterOSClient(BaseDeviceClient):
    """
    Device client for RouterOS REST endpoints.

    A new ``aiohttp.ClientSession`` is opened per call so concurrent units
    never share connection state.
    """

    def __init__(
        self,
        request_timeout: float = 10.0,
        group_timeout: float = 30.0,
        verify_tls: bool = False
    ):
        super().__init__("routeros")
        self.request_timeout = request_timeout
        self.group_timeout = group_timeout
        self.verify_tls = verify_tls

    @classmethod
    def from_config(cls, device_config) -> "RouterOSClient":
        return cls(
            request_timeout=device_config.request_timeout_seconds,
            group_timeout=device_config.group_timeout_seconds,
            verify_tls=device_config.verify_tls
        )

    async def request(
        self,
        node: Node,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Any:
        url = f"{node.base_url}/rest{path}"
        timeout_seconds = timeout or self.request_timeout
        timeout_obj = aiohttp.ClientTimeout(total=timeout_seconds)
        auth = aiohttp.BasicAuth(node.username, node.password)

        self.logger.debug(f"{method} {path} on {node.name}")

        try:
            async with aiohttp.ClientSession(timeout=timeout_obj, auth=auth) as session:
                async with session.request(
                    method,
                    url,
                    json=payload,
                    params=params,
                    ssl=None if self.verify_tls else False
                ) as response:
                    body = await response.text()
                    if response.status >= 400:
                        raise self._error_from_response(node, response.status, body)
                    return self._decode(node, body)

        except asyncio.TimeoutError:
            raise DeviceTimeoutError(node.name, timeout_seconds)
        except aiohttp.ClientConnectionError as e:
            raise NodeUnreachableError(node.name, f"Cannot connect to {node.base_url}: {e}")
        except aiohttp.ClientError as e:
            raise NodeUnreachableError(node.name, str(e))

    def _decode(self, node: Node, body: str) -> Any:
        if not body or not body.strip():
            return {}
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            raise MalformedResponseError(
                node.name,
                f"Invalid JSON from {node.name}: {body[:100]}"
            )

    def _error_from_response(self, node: Node, status: int, body: str) -> DeviceRequestError:
        message = ""
        detail = None
        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError:
            data = {}
            message = body[:200]

        if isinstance(data, dict):
            message = data.get("message") or message
            detail = data.get("detail")

        return DeviceRequestError(node.name, status, message, detail)

    # Generic resource verbs

    async def list(self, node: Node, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self.request(node, "GET", path, params=params)
        if isinstance(data, dict):
            # Singleton menus answer with an object
            return [data] if data else []
        return data

    async def create(self, node: Node, path: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request(node, "PUT", path, payload=attrs)

    async def update(self, node: Node, path: str, item_id: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request(node, "PATCH", f"{path}/{quote_id(item_id)}", payload=attrs)

    async def delete(self, node: Node, path: str, item_id: str) -> Dict[str, Any]:
        return await self.request(node, "DELETE", f"{path}/{quote_id(item_id)}")

    async def command(self, node: Node, path: str, attrs: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(node, "POST", path, payload=attrs or {})

    # System

    async def get_system_resources(self, node: Node) -> Dict[str, Any]:
        return await self.request(node, "GET", SYSTEM_RESOURCE_PATH)

    async def get_system_identity(self, node: Node) -> Dict[str, Any]:
        return await self.request(node, "GET", SYSTEM_IDENTITY_PATH)

    async def test_connection(self, node: Node) -> Dict[str, Any]:
        resource = await self.get_system_resources(node)
        identity = await self.get_system_identity(node)
        return {
            "identity": identity.get("name"),
            "version": resource.get("version"),
            "uptime": resource.get("uptime"),
            "cpu_load": resource.get("cpu-load")
        }

    # WireGuard

    async def list_wireguard_interfaces(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, WIREGUARD_PATH)

    async def create_wireguard_interface(self, node: Node, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(node, WIREGUARD_PATH, attrs)

    async def update_wireguard_interface(self, node: Node, interface_id: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.update(node, WIREGUARD_PATH, interface_id, attrs)

    async def delete_wireguard_interface(self, node: Node, interface_id: str) -> Dict[str, Any]:
        return await self.delete(node, WIREGUARD_PATH, interface_id)

    async def list_wireguard_peers(self, node: Node, interface_name: str) -> List[Dict[str, Any]]:
        return await self.list(node, WIREGUARD_PEERS_PATH, params={"interface": interface_name})

    async def create_wireguard_peer(self, node: Node, interface_name: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(node, WIREGUARD_PEERS_PATH, {**attrs, "interface": interface_name})

    async def update_wireguard_peer(self, node: Node, peer_id: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.update(node, WIREGUARD_PEERS_PATH, peer_id, attrs)

    async def delete_wireguard_peer(self, node: Node, peer_id: str) -> Dict[str, Any]:
        return await self.delete(node, WIREGUARD_PEERS_PATH, peer_id)

    # GRE

    async def list_gre_interfaces(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, GRE_PATH)

    async def create_gre_interface(self, node: Node, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(node, GRE_PATH, attrs)

    async def update_gre_interface(self, node: Node, interface_id: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.update(node, GRE_PATH, interface_id, attrs)

    async def delete_gre_interface(self, node: Node, interface_id: str) -> Dict[str, Any]:
        return await self.delete(node, GRE_PATH, interface_id)

    # IP addresses

    async def list_addresses(self, node: Node, interface: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"interface": interface} if interface else None
        return await self.list(node, ADDRESS_PATH, params=params)

    async def create_address(self, node: Node, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(node, ADDRESS_PATH, attrs)

    async def ensure_address(self, node: Node, attrs: Dict[str, Any]) -> Dict[str, Any]:
        """Create the address unless the interface already carries it."""
        existing = await self.list_addresses(node, attrs.get("interface"))
        for entry in existing:
            if entry.get("address") == attrs.get("address"):
                self.logger.debug(f"Address {attrs.get('address')} already present on {node.name}")
                return entry
        return await self.create_address(node, attrs)

    async def delete_address(self, node: Node, address_id: str) -> Dict[str, Any]:
        return await self.delete(node, ADDRESS_PATH, address_id)

    # DNS

    async def list_dns_records(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, DNS_STATIC_PATH)

    async def create_dns_record(self, node: Node, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(node, DNS_STATIC_PATH, attrs)

    async def update_dns_record(self, node: Node, record_id: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
        return await self.update(node, DNS_STATIC_PATH, record_id, attrs)

    async def delete_dns_record(self, node: Node, record_id: str) -> Dict[str, Any]:
        return await self.delete(node, DNS_STATIC_PATH, record_id)

    async def get_dns_settings(self, node: Node) -> Dict[str, Any]:
        return await self.request(node, "GET", DNS_PATH)

    async def update_dns_settings(self, node: Node, attrs: Dict[str, Any]) -> Any:
        return await self.command(node, f"{DNS_PATH}/set", attrs)

    async def list_dns_cache(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, DNS_CACHE_PATH)

    async def flush_dns_cache(self, node: Node) -> Any:
        return await self.command(node, f"{DNS_CACHE_PATH}/flush")

    # Users

    async def list_users(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, USER_PATH)

    async def create_user(self, node: Node, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(node, USER_PATH, params)

    async def update_user(self, node: Node, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self.update(node, USER_PATH, user_id, params)

    async def delete_user(self, node: Node, user_id: str) -> Dict[str, Any]:
        return await self.delete(node, USER_PATH, user_id)

    async def list_user_groups(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, USER_GROUP_PATH)

    async def list_active_users(self, node: Node) -> List[Dict[str, Any]]:
        return await self.list(node, USER_ACTIVE_PATH)

    # Multi-target creation

    async def group_create(
        self,
        primary: Node,
        hosts: List[str],
        path: str,
        payload: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """
        PUT the same payload to every host concurrently.

        All hosts are addressed with the primary's credentials and port, each
        request bounded by ``group_timeout``.
        """
        self.logger.info(f"Group create on {path} across {len(hosts)} hosts (primary: {primary.name})")

        async def create_on(host: str) -> Dict[str, Any]:
            target = replace(primary, host=host, name=host)
            try:
                data = await self.request(target, "PUT", path, payload=payload, timeout=self.group_timeout)
                return {"ip": host, "result": data}
            except DeviceError as e:
                self.logger.warning(f"Group create failed on {host}: {e}")
                return {"ip": host, "error": e}

        return list(await asyncio.gather(*[create_on(host) for host in hosts]))


def quote_id(item_id: str) -> str:
    """URL-quote a node-local id such as ``*1A``."""
    return quote(str(item_id), safe="*")
