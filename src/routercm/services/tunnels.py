"""
Tunnel management: WireGuard interfaces and peers, GRE interfaces and the IP
addresses assigned to them.
"""
from typing import Any, Dict, Optional, Tuple

from ..adapters.routeros_http import (
    GRE_PATH,
    RouterOSClient,
    WIREGUARD_PATH,
    WIREGUARD_PEERS_PATH
)
from ..cluster.node import Node
from ..core.orchestrator import ClusterOrchestrator
from ..execution.aggregator import AggregateResult
from ..execution.targets import TargetSpec
from ..utils.logging import logger
from ..wireguard.keys import derive_public_key, generate_private_key


RESOURCE_WIREGUARD_INTERFACE = "wireguard_interface"
RESOURCE_WIREGUARD_PEER = "wireguard_peer"
RESOURCE_GRE_INTERFACE = "gre_interface"
RESOURCE_IP_ADDRESS = "ip_address"

PRIVATE_KEY_FIELD = "private-key"
PUBLIC_KEY_FIELD = "public-key"


def peer_resource_id(interface_name: str, public_key: str) -> str:
    return f"{interface_name}/{public_key[:8]}..."


def address_resource_id(address: str, interface_name: str) -> str:
    return f"{address} on {interface_name}"


class TunnelService:
    """Tunnel interfaces and addressing across the cluster."""

    def __init__(self, orchestrator: ClusterOrchestrator, client: RouterOSClient):
        self.orchestrator = orchestrator
        self.client = client
        self.logger = logger.getChild("services.tunnels")

    # WireGuard interfaces

    async def list_interfaces(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        return await self.orchestrator.read(self.client.list_wireguard_interfaces, targets)

    async def create_interface(
        self,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> Tuple[AggregateResult, str]:
        """
        Create a WireGuard interface on every target with one shared private key.

        A key is generated unless ``attrs`` already carries one.

        Returns:
            ``(AggregateResult, public_key)``

        Raises:
            ValueError: If a supplied private key is not a valid Curve25519 key;
                nothing is sent to the nodes
        """
        if attrs.get(PRIVATE_KEY_FIELD):
            derive_public_key(attrs[PRIVATE_KEY_FIELD])

        result, payload = await self.orchestrator.create_group(
            "create",
            RESOURCE_WIREGUARD_INTERFACE,
            attrs.get("name"),
            WIREGUARD_PATH,
            attrs,
            secret_field=PRIVATE_KEY_FIELD,
            secret_factory=generate_private_key,
            targets=targets,
            actor_id=actor_id
        )
        return result, derive_public_key(payload[PRIVATE_KEY_FIELD])

    async def update_interface(
        self,
        interface_id: str,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def update(node: Node) -> Dict[str, Any]:
            return await self.client.update_wireguard_interface(node, interface_id, attrs)

        return await self.orchestrator.apply(
            "update", RESOURCE_WIREGUARD_INTERFACE, interface_id, update,
            targets=targets, actor_id=actor_id, details={"attrs": attrs}
        )

    async def delete_interface(
        self,
        interface_id: str,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def delete(node: Node) -> Dict[str, Any]:
            return await self.client.delete_wireguard_interface(node, interface_id)

        return await self.orchestrator.apply(
            "delete", RESOURCE_WIREGUARD_INTERFACE, interface_id, delete,
            targets=targets, actor_id=actor_id
        )

    async def delete_interface_by_name(self, name: str, actor_id: Optional[Any] = None) -> AggregateResult:
        async def delete(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.delete_wireguard_interface(node, entry[".id"])

        return await self.orchestrator.apply_by_name(
            "delete", RESOURCE_WIREGUARD_INTERFACE, name,
            self.client.list_wireguard_interfaces, delete,
            actor_id=actor_id
        )

    async def assign_ip(self, interface_name: str, address: str, actor_id: Optional[Any] = None) -> AggregateResult:
        """Make sure every active node carries ``address`` on the interface."""
        return await self._assign_address(RESOURCE_WIREGUARD_INTERFACE, interface_name, address, actor_id)

    async def remove_ip(self, interface_name: str, address: str, actor_id: Optional[Any] = None) -> AggregateResult:
        return await self._remove_address(interface_name, address, actor_id)

    # WireGuard peers

    async def list_peers(self, interface_name: str, targets: Optional[TargetSpec] = None) -> AggregateResult:
        async def list_peers(node: Node):
            return await self.client.list_wireguard_peers(node, interface_name)

        return await self.orchestrator.read(list_peers, targets)

    async def create_peer(
        self,
        interface_name: str,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        """Add one peer with identical settings to the interface on every target."""
        result, _ = await self.orchestrator.create_group(
            "create",
            RESOURCE_WIREGUARD_PEER,
            peer_resource_id(interface_name, attrs.get(PUBLIC_KEY_FIELD) or "unknown"),
            WIREGUARD_PEERS_PATH,
            {**attrs, "interface": interface_name},
            targets=targets,
            actor_id=actor_id,
            details={"interface": interface_name}
        )
        return result

    async def delete_peer(
        self,
        interface_name: str,
        public_key: str,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        """Delete the peer with ``public_key`` wherever it exists; missing peers are a no-op."""
        async def list_peers(node: Node):
            return await self.client.list_wireguard_peers(node, interface_name)

        async def delete(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.delete_wireguard_peer(node, entry[".id"])

        return await self.orchestrator.apply_by_name(
            "delete", RESOURCE_WIREGUARD_PEER, public_key,
            list_peers, delete,
            key=PUBLIC_KEY_FIELD,
            targets=targets,
            actor_id=actor_id,
            resource_id=peer_resource_id(interface_name, public_key),
            details={"interface": interface_name}
        )

    # GRE

    async def list_gre_interfaces(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        return await self.orchestrator.read(self.client.list_gre_interfaces, targets)

    async def create_gre_interface(
        self,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def create(node: Node) -> Dict[str, Any]:
            return await self.client.create_gre_interface(node, attrs)

        return await self.orchestrator.apply(
            "create", RESOURCE_GRE_INTERFACE, attrs.get("name") or "unknown", create,
            targets=targets, actor_id=actor_id, details={"attrs": attrs}
        )

    async def update_gre_interface(
        self,
        interface_id: str,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def update(node: Node) -> Dict[str, Any]:
            return await self.client.update_gre_interface(node, interface_id, attrs)

        return await self.orchestrator.apply(
            "update", RESOURCE_GRE_INTERFACE, interface_id, update,
            targets=targets, actor_id=actor_id, details={"attrs": attrs}
        )

    async def delete_gre_interface(
        self,
        interface_id: str,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def delete(node: Node) -> Dict[str, Any]:
            return await self.client.delete_gre_interface(node, interface_id)

        return await self.orchestrator.apply(
            "delete", RESOURCE_GRE_INTERFACE, interface_id, delete,
            targets=targets, actor_id=actor_id
        )

    async def delete_gre_interface_by_name(self, name: str, actor_id: Optional[Any] = None) -> AggregateResult:
        async def delete(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.delete_gre_interface(node, entry[".id"])

        return await self.orchestrator.apply_by_name(
            "delete", RESOURCE_GRE_INTERFACE, name,
            self.client.list_gre_interfaces, delete,
            actor_id=actor_id
        )

    async def assign_gre_ip(self, interface_name: str, address: str, actor_id: Optional[Any] = None) -> AggregateResult:
        return await self._assign_address(RESOURCE_GRE_INTERFACE, interface_name, address, actor_id)

    async def remove_gre_ip(self, interface_name: str, address: str, actor_id: Optional[Any] = None) -> AggregateResult:
        return await self._remove_address(interface_name, address, actor_id)

    # IP addresses

    async def list_addresses(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        return await self.orchestrator.read(self.client.list_addresses, targets)

    async def create_address(
        self,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def create(node: Node) -> Dict[str, Any]:
            return await self.client.create_address(node, attrs)

        return await self.orchestrator.apply(
            "create", RESOURCE_IP_ADDRESS,
            address_resource_id(attrs.get("address"), attrs.get("interface")),
            create,
            targets=targets, actor_id=actor_id, details={"attrs": attrs}
        )

    async def delete_address(
        self,
        address_id: str,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def delete(node: Node) -> Dict[str, Any]:
            return await self.client.delete_address(node, address_id)

        return await self.orchestrator.apply(
            "delete", RESOURCE_IP_ADDRESS, address_id, delete,
            targets=targets, actor_id=actor_id
        )

    async def _assign_address(
        self,
        resource_type: str,
        interface_name: str,
        address: str,
        actor_id: Optional[Any]
    ) -> AggregateResult:
        attrs = {"address": address, "interface": interface_name}

        async def ensure(node: Node) -> Dict[str, Any]:
            return await self.client.ensure_address(node, attrs)

        return await self.orchestrator.apply(
            "assign_ip", resource_type, interface_name, ensure,
            targets=TargetSpec.cluster(), actor_id=actor_id, details={"address": address}
        )

    async def _remove_address(self, interface_name: str, address: str, actor_id: Optional[Any]) -> AggregateResult:
        async def list_addresses(node: Node):
            return await self.client.list_addresses(node, interface_name)

        async def delete(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.delete_address(node, entry[".id"])

        return await self.orchestrator.apply_by_name(
            "delete", RESOURCE_IP_ADDRESS, address,
            list_addresses, delete,
            key="address",
            actor_id=actor_id,
            resource_id=address_resource_id(address, interface_name)
        )
