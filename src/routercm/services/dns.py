"""
DNS management across the cluster: static records, resolver settings and
the DNS cache.
"""
from typing import Any, Dict, List, Optional

from ..adapters.routeros_http import RouterOSClient
from ..cluster.node import Node
from ..core.orchestrator import ClusterOrchestrator
from ..execution.aggregator import AggregateResult
from ..execution.targets import TargetSpec
from ..utils.logging import logger


RESOURCE_DNS_RECORD = "dns_record"
RESOURCE_DNS_SETTINGS = "dns_settings"
RESOURCE_DNS_CACHE = "dns_cache"

SETTINGS_KEYS = ("servers", "allow-remote-requests", "cache-size", "cache-max-ttl")


class DNSService:
    """Static DNS records and resolver settings on every node."""

    def __init__(self, orchestrator: ClusterOrchestrator, client: RouterOSClient):
        self.orchestrator = orchestrator
        self.client = client
        self.logger = logger.getChild("services.dns")

    async def list_records(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        """List static DNS records; successes hold each node's record list."""
        return await self.orchestrator.read(self.client.list_dns_records, targets)

    async def create_record(
        self,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        clean = _drop_empty(attrs)

        async def create(node: Node) -> Dict[str, Any]:
            return await self.client.create_dns_record(node, clean)

        return await self.orchestrator.apply(
            "create", RESOURCE_DNS_RECORD, clean.get("name"), create,
            targets=targets, actor_id=actor_id, details={"attrs": clean}
        )

    async def update_record(
        self,
        record_id: str,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def update(node: Node) -> Dict[str, Any]:
            return await self.client.update_dns_record(node, record_id, attrs)

        return await self.orchestrator.apply(
            "update", RESOURCE_DNS_RECORD, record_id, update,
            targets=targets, actor_id=actor_id, details={"attrs": attrs}
        )

    async def delete_record(
        self,
        record_id: str,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def delete(node: Node) -> Dict[str, Any]:
            return await self.client.delete_dns_record(node, record_id)

        return await self.orchestrator.apply(
            "delete", RESOURCE_DNS_RECORD, record_id, delete,
            targets=targets, actor_id=actor_id
        )

    async def delete_record_by_name(self, name: str, actor_id: Optional[Any] = None) -> AggregateResult:
        """Delete the record named ``name`` wherever it exists in the cluster."""
        async def delete(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.delete_dns_record(node, entry[".id"])

        return await self.orchestrator.apply_by_name(
            "delete", RESOURCE_DNS_RECORD, name,
            self.client.list_dns_records, delete,
            actor_id=actor_id
        )

    async def update_record_by_name(
        self,
        name: str,
        attrs: Dict[str, Any],
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        """
        Update the record named ``name`` on every node.

        Nodes that do not have the record yet get it created, so the record
        converges across the cluster.
        """
        clean = _drop_empty(attrs)

        async def update(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.update_dns_record(node, entry[".id"], clean)

        async def create(node: Node) -> Dict[str, Any]:
            return await self.client.create_dns_record(node, {**clean, "name": name})

        return await self.orchestrator.apply_by_name(
            "update", RESOURCE_DNS_RECORD, name,
            self.client.list_dns_records, update,
            on_missing=create,
            actor_id=actor_id,
            details={"attrs": clean}
        )

    @staticmethod
    def group_records_by_name(result: AggregateResult) -> List[Dict[str, Any]]:
        """
        Merge per-node record lists into one cluster view keyed by name.

        Attributes come from the first node that reported the name; ``nodes``
        lists where the record lives and under which local id.
        """
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for node, records in result.successes:
            for record in records or []:
                grouped.setdefault(record.get("name"), []).append({"node": node, "record": record})

        merged = []
        for name, entries in grouped.items():
            first = entries[0]["record"]
            merged.append({
                "name": name,
                "type": first.get("type") or "A",
                "address": first.get("address"),
                "cname": first.get("cname"),
                "ttl": first.get("ttl"),
                "comment": first.get("comment"),
                "nodes": [
                    {
                        "node_name": entry["node"].name,
                        "node_id": entry["node"].id,
                        "record_id": entry["record"].get(".id")
                    }
                    for entry in entries
                ]
            })

        return sorted(merged, key=lambda record: record["name"] or "")

    # Settings and cache

    async def get_settings(self, node: Node) -> Dict[str, Any]:
        return await self.client.get_dns_settings(node)

    async def update_settings(
        self,
        attrs: Dict[str, Any],
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        settings = {key: value for key, value in attrs.items() if key in SETTINGS_KEYS}

        async def update(node: Node) -> Any:
            return await self.client.update_dns_settings(node, settings)

        return await self.orchestrator.apply(
            "update", RESOURCE_DNS_SETTINGS, "settings", update,
            targets=targets, actor_id=actor_id, details={"attrs": settings}
        )

    async def list_cache(self, node: Node) -> List[Dict[str, Any]]:
        return await self.client.list_dns_cache(node)

    async def flush_cache(
        self,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        return await self.orchestrator.apply(
            "flush", RESOURCE_DNS_CACHE, "cache", self.client.flush_dns_cache,
            targets=targets, actor_id=actor_id
        )


def _drop_empty(attrs: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in attrs.items() if value is not None and value != ""}
