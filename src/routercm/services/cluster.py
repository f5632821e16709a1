"""
Cluster-level views: per-node health, statistics and connection tests.
"""
from typing import Any, Dict, Tuple

from ..adapters.routeros_http import RouterOSClient
from ..cluster.node import Node
from ..core.orchestrator import ClusterOrchestrator
from ..execution.outcome import Ok, Outcome
from ..execution.targets import TargetSpec
from ..utils.exceptions import NoTargetsError
from ..utils.logging import logger


INT_RESOURCE_FIELDS = {
    "cpu_load": "cpu-load",
    "free_memory": "free-memory",
    "total_memory": "total-memory",
    "free_hdd": "free-hdd-space",
    "total_hdd": "total-hdd-space",
    "cpu_count": "cpu-count",
}

TEXT_RESOURCE_FIELDS = {
    "uptime": "uptime",
    "version": "version",
    "board_name": "board-name",
    "architecture": "architecture-name",
    "cpu": "cpu",
}


def parse_int(value: Any) -> int:
    """Parse a leading integer the way RouterOS reports counters; anything else is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value

    text = str(value).strip()
    digits = ""
    for i, char in enumerate(text):
        if char.isdigit() or (i == 0 and char in "+-"):
            digits += char
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


def parse_resources(resources: Dict[str, Any]) -> Dict[str, Any]:
    parsed = {key: parse_int(resources.get(field)) for key, field in INT_RESOURCE_FIELDS.items()}
    parsed.update({key: resources.get(field) for key, field in TEXT_RESOURCE_FIELDS.items()})
    return parsed


class ClusterService:
    """Cluster health and statistics."""

    def __init__(self, orchestrator: ClusterOrchestrator, client: RouterOSClient):
        self.orchestrator = orchestrator
        self.client = client
        self.logger = logger.getChild("services.cluster")

    async def fetch_cluster_health(self) -> Dict[int, Tuple[Node, Outcome]]:
        """
        Read system resources from every active node.

        Returns:
            ``{node_id: (node, outcome)}`` covering every active node, timeouts
            included; an empty cluster yields ``{}``
        """
        async def read_resources(node: Node) -> Dict[str, Any]:
            return parse_resources(await self.client.get_system_resources(node))

        try:
            nodes = self.orchestrator.resolve_targets(TargetSpec.cluster())
        except NoTargetsError:
            return {}

        results = await self.orchestrator.dispatcher.dispatch(
            nodes,
            read_resources,
            timeout=self.orchestrator.read_timeout
        )
        return {result.node.id: (result.node, result.outcome) for result in results}

    @staticmethod
    def health_summary(health: Dict[int, Tuple[Node, Outcome]]) -> Dict[str, int]:
        healthy = sum(1 for _, outcome in health.values() if isinstance(outcome, Ok))
        return {
            "total": len(health),
            "healthy": healthy,
            "unhealthy": len(health) - healthy
        }

    def get_cluster_stats(self) -> Dict[str, int]:
        return self.orchestrator.directory.get_cluster_stats()

    async def test_connection(self, node_id: int, actor_id: Any = None) -> Dict[str, Any]:
        return await self.orchestrator.test_node_connection(node_id, actor_id=actor_id)
