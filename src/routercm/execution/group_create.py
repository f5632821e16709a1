"""
Synchronized group creation.

Resources that need identical secret material on every node (a WireGuard
interface whose private key must match across failover replicas) are created
through one multi-target call instead of a per-node fan-out. The secret is
generated once; the response is mapped back to nodes by network address.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .outcome import Err, Ok, Outcome, PerNodeResult, is_outcome
from ..cluster.node import Node
from ..utils.exceptions import NoTargetsError
from ..utils.logging import get_logger


logger = get_logger(__name__)

CreateAll = Callable[[Node, List[str], Dict[str, Any]], Awaitable[Any]]
SecretFactory = Callable[[], Any]


@dataclass
class GroupCreateResult:
    """Mapped per-node results plus the payload that was sent."""
    primary: Node
    payload: Dict[str, Any]
    results: List[PerNodeResult] = field(default_factory=list)


class SynchronizedGroupCreator:
    """Creates one resource across nodes with shared attributes in a single call."""

    def __init__(self):
        self.logger = logger

    async def create(
        self,
        nodes: List[Node],
        attrs: Dict[str, Any],
        create_all: CreateAll,
        secret_field: Optional[str] = None,
        secret_factory: Optional[SecretFactory] = None
    ) -> GroupCreateResult:
        """
        Create a resource on every node with one shared payload.

        Args:
            nodes: Target nodes; the first one is the primary
            attrs: Creation attributes shared by all nodes
            create_all: Multi-target routine ``(primary, hosts, payload)``
            secret_field: Payload field that receives the shared secret
            secret_factory: Produces the secret when the caller did not supply one

        Returns:
            GroupCreateResult with one entry per node found in the response

        Raises:
            NoTargetsError: If ``nodes`` is empty
        """
        if not nodes:
            raise NoTargetsError()

        primary = nodes[0]
        payload = dict(attrs)

        if secret_field and secret_factory and not payload.get(secret_field):
            payload[secret_field] = secret_factory()

        hosts = [node.host for node in nodes]
        self.logger.info(f"Group create across {len(nodes)} nodes (primary: {primary.name})")

        try:
            response = await create_all(primary, hosts, payload)
        except Exception as e:
            self.logger.error(f"Group create routine failed: {e}")
            return GroupCreateResult(primary, payload, [PerNodeResult(node, Err(e)) for node in nodes])

        results = map_results_to_nodes(response, nodes, primary)
        self.logger.debug(f"Group create mapped {len(results)} of {len(nodes)} nodes")
        return GroupCreateResult(primary, payload, results)


def map_results_to_nodes(response: Any, nodes: List[Node], primary: Node) -> List[PerNodeResult]:
    """
    Map a multi-target response back to nodes by host address.

    Entries whose address matches no node are dropped, and a node matched
    more than once keeps its first entry. A response that is not a list is
    attributed to the primary.
    """
    if not isinstance(response, list):
        return [PerNodeResult(primary, _to_outcome(response))]

    by_host = {node.host: node for node in nodes}
    results = []
    mapped = set()

    for entry in response:
        parsed = _parse_entry(entry)
        if parsed is None:
            logger.debug(f"Ignoring unrecognised group create entry: {entry!r}")
            continue

        host, outcome = parsed
        node = by_host.get(host)
        if node is None:
            logger.debug(f"Dropping group create result for unknown address {host}")
            continue
        if node.id in mapped:
            continue

        mapped.add(node.id)
        results.append(PerNodeResult(node, outcome))

    return results


def _parse_entry(entry: Any) -> Optional[Tuple[str, Outcome]]:
    if isinstance(entry, dict):
        host = entry.get("ip", entry.get("host"))
        if host is None:
            return None
        if "error" in entry:
            return host, Err(entry["error"])
        if "results" in entry:
            return host, _to_outcome(entry["results"])
        return host, _to_outcome(entry.get("result"))

    if isinstance(entry, tuple) and len(entry) == 2:
        host, result = entry
        return host, _to_outcome(result)

    return None


def _to_outcome(result: Any) -> Outcome:
    if is_outcome(result):
        return result
    if isinstance(result, Exception):
        return Err(result)
    return Ok(result)
