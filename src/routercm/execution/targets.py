"""
Target resolution: turn an addressing request into a concrete node list.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..cluster.directory import NodeDirectory
from ..cluster.node import Node
from ..utils.logging import logger


ALL_NODES = "all"


@dataclass(frozen=True)
class TargetSpec:
    """
    Addressing mode for a cluster operation.

    Priority: ``cluster_wide`` first, then explicit ids/names, otherwise all
    active nodes.
    """
    cluster_wide: bool = False
    node_ids: Optional[Sequence[int]] = None
    node_names: Optional[Sequence[str]] = None

    @classmethod
    def cluster(cls) -> "TargetSpec":
        return cls(cluster_wide=True)

    @classmethod
    def from_node_ids(cls, node_ids: Sequence[int]) -> "TargetSpec":
        return cls(node_ids=list(node_ids))

    @classmethod
    def from_node_names(cls, node_names: Union[str, Sequence[str]]) -> "TargetSpec":
        """Build a spec from a list of node names or the literal ``"all"``."""
        if isinstance(node_names, str):
            if node_names == ALL_NODES:
                return cls(cluster_wide=True)
            return cls(node_names=[node_names])
        return cls(node_names=list(node_names))

    @property
    def is_explicit(self) -> bool:
        # An empty list is still an explicit selection of no nodes
        return self.node_ids is not None or self.node_names is not None


class TargetResolver:
    """Resolves a TargetSpec against the node directory at call time."""

    def __init__(self, directory: NodeDirectory):
        self.directory = directory
        self.logger = logger.getChild("targets")

    def resolve(self, spec: Optional[TargetSpec] = None) -> List[Node]:
        """
        Resolve targets to nodes.

        Args:
            spec: Addressing request (default: all active nodes)

        Returns:
            Node snapshots, possibly empty (an explicit empty list selects no
            nodes); duplicates collapsed in first-seen order

        Raises:
            NodeNotFoundError: If an explicitly named node does not exist
        """
        spec = spec or TargetSpec()

        if spec.cluster_wide:
            nodes = self.directory.list_active_nodes()
            self.logger.debug(f"Cluster-wide target: {len(nodes)} active nodes")
            return nodes

        if spec.is_explicit:
            nodes = []
            for node_id in spec.node_ids or []:
                nodes.append(self.directory.get_node(node_id))
            for name in spec.node_names or []:
                nodes.append(self.directory.get_node_by_name(name))
            return _dedupe(nodes)

        return self.directory.list_active_nodes()


def _dedupe(nodes: List[Node]) -> List[Node]:
    seen = set()
    unique = []
    for node in nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        unique.append(node)
    return unique
