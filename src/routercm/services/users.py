"""
Device-local user accounts (RouterOS ``/user``) across the cluster.
"""
from typing import Any, Dict, List, Optional, Sequence, Union

from ..adapters.routeros_http import RouterOSClient
from ..cluster.node import Node
from ..core.orchestrator import ClusterOrchestrator
from ..execution.aggregator import AggregateResult
from ..execution.targets import ALL_NODES, TargetSpec
from ..utils.logging import logger


RESOURCE_ROUTEROS_USER = "routeros_user"
DEFAULT_GROUP = "full"

NodeNames = Union[str, Sequence[str]]


class RouterOSUserService:
    """Manage user accounts on the managed devices themselves."""

    def __init__(self, orchestrator: ClusterOrchestrator, client: RouterOSClient):
        self.orchestrator = orchestrator
        self.client = client
        self.logger = logger.getChild("services.users")

    async def list_users(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        return await self.orchestrator.read(self.client.list_users, targets)

    async def create_user(
        self,
        params: Dict[str, Any],
        node_names: NodeNames = ALL_NODES,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        """
        Create a user on the named nodes (or ``"all"`` active nodes).

        Raises:
            NodeNotFoundError: If a named node does not exist
        """
        payload = {**params, "group": params.get("group") or DEFAULT_GROUP}

        async def create(node: Node) -> Dict[str, Any]:
            return await self.client.create_user(node, payload)

        return await self.orchestrator.apply(
            "create", RESOURCE_ROUTEROS_USER, payload.get("name"), create,
            targets=TargetSpec.from_node_names(node_names),
            actor_id=actor_id,
            details={"group": payload["group"]}
        )

    async def update_user(
        self,
        user_id: str,
        params: Dict[str, Any],
        node_names: NodeNames = ALL_NODES,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def update(node: Node) -> Dict[str, Any]:
            return await self.client.update_user(node, user_id, params)

        return await self.orchestrator.apply(
            "update", RESOURCE_ROUTEROS_USER, params.get("name") or user_id, update,
            targets=TargetSpec.from_node_names(node_names),
            actor_id=actor_id,
            details={"user_id": user_id, "attrs": params}
        )

    async def delete_user(
        self,
        username: str,
        user_id: str,
        node_names: NodeNames = ALL_NODES,
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        async def delete(node: Node) -> Dict[str, Any]:
            return await self.client.delete_user(node, user_id)

        return await self.orchestrator.apply(
            "delete", RESOURCE_ROUTEROS_USER, username, delete,
            targets=TargetSpec.from_node_names(node_names),
            actor_id=actor_id,
            details={"user_id": user_id}
        )

    async def delete_user_by_name(self, username: str, actor_id: Optional[Any] = None) -> AggregateResult:
        """Delete ``username`` on every active node that has it."""
        async def delete(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.delete_user(node, entry[".id"])

        return await self.orchestrator.apply_by_name(
            "delete", RESOURCE_ROUTEROS_USER, username,
            self.client.list_users, delete,
            actor_id=actor_id
        )

    async def update_user_by_name(
        self,
        username: str,
        attrs: Dict[str, Any],
        actor_id: Optional[Any] = None
    ) -> AggregateResult:
        """
        Update group, comment and optionally password of ``username`` everywhere.

        The password is only changed when a non-empty one is given. Nodes
        without the user are skipped.
        """
        update_attrs = {
            "group": attrs.get("group"),
            "comment": attrs.get("comment") or ""
        }
        if attrs.get("password"):
            update_attrs["password"] = attrs["password"]

        async def update(node: Node, entry: Dict[str, Any]) -> Dict[str, Any]:
            return await self.client.update_user(node, entry[".id"], update_attrs)

        return await self.orchestrator.apply_by_name(
            "update", RESOURCE_ROUTEROS_USER, username,
            self.client.list_users, update,
            actor_id=actor_id,
            details={"attrs": {k: v for k, v in update_attrs.items() if k != "password"}}
        )

    async def list_user_groups(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        return await self.orchestrator.read(self.client.list_user_groups, targets)

    async def list_active_users(self, targets: Optional[TargetSpec] = None) -> AggregateResult:
        return await self.orchestrator.read(self.client.list_active_users, targets)

    @staticmethod
    def group_users_by_name(result: AggregateResult) -> List[Dict[str, Any]]:
        """Merge per-node user lists into ``{name, group, nodes}`` entries sorted by name."""
        grouped: Dict[str, Dict[str, Any]] = {}
        for node, users in result.successes:
            for user in users or []:
                entry = grouped.setdefault(user.get("name"), {
                    "name": user.get("name"),
                    "group": user.get("group"),
                    "nodes": []
                })
                entry["nodes"].append({"node_name": node.name, "node_id": node.id, "user_id": user.get(".id")})

        return sorted(grouped.values(), key=lambda entry: entry["name"] or "")
