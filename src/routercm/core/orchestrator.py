"""
Cluster orchestration facade.

Every cluster operation follows the same path: resolve targets, dispatch
(or group-create), aggregate, emit one audit record.
"""
from typing import Any, Dict, List, Optional, Tuple, Union

from ..adapters.base import BaseDeviceClient
from ..audit.emitter import AuditEmitter, strip_secrets
from ..cluster.directory import NodeDirectory
from ..cluster.node import Node
from ..config.loader import Config, load_config
from ..execution.aggregator import AggregateResult, aggregate
from ..execution.dispatcher import Dispatcher, Operation
from ..execution.group_create import SecretFactory, SynchronizedGroupCreator
from ..execution.reconciler import Act, ListEntries, Matcher, NameReconciler, OnMissing
from ..execution.targets import TargetResolver, TargetSpec
from ..utils.exceptions import DeviceError, DirectoryError, NoTargetsError
from ..utils.logging import logger, setup_logging


RESOURCE_NODE = "node"

ACTION_LABELS = {
    "create": "created",
    "update": "updated",
    "delete": "deleted",
}


class ClusterOrchestrator:
    """
    Caller layer for cluster operations.

    Wires target resolution, dispatch, name reconciliation, group creation,
    aggregation and audit emission. Per-node failures come back as data in
    an AggregateResult; only caller mistakes raise.
    """

    def __init__(
        self,
        directory: NodeDirectory,
        client: BaseDeviceClient,
        audit_sink,
        config: Optional[Config] = None
    ):
        """
        Initialize orchestrator.

        Args:
            directory: Node directory
            client: Device client used for node helpers and group creation
            audit_sink: Object exposing ``record(...)``
            config: Optional Config object (loads default if not provided)
        """
        self.config = config or load_config()

        setup_logging(
            level=self.config.logging.level,
            log_file=self.config.logging.file,
            console=self.config.logging.console
        )

        self.logger = logger.getChild("orchestrator")

        self.directory = directory
        self.client = client
        self.audit_sink = audit_sink

        self.read_timeout = self.config.dispatch.read_timeout_seconds
        self.write_timeout = self.config.dispatch.write_timeout_seconds

        self.resolver = TargetResolver(directory)
        self.dispatcher = Dispatcher(default_timeout=self.write_timeout)
        self.reconciler = NameReconciler(self.dispatcher)
        self.group_creator = SynchronizedGroupCreator()
        self.emitter = AuditEmitter(audit_sink)

    def resolve_targets(self, targets: Optional[TargetSpec] = None) -> List[Node]:
        """
        Resolve targets, failing fast on an empty cluster.

        Raises:
            NoTargetsError: If no node matches
            NodeNotFoundError: If an explicitly named node does not exist
        """
        nodes = self.resolver.resolve(targets)
        if not nodes:
            self.logger.warning("Cluster operation has no target nodes")
            raise NoTargetsError()
        return nodes

    async def read(
        self,
        operation: Operation,
        targets: Optional[TargetSpec] = None,
        timeout: Optional[float] = None
    ) -> AggregateResult:
        """Run a read-only operation on the targets. Nothing is audited."""
        nodes = self.resolve_targets(targets)
        results = await self.dispatcher.dispatch(nodes, operation, timeout=timeout or self.read_timeout)
        return aggregate(results)

    async def apply(
        self,
        action: str,
        resource_type: str,
        resource_id: Any,
        operation: Operation,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> AggregateResult:
        """
        Run a mutating operation on the targets and audit the result once.

        Args:
            action: Audit action (``create``, ``update``...)
            resource_type: Audit resource type
            resource_id: Audit resource id
            operation: Async callable taking a node
            targets: Addressing request (default: all active nodes)
            actor_id: Who requested the change
            details: Extra audit details
            timeout: Dispatch budget (default: write timeout)

        Returns:
            AggregateResult

        Raises:
            NoTargetsError: If targets resolve to no nodes
        """
        nodes = self.resolve_targets(targets)
        results = await self.dispatcher.dispatch(nodes, operation, timeout=timeout or self.write_timeout)
        result = aggregate(results)

        self.logger.info(f"{action} {resource_type} {resource_id}: {result.summary(ACTION_LABELS.get(action, action))}")
        self.emitter.emit(result, action, resource_type, resource_id, actor_id, details)
        return result

    async def apply_by_name(
        self,
        action: str,
        resource_type: str,
        name: Any,
        list_entries: ListEntries,
        act: Act,
        key: Union[str, Matcher] = "name",
        on_missing: Optional[OnMissing] = None,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        resource_id: Optional[Any] = None,
        timeout: Optional[float] = None
    ) -> AggregateResult:
        """
        Reconcile a logical name on every target and act where it exists.

        Targets default to the whole active cluster. A node where the entry
        is absent counts as a success with nothing done.
        """
        targets = targets or TargetSpec.cluster()
        nodes = self.resolve_targets(targets)
        results = await self.reconciler.reconcile(
            nodes,
            name,
            list_entries,
            act,
            key=key,
            on_missing=on_missing,
            action=ACTION_LABELS.get(action, action),
            timeout=timeout or self.write_timeout
        )
        result = aggregate(results)

        audit_details = {"cluster_wide": targets.cluster_wide, **(details or {})}
        if result.noop_nodes:
            audit_details["not_found"] = [node.id for node in result.noop_nodes]

        audit_id = name if resource_id is None else resource_id
        self.logger.info(f"{action} {resource_type} {audit_id}: {result.summary(ACTION_LABELS.get(action, action))}")
        self.emitter.emit(result, action, resource_type, audit_id, actor_id, audit_details)
        return result

    async def create_group(
        self,
        action: str,
        resource_type: str,
        resource_id: Any,
        path: str,
        attrs: Dict[str, Any],
        secret_field: Optional[str] = None,
        secret_factory: Optional[SecretFactory] = None,
        targets: Optional[TargetSpec] = None,
        actor_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Tuple[AggregateResult, Dict[str, Any]]:
        """
        Create one resource on every target with identical attributes.

        Returns:
            ``(AggregateResult, payload)``; the payload includes any generated secret

        Raises:
            NoTargetsError: If targets resolve to no nodes
        """
        nodes = self.resolve_targets(targets)

        async def create_all(primary: Node, hosts: List[str], payload: Dict[str, Any]) -> Any:
            return await self.client.group_create(primary, hosts, path, payload)

        created = await self.group_creator.create(
            nodes,
            attrs,
            create_all,
            secret_field=secret_field,
            secret_factory=secret_factory
        )
        result = aggregate(created.results)

        audit_details = {"attrs": strip_secrets(created.payload), **(details or {})}
        self.logger.info(f"{action} {resource_type} {resource_id}: {result.summary(ACTION_LABELS.get(action, action))}")
        self.emitter.emit(result, action, resource_type, resource_id, actor_id, audit_details)
        return result, created.payload

    # Node lifecycle

    def create_node(
        self,
        name: str,
        host: str,
        username: str,
        password: str,
        port: int = 80,
        actor_id: Optional[Any] = None
    ) -> Node:
        """
        Create a node record and audit it.

        Raises:
            DirectoryError: If the node cannot be created
        """
        details = {"name": name, "host": host, "port": port}
        try:
            node = self.directory.create_node(name, host, username, password, port=port)
        except DirectoryError as e:
            self._record_node(RESOURCE_NODE, "create", None, actor_id, {**details, "error": str(e)}, False)
            raise

        self._record_node(RESOURCE_NODE, "create", node.id, actor_id, details, True)
        return node

    def update_node(self, node_id: int, changes: Dict[str, Any], actor_id: Optional[Any] = None) -> Node:
        """
        Update a node record and audit it.

        Raises:
            DirectoryError: If the update is rejected
        """
        details = {"changes": sorted(strip_secrets(changes))}
        try:
            node = self.directory.update_node(node_id, **changes)
        except DirectoryError as e:
            self._record_node(RESOURCE_NODE, "update", node_id, actor_id, {**details, "error": str(e)}, False)
            raise

        self._record_node(RESOURCE_NODE, "update", node.id, actor_id, details, True)
        return node

    def delete_node(self, node_id: int, actor_id: Optional[Any] = None) -> Node:
        """
        Delete a node record and audit it.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        try:
            node = self.directory.delete_node(node_id)
        except DirectoryError as e:
            self._record_node(RESOURCE_NODE, "delete", node_id, actor_id, {"error": str(e)}, False)
            raise

        self._record_node(RESOURCE_NODE, "delete", node.id, actor_id, {"name": node.name}, True)
        return node

    async def test_node_connection(self, node_id: int, actor_id: Optional[Any] = None) -> Dict[str, Any]:
        """
        Test a node's API connection; a node that answers is marked online.

        Returns:
            System info reported by the node

        Raises:
            NodeNotFoundError: If the node does not exist
            DeviceError: If the node cannot be queried
        """
        node = self.directory.get_node(node_id)
        try:
            info = await self.client.test_connection(node)
        except DeviceError as e:
            self.logger.warning(f"Connection test failed for {node.name}: {e}")
            self._record_node(RESOURCE_NODE, "test_connection", node.id, actor_id, {"error": str(e)}, False)
            raise

        self.directory.touch_node(node.id)
        self._record_node(RESOURCE_NODE, "test_connection", node.id, actor_id, {"name": node.name}, True)
        return info

    def _record_node(
        self,
        resource_type: str,
        action: str,
        resource_id: Any,
        actor_id: Any,
        details: Dict[str, Any],
        success: bool
    ):
        self.audit_sink.record(action, resource_type, resource_id, actor_id, details, success)
