"""
Name reconciliation for operations addressed by logical name.

Each node stores a replicated resource under its own local id. For every
target node the reconciler lists the resource kind, finds the entry matching
the logical name and acts on that node's local id. An entry missing on a node
is a benign no-op, not a failure.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .dispatcher import Dispatcher
from .outcome import NOT_FOUND, PerNodeResult, RECONCILE_CREATED, Reconciled
from ..cluster.node import Node
from ..utils.logging import logger


LOCAL_ID_FIELD = ".id"

ListEntries = Callable[[Node], Awaitable[List[Dict[str, Any]]]]
Act = Callable[[Node, Dict[str, Any]], Awaitable[Any]]
OnMissing = Callable[[Node], Awaitable[Any]]
Matcher = Callable[[Dict[str, Any]], bool]


class NameReconciler:
    """List-then-match-then-act across nodes, one dispatch unit per node."""

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher
        self.logger = logger.getChild("reconciler")

    async def reconcile(
        self,
        nodes: List[Node],
        name: Any,
        list_entries: ListEntries,
        act: Act,
        key: Union[str, Matcher] = "name",
        on_missing: Optional[OnMissing] = None,
        action: str = "deleted",
        timeout: Optional[float] = None
    ) -> List[PerNodeResult]:
        """
        Reconcile ``name`` on every node and act where it is present.

        Args:
            nodes: Target nodes (non-empty)
            name: Logical name to look for
            list_entries: Lists the resource kind on one node
            act: Mutation called with the node and the matched entry
            key: Entry field compared to ``name``, or a predicate over entries
            on_missing: Optional creation called where the entry is absent
            action: Status label recorded for successful mutations
            timeout: Budget covering both phases

        Returns:
            One PerNodeResult per node. Successful units hold ``Ok(Reconciled)``;
            list or act failures hold ``Err`` with the reason unchanged.

        Raises:
            NoTargetsError: If ``nodes`` is empty
        """
        matches = _matcher(name, key)

        async def unit(node: Node) -> Reconciled:
            try:
                entries = await list_entries(node)
            except Exception as e:
                self.logger.warning(f"List failed on {node.name} while resolving '{name}': {e}")
                raise

            entry = next((item for item in entries or [] if matches(item)), None)

            if entry is None:
                if on_missing is None:
                    self.logger.debug(f"'{name}' not found on {node.name}, nothing to do")
                    return NOT_FOUND
                value = await on_missing(node)
                return Reconciled(RECONCILE_CREATED, _local_id(value), value)

            local_id = entry.get(LOCAL_ID_FIELD)
            try:
                value = await act(node, entry)
            except Exception as e:
                self.logger.warning(f"Action on '{name}' ({local_id}) failed on {node.name}: {e}")
                raise
            return Reconciled(action, local_id, value)

        return await self.dispatcher.dispatch(nodes, unit, timeout=timeout)


def _matcher(name: Any, key: Union[str, Matcher]) -> Matcher:
    if callable(key):
        return key
    return lambda entry: entry.get(key) == name


def _local_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get(LOCAL_ID_FIELD)
    return None
