"""
Concurrent fan-out of one operation across a set of nodes.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .outcome import Err, Ok, Outcome, PerNodeResult, TimedOut, is_outcome
from ..cluster.node import Node
from ..utils.exceptions import NoTargetsError
from ..utils.logging import logger


Operation = Callable[[Node], Awaitable[Any]]


class Dispatcher:
    """
    Runs an operation once per node, each in its own task, behind a barrier.

    One timeout budget covers the whole dispatch. Units still running when it
    expires are cancelled and recorded as ``TimedOut``; their eventual result
    is never counted.
    """

    def __init__(self, default_timeout: float = 15.0):
        """
        Initialize dispatcher.

        Args:
            default_timeout: Budget in seconds used when a dispatch call does not pass one
        """
        self.default_timeout = default_timeout
        self.logger = logger.getChild("dispatcher")

    async def dispatch(
        self,
        nodes: List[Node],
        operation: Operation,
        timeout: Optional[float] = None
    ) -> List[PerNodeResult]:
        """
        Invoke ``operation`` concurrently on every node and wait for all of them.

        Args:
            nodes: Non-empty list of target nodes
            operation: Async callable taking a node
            timeout: Budget for the whole dispatch (default: ``default_timeout``)

        Returns:
            Exactly one PerNodeResult per input node, in completion order with
            timed-out nodes last

        Raises:
            NoTargetsError: If ``nodes`` is empty
        """
        if not nodes:
            raise NoTargetsError()

        budget = timeout if timeout is not None else self.default_timeout
        self.logger.debug(f"Dispatching to {len(nodes)} nodes (budget: {budget}s)")

        tasks: Dict[asyncio.Task, Node] = {}
        completed: List[asyncio.Task] = []

        for node in nodes:
            task = asyncio.create_task(self._run_unit(node, operation))
            task.add_done_callback(completed.append)
            tasks[task] = node

        try:
            done, pending = await asyncio.wait(tasks.keys(), timeout=budget)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        for task in pending:
            task.cancel()

        results: List[PerNodeResult] = []

        # Done callbacks run on the next loop iteration, so a task can be in
        # ``done`` before it reaches ``completed``
        ordered = [task for task in completed if task in done]
        ordered += [task for task in tasks if task in done and task not in completed]

        for task in ordered:
            if task.cancelled():
                results.append(PerNodeResult(tasks[task], TimedOut(budget)))
            else:
                results.append(PerNodeResult(tasks[task], task.result()))

        for task in tasks:
            if task in pending:
                node = tasks[task]
                self.logger.warning(f"Node {node.name} timed out after {budget}s")
                results.append(PerNodeResult(node, TimedOut(budget)))

        failed = sum(1 for result in results if not result.ok)
        self.logger.info(
            f"Dispatch finished: {len(results) - failed}/{len(results)} ok"
            + (f", {failed} failed" if failed else "")
        )
        return results

    async def _run_unit(self, node: Node, operation: Operation) -> Outcome:
        try:
            value = await operation(node)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(f"Operation failed on {node.name}: {e}")
            return Err(e)

        if is_outcome(value):
            return value
        return Ok(value)
