"""
Periodic node health checking.

Runs as its own background task, independent of cluster dispatch. Nodes that
answer are marked online; nodes that fail are marked offline and drop out of
the active set until they answer again.
"""
import asyncio
from typing import Dict, Optional

from .directory import NodeDirectory
from .node import Node
from ..utils.logging import logger


class HealthChecker:
    """Background worker that tests every node on a fixed interval."""

    def __init__(
        self,
        directory: NodeDirectory,
        client,
        interval_seconds: float = 60.0,
        initial_delay_seconds: float = 5.0
    ):
        """
        Args:
            directory: Node directory to read nodes from and update
            client: Device client exposing ``test_connection(node)``
            interval_seconds: Time between checks
            initial_delay_seconds: Delay before the first check
        """
        self.directory = directory
        self.client = client
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.logger = logger.getChild("health_check")
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, directory: NodeDirectory, client, health_config) -> "HealthChecker":
        return cls(
            directory,
            client,
            interval_seconds=health_config.interval_seconds,
            initial_delay_seconds=health_config.initial_delay_seconds
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start the background loop (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self.logger.info(f"Health checker started (interval: {self.interval_seconds}s)")

    async def stop(self):
        """Stop the background loop and wait for it to exit."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.logger.info("Health checker stopped")

    async def check_now(self) -> Dict[str, bool]:
        """
        Check every node once and update its status.

        Returns:
            Mapping of node name to whether it answered
        """
        nodes = self.directory.list_nodes()
        if not nodes:
            return {}

        results = await asyncio.gather(
            *[self._check_node(node) for node in nodes],
            return_exceptions=True
        )

        health = {}
        for node, result in zip(nodes, results):
            healthy = result is True
            if isinstance(result, Exception):
                self.logger.error(f"Health check crashed for {node.name}: {result}")
            health[node.name] = healthy

        healthy_count = sum(1 for ok in health.values() if ok)
        self.logger.info(f"Health check: {healthy_count}/{len(health)} nodes healthy")
        return health

    async def _check_node(self, node: Node) -> bool:
        try:
            await self.client.test_connection(node)
        except Exception as e:
            self.logger.warning(f"Node {node.name} failed health check: {e}")
            self.directory.set_node_offline(node.id)
            return False

        self.directory.touch_node(node.id)
        return True

    async def _run(self):
        try:
            await asyncio.sleep(self.initial_delay_seconds)
            while True:
                try:
                    await self.check_now()
                except Exception as e:
                    self.logger.error(f"Health check pass failed: {e}")
                await asyncio.sleep(self.interval_seconds)

        except asyncio.CancelledError:
            self.logger.info("Health check task cancelled")
            raise
