"""
Audit log retention worker.
"""
import asyncio
from typing import Optional

from .log import AuditLog
from ..utils.logging import logger


class LogPruner:
    """Deletes audit entries older than the retention window on a fixed interval."""

    def __init__(
        self,
        audit_log: AuditLog,
        retention_days: int = 90,
        interval_hours: float = 24 * 7,
        initial_delay_seconds: float = 60.0
    ):
        self.audit_log = audit_log
        self.retention_days = retention_days
        self.interval_hours = interval_hours
        self.initial_delay_seconds = initial_delay_seconds
        self.logger = logger.getChild("audit.pruner")
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, audit_log: AuditLog, audit_config) -> "LogPruner":
        return cls(
            audit_log,
            retention_days=audit_config.retention_days,
            interval_hours=audit_config.prune_interval_hours,
            initial_delay_seconds=audit_config.initial_delay_seconds
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self.logger.info(
            f"Log pruner started (retention: {self.retention_days} days, "
            f"interval: {self.interval_hours}h)"
        )

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.logger.info("Log pruner stopped")

    def prune_now(self) -> int:
        """Delete expired entries and return how many were removed."""
        deleted = self.audit_log.prune(self.retention_days)
        if deleted > 0:
            self.logger.info(f"Pruned {deleted} audit log entries older than {self.retention_days} days")
        else:
            self.logger.debug("No audit log entries to prune")
        return deleted

    async def _run(self):
        try:
            await asyncio.sleep(self.initial_delay_seconds)
            while True:
                try:
                    self.prune_now()
                except Exception as e:
                    self.logger.error(f"Audit log pruning failed: {e}")
                await asyncio.sleep(self.interval_hours * 3600)

        except asyncio.CancelledError:
            self.logger.info("Log pruner task cancelled")
            raise
