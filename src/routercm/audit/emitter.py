"""
Audit emission for cluster operations.

Exactly one record per operation, written after aggregation. Node-level
detail goes into the record's details, never into separate records.
"""
from typing import Any, Dict, Optional

from ..execution.aggregator import AggregateResult, Verdict
from ..execution.outcome import format_reason
from ..utils.logging import logger


SECRET_FIELDS = ("password", "private-key")


class AuditEmitter:
    """Turns an AggregateResult into a single call on the audit sink."""

    def __init__(self, sink):
        """
        Args:
            sink: Object exposing ``record(action, resource_type, resource_id,
                actor_id, details, success)``
        """
        self.sink = sink
        self.logger = logger.getChild("audit.emitter")

    def emit(
        self,
        result: AggregateResult,
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        actor_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Record the outcome of one cluster operation.

        Returns:
            True if a record was written (nothing is written for NO_TARGETS)
        """
        if result.verdict == Verdict.NO_TARGETS:
            return False

        payload = strip_secrets(details)
        payload["nodes"] = [node.id for node in result.succeeded_nodes]

        if result.verdict == Verdict.ALL_SUCCEEDED:
            self.sink.record(action, resource_type, resource_id, actor_id, payload, True)
            return True

        payload["status"] = (
            "partial_failure" if result.verdict == Verdict.PARTIAL_FAILURE else "failure"
        )
        payload["successes"] = len(result.successes)
        payload["failures"] = len(result.failures)
        payload["failed_nodes"] = {
            str(node.id): format_reason(reason) for node, reason in result.failures
        }

        self.logger.warning(
            f"{action} {resource_type} {resource_id}: {payload['status']} "
            f"({payload['successes']} ok, {payload['failures']} failed)"
        )
        self.sink.record(action, resource_type, resource_id, actor_id, payload, False)
        return True


def strip_secrets(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy ``details`` without secret fields, at any nesting depth."""
    return _strip(details or {})


def _strip(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _strip(item) for key, item in value.items() if key not in SECRET_FIELDS}
    if isinstance(value, (list, tuple)):
        return [_strip(item) for item in value]
    return value
