"""
Per-node outcome types produced by cluster dispatch.

An operation run against one node ends in exactly one of ``Ok``, ``Err`` or
``TimedOut``. The dispatcher pairs each outcome with its node in a
``PerNodeResult``.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..cluster.node import Node
from ..utils.exceptions import DeviceRequestError, DeviceTimeoutError


TIMEOUT_REASON = "timeout"

RECONCILE_NOT_FOUND = "not_found"
RECONCILE_CREATED = "created"


@dataclass(frozen=True)
class Ok:
    """The operation completed; ``value`` is whatever it returned."""
    value: Any = None


@dataclass(frozen=True)
class Err:
    """The operation failed; ``reason`` is the device client's error, unchanged."""
    reason: Any


@dataclass(frozen=True)
class TimedOut:
    """The unit was still running when the dispatch budget expired."""
    timeout_seconds: Optional[float] = None

    @property
    def reason(self) -> str:
        return TIMEOUT_REASON


Outcome = Union[Ok, Err, TimedOut]


@dataclass(frozen=True)
class PerNodeResult:
    """One node and the outcome of running an operation against it."""
    node: Node
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Ok)


@dataclass(frozen=True)
class Reconciled:
    """
    Result of a list-match-act unit on one node.

    ``status`` is the action label (``deleted``, ``updated``...), ``created``
    when a missing entry was created, or ``not_found`` when the entry does not
    exist on the node and nothing was done.
    """
    status: str
    local_id: Optional[str] = None
    value: Any = None

    @property
    def is_noop(self) -> bool:
        return self.status == RECONCILE_NOT_FOUND


NOT_FOUND = Reconciled(RECONCILE_NOT_FOUND)


def is_outcome(value: Any) -> bool:
    return isinstance(value, (Ok, Err, TimedOut))


def format_reason(reason: Any) -> str:
    """
    Render a failure reason for display and audit details.

    Device errors show the device's own detail when it sent one; strings
    pass through unchanged.
    """
    if isinstance(reason, TimedOut):
        return TIMEOUT_REASON
    if isinstance(reason, DeviceTimeoutError):
        return TIMEOUT_REASON
    if isinstance(reason, DeviceRequestError):
        return reason.detail or reason.message or str(reason)
    if isinstance(reason, str):
        return reason
    return str(reason)
