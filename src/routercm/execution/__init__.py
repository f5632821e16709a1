"""
Cluster fan-out engine: dispatch, target resolution, name reconciliation,
synchronized group creation and result aggregation.
"""
from .outcome import (
    Ok,
    Err,
    TimedOut,
    Outcome,
    PerNodeResult,
    Reconciled,
    NOT_FOUND,
    TIMEOUT_REASON,
    format_reason
)
from .dispatcher import Dispatcher
from .targets import TargetResolver, TargetSpec
from .reconciler import NameReconciler
from .group_create import GroupCreateResult, SynchronizedGroupCreator, map_results_to_nodes
from .aggregator import AggregateResult, Verdict, aggregate

__all__ = [
    "Ok",
    "Err",
    "TimedOut",
    "Outcome",
    "PerNodeResult",
    "Reconciled",
    "NOT_FOUND",
    "TIMEOUT_REASON",
    "format_reason",
    "Dispatcher",
    "TargetResolver",
    "TargetSpec",
    "NameReconciler",
    "GroupCreateResult",
    "SynchronizedGroupCreator",
    "map_results_to_nodes",
    "AggregateResult",
    "Verdict",
    "aggregate",
]
