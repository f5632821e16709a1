"""
Result aggregation and failure classification.

``aggregate`` is a pure function: the same per-node results always produce an
equal AggregateResult, and every entry keeps its original Node.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from .outcome import Err, Ok, PerNodeResult, Reconciled, TIMEOUT_REASON, TimedOut, format_reason
from ..cluster.node import Node


class Verdict(str, Enum):
    """Overall verdict of one cluster operation."""
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_FAILURE = "partial_failure"
    TOTAL_FAILURE = "total_failure"
    NO_TARGETS = "no_targets"


@dataclass(frozen=True)
class AggregateResult:
    """Successes and failures of a cluster operation, keyed by node."""
    verdict: Verdict
    successes: List[Tuple[Node, Any]] = field(default_factory=list)
    failures: List[Tuple[Node, Any]] = field(default_factory=list)

    @property
    def succeeded_nodes(self) -> List[Node]:
        return [node for node, _ in self.successes]

    @property
    def failed_nodes(self) -> List[Node]:
        return [node for node, _ in self.failures]

    @property
    def noop_nodes(self) -> List[Node]:
        """Nodes where a name-addressed resource was absent and nothing was done."""
        return [
            node for node, value in self.successes
            if isinstance(value, Reconciled) and value.is_noop
        ]

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    def summary(self, verb: str = "applied") -> str:
        """
        Human-readable summary, e.g.
        ``created on 3 of 4 nodes; failed on chr-2: timeout``.
        """
        if self.verdict == Verdict.NO_TARGETS:
            return "no target nodes"

        text = f"{verb} on {len(self.successes)} of {self.total} nodes"
        if self.failures:
            details = ", ".join(
                f"{node.name}: {format_reason(reason)}" for node, reason in self.failures
            )
            text += f"; failed on {details}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        successes = []
        for node, value in self.successes:
            entry = {"node_name": node.name, "node_id": node.id}
            if isinstance(value, Reconciled):
                entry["status"] = value.status
                if value.local_id:
                    entry["id"] = value.local_id
            elif isinstance(value, dict) and value.get(".id"):
                entry["id"] = value[".id"]
            successes.append(entry)

        return {
            "verdict": self.verdict.value,
            "successes": successes,
            "failures": [
                {"node_name": node.name, "node_id": node.id, "error": format_reason(reason)}
                for node, reason in self.failures
            ]
        }


def aggregate(results: List[PerNodeResult]) -> AggregateResult:
    """
    Partition per-node results into successes and failures and pick a verdict.

    Raises:
        TypeError: If an entry carries something other than Ok, Err or TimedOut
    """
    if not results:
        return AggregateResult(Verdict.NO_TARGETS)

    successes: List[Tuple[Node, Any]] = []
    failures: List[Tuple[Node, Any]] = []

    for result in results:
        outcome = result.outcome
        if isinstance(outcome, Ok):
            successes.append((result.node, outcome.value))
        elif isinstance(outcome, Err):
            failures.append((result.node, outcome.reason))
        elif isinstance(outcome, TimedOut):
            failures.append((result.node, TIMEOUT_REASON))
        else:
            raise TypeError(f"Unknown outcome for node {result.node.name}: {outcome!r}")

    if not failures:
        verdict = Verdict.ALL_SUCCEEDED
    elif not successes:
        verdict = Verdict.TOTAL_FAILURE
    else:
        verdict = Verdict.PARTIAL_FAILURE

    return AggregateResult(verdict, successes, failures)
