"""
routercm - cluster configuration manager for RouterOS devices.

Applies DNS, tunnel, address and user changes to a set of independent
RouterOS nodes concurrently, with per-node accounting of what succeeded.
"""
__version__ = "0.1.0"

from .core.orchestrator import ClusterOrchestrator
from .execution import AggregateResult, TargetSpec, Verdict

__all__ = [
    "ClusterOrchestrator",
    "AggregateResult",
    "TargetSpec",
    "Verdict",
    "__version__"
]
