"""
Audit Module

Audit log storage, per-operation audit emission and retention pruning.
"""
from .log import AuditLog
from .emitter import AuditEmitter
from .pruner import LogPruner

__all__ = [
    "AuditLog",
    "AuditEmitter",
    "LogPruner"
]
