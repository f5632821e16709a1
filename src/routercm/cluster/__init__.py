"""
Cluster Module

Node records, the node directory and periodic health checks.
"""
from .node import Node, STATUS_ONLINE, STATUS_OFFLINE, STATUS_UNKNOWN
from .directory import NodeDirectory
from .health_check import HealthChecker

__all__ = [
    "Node",
    "STATUS_ONLINE",
    "STATUS_OFFLINE",
    "STATUS_UNKNOWN",
    "NodeDirectory",
    "HealthChecker"
]
