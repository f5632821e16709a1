"""
Resource services built on the cluster orchestrator.
"""
from .dns import DNSService
from .tunnels import TunnelService
from .users import RouterOSUserService
from .cluster import ClusterService

__all__ = [
    "DNSService",
    "TunnelService",
    "RouterOSUserService",
    "ClusterService"
]
