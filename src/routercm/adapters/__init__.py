"""Device clients."""
from .base import BaseDeviceClient
from .routeros_http import RouterOSClient

__all__ = [
    "BaseDeviceClient",
    "RouterOSClient"
]
