"""
Base device client interface.

Every transport that talks to a node's configuration API implements this
interface. Implementations must be safe to call concurrently for different
nodes and must not keep shared mutable state between calls.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..cluster.node import Node
from ..utils.logging import logger


class BaseDeviceClient(ABC):
    """
    Abstract base class for device clients.

    ``request`` is the single primitive; resource helpers in subclasses are
    thin wrappers that pick the path and verb.
    """

    def __init__(self, client_name: str):
        self.client_name = client_name
        self.logger = logger.getChild(f"adapter.{client_name}")

    @abstractmethod
    async def request(
        self,
        node: Node,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Execute one call against a node's configuration API.

        Args:
            node: Target node
            method: HTTP verb
            path: Resource path, e.g. ``/ip/dns/static``
            payload: Optional JSON body
            params: Optional query parameters

        Returns:
            Decoded response data

        Raises:
            DeviceRequestError: If the device reports an error
            NodeUnreachableError: If the node cannot be reached
            DeviceTimeoutError: If the request times out
            MalformedResponseError: If the response cannot be decoded
        """
        pass

    @abstractmethod
    async def test_connection(self, node: Node) -> Dict[str, Any]:
        """
        Check that a node answers and return basic system information.

        Raises:
            DeviceError: If the node cannot be queried
        """
        pass

    @abstractmethod
    async def group_create(
        self,
        primary: Node,
        hosts: List[str],
        path: str,
        payload: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """
        Apply one identical creation payload to several hosts.

        Credentials and port are taken from ``primary``. The response holds
        one entry per host that answered: ``{"ip": host, "result": data}`` or
        ``{"ip": host, "error": exc}``.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(client='{self.client_name}')"
