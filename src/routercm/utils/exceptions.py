"""
Custom exceptions for routercm.
"""
from typing import Any, Optional


class BaseRouterCMError(Exception):
    """Base exception for all routercm errors."""
    pass


class ConfigError(BaseRouterCMError):
    """Configuration-related errors."""
    pass


class DeviceError(BaseRouterCMError):
    """Base exception for device client errors."""

    def __init__(self, node_name: str, message: str):
        self.node_name = node_name
        super().__init__(message)


class DeviceRequestError(DeviceError):
    """The device answered with an error status."""

    def __init__(
        self,
        node_name: str,
        status: int,
        message: str = "",
        detail: Optional[str] = None
    ):
        self.status = status
        self.message = message
        self.detail = detail
        text = f"Device '{node_name}' returned {status}"
        if message:
            text += f": {message}"
        if detail:
            text += f" ({detail})"
        super().__init__(node_name, text)


class NodeUnreachableError(DeviceError):
    """Node could not be reached at the transport level."""

    def __init__(self, node_name: str, reason: str = ""):
        self.reason = reason
        message = f"Node '{node_name}' is unreachable"
        if reason:
            message += f": {reason}"
        super().__init__(node_name, message)


class DeviceTimeoutError(DeviceError):
    """A single device request timed out."""

    def __init__(self, node_name: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            node_name,
            f"Request to '{node_name}' timed out after {timeout_seconds}s"
        )


class MalformedResponseError(DeviceError):
    """The device returned a body that could not be decoded."""
    pass


class DirectoryError(BaseRouterCMError):
    """Base exception for node directory errors."""
    pass


class NodeNotFoundError(DirectoryError):
    """No node matches the given id or name."""

    def __init__(self, identifier: Any):
        self.identifier = identifier
        super().__init__(f"Node not found: {identifier}")


class DuplicateNodeError(DirectoryError):
    """A node with the same name or host/port already exists."""
    pass


class OrchestrationError(BaseRouterCMError):
    """Base exception for cluster operation errors."""
    pass


class NoTargetsError(OrchestrationError):
    """The resolved node list for an operation is empty."""

    def __init__(self, message: str = "No target nodes for cluster operation"):
        super().__init__(message)


class AuditError(BaseRouterCMError):
    """Audit log storage errors."""
    pass
