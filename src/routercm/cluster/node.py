"""
Node record for managed RouterOS devices.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional


STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"
STATUS_UNKNOWN = "unknown"


@dataclass(frozen=True)
class Node:
    """A single managed device in the cluster (snapshot read from the directory)."""
    id: int
    name: str
    host: str
    port: int = 80
    username: str = ""
    password: str = field(default="", repr=False)
    status: str = STATUS_UNKNOWN
    last_seen_at: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_OFFLINE

    @property
    def scheme(self) -> str:
        # REST API is served on 80 (www) or 443 (www-ssl)
        return "https" if self.port == 443 else "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Public view of the node, without credentials."""
        data = asdict(self)
        data.pop("password")
        data.pop("username")
        return data
