"""
SQLite-backed node directory.

Owns the lifecycle of node records (create/update/delete, status). The
orchestration engine only reads snapshots from it, fresh on every call.
"""
import re
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .node import Node, STATUS_OFFLINE, STATUS_ONLINE, STATUS_UNKNOWN
from ..utils.exceptions import DirectoryError, DuplicateNodeError, NodeNotFoundError
from ..utils.logging import logger


HOST_PATTERN = re.compile(r"^[\w.-]+$")
VALID_STATUSES = (STATUS_ONLINE, STATUS_OFFLINE, STATUS_UNKNOWN)
UPDATABLE_FIELDS = ("name", "host", "port", "username", "password", "status", "last_seen_at")


class NodeDirectory:
    """
    Thread-safe node storage using SQLite.

    Nodes are returned as immutable ``Node`` snapshots; nothing is cached
    between calls.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize the node directory.

        Args:
            storage_path: Path to SQLite database file (defaults to ~/.routercm/routercm.db)
        """
        if storage_path is None:
            storage_path = Path.home() / ".routercm" / "routercm.db"

        self.storage_path = Path(storage_path).expanduser()
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

        # Thread-local connections for thread safety
        self._local = threading.local()

        self.logger = logger.getChild("directory")

        self._init_schema()

        self.logger.info(f"Node directory initialized: {self.storage_path}")

    @contextmanager
    def _get_connection(self):
        """Get thread-local database connection with WAL mode."""
        if not hasattr(self._local, "conn"):
            self._local.conn = sqlite3.connect(
                str(self.storage_path),
                check_same_thread=False
            )
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.row_factory = sqlite3.Row

        try:
            yield self._local.conn
        except Exception:
            self._local.conn.rollback()
            raise
        else:
            self._local.conn.commit()

    def _init_schema(self):
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS nodes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    host TEXT NOT NULL,
                    port INTEGER NOT NULL DEFAULT 80,
                    username TEXT NOT NULL,
                    password TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'unknown',
                    last_seen_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    UNIQUE (host, port)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_nodes_status ON nodes(status)")

    # Queries

    def list_nodes(self) -> List[Node]:
        """Return all nodes ordered by name."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM nodes ORDER BY name ASC").fetchall()
        return [self._row_to_node(row) for row in rows]

    def list_active_nodes(self) -> List[Node]:
        """Return nodes whose status is not offline, ordered by name."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM nodes WHERE status != ? ORDER BY name ASC",
                (STATUS_OFFLINE,)
            ).fetchall()
        return [self._row_to_node(row) for row in rows]

    def get_node(self, node_id: int) -> Node:
        """
        Get a node by id.

        Raises:
            NodeNotFoundError: If no node has this id
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM nodes WHERE id = ?", (node_id,)).fetchone()
        if not row:
            raise NodeNotFoundError(node_id)
        return self._row_to_node(row)

    def get_node_by_name(self, name: str) -> Node:
        """
        Get a node by its unique name.

        Raises:
            NodeNotFoundError: If no node has this name
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM nodes WHERE name = ?", (name,)).fetchone()
        if not row:
            raise NodeNotFoundError(name)
        return self._row_to_node(row)

    def get_cluster_stats(self) -> Dict[str, int]:
        """Count total, active and offline nodes."""
        with self._get_connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
            active = conn.execute(
                "SELECT COUNT(*) FROM nodes WHERE status != ?",
                (STATUS_OFFLINE,)
            ).fetchone()[0]

        return {
            "total_nodes": total,
            "active_nodes": active,
            "offline_nodes": total - active
        }

    # Lifecycle

    def create_node(
        self,
        name: str,
        host: str,
        username: str,
        password: str,
        port: int = 80,
        status: str = STATUS_UNKNOWN
    ) -> Node:
        """
        Create a node record.

        Raises:
            DirectoryError: If a field is invalid
            DuplicateNodeError: If the name or host/port pair is taken
        """
        self._validate({
            "name": name,
            "host": host,
            "port": port,
            "username": username,
            "password": password,
            "status": status
        })

        now = datetime.now().timestamp()
        try:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    INSERT INTO nodes (
                        name, host, port, username, password,
                        status, last_seen_at, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (name, host, port, username, password, status, None, now, now))
                node_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise DuplicateNodeError(f"Node '{name}' ({host}:{port}) already exists: {e}")

        self.logger.info(f"Created node: {name} ({host}:{port})")
        return self.get_node(node_id)

    def update_node(self, node_id: int, **changes: Any) -> Node:
        """
        Update fields of a node.

        Raises:
            NodeNotFoundError: If the node does not exist
            DirectoryError: If a field is unknown or invalid
            DuplicateNodeError: If the change collides with another node
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise DirectoryError(f"Unknown node fields: {', '.join(sorted(unknown))}")

        current = self.get_node(node_id)
        if not changes:
            return current

        self._validate(changes)

        updates = [f"{key} = ?" for key in changes]
        params = list(changes.values())
        updates.append("updated_at = ?")
        params.append(datetime.now().timestamp())
        params.append(node_id)

        try:
            with self._get_connection() as conn:
                conn.execute(
                    f"UPDATE nodes SET {', '.join(updates)} WHERE id = ?",
                    params
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateNodeError(f"Node update collides with an existing node: {e}")

        self.logger.debug(f"Updated node {current.name}: {sorted(changes)}")
        return self.get_node(node_id)

    def delete_node(self, node_id: int) -> Node:
        """
        Delete a node and return the deleted record.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        node = self.get_node(node_id)
        with self._get_connection() as conn:
            conn.execute("DELETE FROM nodes WHERE id = ?", (node_id,))
        self.logger.info(f"Deleted node: {node.name}")
        return node

    def touch_node(self, node_id: int) -> Node:
        """Mark a node online and record when it was last seen."""
        return self.update_node(
            node_id,
            status=STATUS_ONLINE,
            last_seen_at=datetime.now().timestamp()
        )

    def set_node_offline(self, node_id: int) -> Node:
        """Mark a node offline."""
        return self.update_node(node_id, status=STATUS_OFFLINE)

    def close(self):
        """Close database connection."""
        if hasattr(self._local, "conn"):
            self._local.conn.close()
            delattr(self._local, "conn")

    def _validate(self, fields: Dict[str, Any]):
        if "name" in fields:
            name = fields["name"]
            if not name or len(name) > 100:
                raise DirectoryError("Node name must be between 1 and 100 characters")
        if "host" in fields and not HOST_PATTERN.match(fields["host"] or ""):
            raise DirectoryError("Host must be a valid hostname or IP address")
        if "port" in fields:
            port = fields["port"]
            if not isinstance(port, int) or not 0 < port <= 65535:
                raise DirectoryError("Port must be between 1 and 65535")
        for key in ("username", "password"):
            if key in fields and not fields[key]:
                raise DirectoryError(f"Node {key} is required")
        if "status" in fields and fields["status"] not in VALID_STATUSES:
            raise DirectoryError(f"Unknown node status: {fields['status']}")

    def _row_to_node(self, row: sqlite3.Row) -> Node:
        return Node(
            id=row["id"],
            name=row["name"],
            host=row["host"],
            port=row["port"],
            username=row["username"],
            password=row["password"],
            status=row["status"],
            last_seen_at=row["last_seen_at"]
        )
