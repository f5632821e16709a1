"""
SQLite audit log.

Stores one entry per cluster operation or node lifecycle change: who did
what, to which resource, and whether it worked. Lives in the same database
file as the node directory, in its own table.
"""
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..utils.exceptions import AuditError
from ..utils.logging import logger


class AuditLog:
    """
    Thread-safe audit storage using SQLite.

    Features:
    - JSON details per entry
    - Filtered, paginated listing (newest first)
    - Retention pruning
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize the audit log.

        Args:
            storage_path: Path to SQLite database file (defaults to ~/.routercm/routercm.db)
        """
        if storage_path is None:
            storage_path = Path.home() / ".routercm" / "routercm.db"

        self.storage_path = Path(storage_path).expanduser()
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self.logger = logger.getChild("audit")

        self._init_schema()

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
                CREATE TABLE IF NOT EXISTS audit_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    action TEXT NOT NULL,
                    resource_type TEXT NOT NULL,
                    resource_id TEXT,
                    actor_id TEXT,
                    details TEXT,
                    success INTEGER NOT NULL DEFAULT 1,
                    created_at REAL NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_created_at ON audit_logs(created_at DESC)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_logs(action)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_resource_type ON audit_logs(resource_type)")

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        actor_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True
    ) -> Dict[str, Any]:
        """
        Write one audit entry.

        Returns:
            The stored entry

        Raises:
            AuditError: If the entry cannot be stored
        """
        now = datetime.now().timestamp()
        try:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    INSERT INTO audit_logs (
                        action, resource_type, resource_id, actor_id,
                        details, success, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    action,
                    resource_type,
                    None if resource_id is None else str(resource_id),
                    None if actor_id is None else str(actor_id),
                    json.dumps(details or {}, default=str),
                    1 if success else 0,
                    now
                ))
                log_id = cursor.lastrowid
        except sqlite3.Error as e:
            raise AuditError(f"Failed to record audit entry: {e}")

        self.logger.debug(f"Audit: {action} {resource_type} {resource_id} (success={success})")
        return self.get_log(log_id)

    def get_log(self, log_id: int) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM audit_logs WHERE id = ?", (log_id,)).fetchone()
        return self._row_to_dict(row) if row else None

    def list_logs(
        self,
        page: int = 1,
        per_page: int = 50,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        actor_id: Optional[Any] = None,
        success: Optional[bool] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        List entries newest first.

        Args:
            page: 1-based page number
            per_page: Entries per page
            action: Filter by action
            resource_type: Filter by resource type
            actor_id: Filter by actor
            success: Filter by success flag
            from_date: Only entries at or after this time
            to_date: Only entries at or before this time

        Returns:
            List of entry dicts
        """
        where, params = self._build_filters(action, resource_type, actor_id, success, from_date, to_date)
        offset = (max(page, 1) - 1) * per_page

        query = f"SELECT * FROM audit_logs {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        with self._get_connection() as conn:
            rows = conn.execute(query, params + [per_page, offset]).fetchall()

        return [self._row_to_dict(row) for row in rows]

    def count_logs(self, **filters: Any) -> int:
        where, params = self._build_filters(**filters)
        with self._get_connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM audit_logs {where}", params).fetchone()[0]

    def get_stats(self) -> Dict[str, int]:
        """Total entries and entries recorded since midnight."""
        midnight = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
        with self._get_connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM audit_logs").fetchone()[0]
            today = conn.execute(
                "SELECT COUNT(*) FROM audit_logs WHERE created_at >= ?",
                (midnight.timestamp(),)
            ).fetchone()[0]

        return {"total": total, "today": today}

    def prune(self, older_than_days: int) -> int:
        """
        Delete entries older than the given number of days.

        Returns:
            Number of deleted entries
        """
        cutoff = (datetime.now() - timedelta(days=older_than_days)).timestamp()
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM audit_logs WHERE created_at < ?", (cutoff,))
            deleted = cursor.rowcount

        return deleted

    def close(self):
        """Close database connection."""
        if hasattr(self._local, "conn"):
            self._local.conn.close()
            delattr(self._local, "conn")

    def _build_filters(
        self,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        actor_id: Optional[Any] = None,
        success: Optional[bool] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> Tuple[str, List[Any]]:
        clauses = []
        params: List[Any] = []

        if action:
            clauses.append("action = ?")
            params.append(action)
        if resource_type:
            clauses.append("resource_type = ?")
            params.append(resource_type)
        if actor_id is not None:
            clauses.append("actor_id = ?")
            params.append(str(actor_id))
        if success is not None:
            clauses.append("success = ?")
            params.append(1 if success else 0)
        if from_date:
            clauses.append("created_at >= ?")
            params.append(from_date.timestamp())
        if to_date:
            clauses.append("created_at <= ?")
            params.append(to_date.timestamp())

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def _row_to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "action": row["action"],
            "resource_type": row["resource_type"],
            "resource_id": row["resource_id"],
            "actor_id": row["actor_id"],
            "details": json.loads(row["details"]) if row["details"] else {},
            "success": bool(row["success"]),
            "created_at": row["created_at"]
        }
