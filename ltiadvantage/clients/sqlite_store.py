"""SQLite-backed persistence for roster user records."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from ltiadvantage.models.user import UserResult


class UserResultStore(Protocol):
    """Persistence seam used by the membership synchroniser."""

    def load(
        self, platform_id: str, resource_link_id: Optional[str], lti_user_id: str
    ) -> Optional[UserResult]:
        ...

    def save(self, user: UserResult) -> UserResult:
        ...

    def delete(self, user: UserResult) -> None:
        ...

    def list_for_resource_link(
        self, platform_id: str, resource_link_id: str
    ) -> List[UserResult]:
        ...


class SQLiteUserResultStore:
    """User records keyed by (platform, resource link, user id)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_results (
                    platform_id TEXT NOT NULL,
                    resource_link_id TEXT NOT NULL,
                    lti_user_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (platform_id, resource_link_id, lti_user_id)
                )
                """
            )

    def load(
        self, platform_id: str, resource_link_id: Optional[str], lti_user_id: str
    ) -> Optional[UserResult]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT data FROM user_results
                WHERE platform_id = ? AND resource_link_id = ? AND lti_user_id = ?
                """,
                (platform_id, resource_link_id or "", lti_user_id),
            ).fetchone()
        if not row:
            return None
        return UserResult.model_validate_json(row["data"])

    def save(self, user: UserResult) -> UserResult:
        """Insert or update a record, maintaining its created/updated stamps."""
        now = datetime.now(timezone.utc)
        if user.created is None:
            user.created = now
        user.updated = now
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_results (platform_id, resource_link_id, lti_user_id, data)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(platform_id, resource_link_id, lti_user_id)
                DO UPDATE SET data = excluded.data
                """,
                (
                    user.platform_id,
                    user.resource_link_id or "",
                    user.lti_user_id,
                    user.model_dump_json(),
                ),
            )
        return user

    def delete(self, user: UserResult) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                DELETE FROM user_results
                WHERE platform_id = ? AND resource_link_id = ? AND lti_user_id = ?
                """,
                (user.platform_id, user.resource_link_id or "", user.lti_user_id),
            )

    def list_for_resource_link(
        self, platform_id: str, resource_link_id: str
    ) -> List[UserResult]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT data FROM user_results
                WHERE platform_id = ? AND resource_link_id = ?
                ORDER BY lti_user_id
                """,
                (platform_id, resource_link_id),
            ).fetchall()
        return [UserResult.model_validate_json(row["data"]) for row in rows]


__all__ = ["SQLiteUserResultStore", "UserResultStore"]
