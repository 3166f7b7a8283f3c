"""Storage backends for user preferences and emitted comments."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar, Union

from monolog.adaptive.models import (
    RoleWeightMap,
    UserPreferences,
    weights_from_payload,
    weights_to_payload,
)
from monolog.comments.models import Comment
from monolog.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Storage(Protocol):
    """Async persistence collaborator used by the learner and scheduler."""

    async def get_role_weights(self, user_id: str) -> Optional[RoleWeightMap]: ...

    async def put_role_weights(self, user_id: str, weights: RoleWeightMap) -> None: ...

    async def append_comment(self, session_id: str, comment: Comment) -> None: ...


class PreferenceStorage(Storage, Protocol):
    """Storage that also keeps the full per-user record.

    The learner uses these methods when a backend provides them and falls
    back to role weights otherwise.
    """

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]: ...

    async def put_preferences(self, preferences: UserPreferences) -> None: ...


class InMemoryStorage:
    """Process-local storage; records are copied in and out as payloads."""

    def __init__(self) -> None:
        self._preferences: Dict[str, Dict[str, Any]] = {}
        self._comments: Dict[str, List[Dict[str, Any]]] = {}

    async def get_role_weights(self, user_id: str) -> Optional[RoleWeightMap]:
        payload = self._preferences.get(user_id)
        if payload is None:
            return None
        return weights_from_payload(payload["role_weights"])

    async def put_role_weights(self, user_id: str, weights: RoleWeightMap) -> None:
        payload = self._preferences.setdefault(
            user_id, UserPreferences(user_id=user_id).to_payload()
        )
        payload["role_weights"] = weights_to_payload(weights)

    async def append_comment(self, session_id: str, comment: Comment) -> None:
        self._comments.setdefault(session_id, []).append(comment.to_payload())

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        payload = self._preferences.get(user_id)
        return UserPreferences.from_payload(payload) if payload else None

    async def put_preferences(self, preferences: UserPreferences) -> None:
        self._preferences[preferences.user_id] = json.loads(json.dumps(preferences.to_payload()))

    async def list_comments(self, session_id: str) -> List[Dict[str, Any]]:
        return list(self._comments.get(session_id, []))

    async def close(self) -> None:
        return None


class SQLiteStorage:
    """SQLite-backed storage; every call runs on one dedicated worker thread."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="monolog-sqlite")
        self.connection = sqlite3.connect(self.path, check_same_thread=False)
        self.connection.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS preferences (
                user_id TEXT PRIMARY KEY,
                role_weights TEXT NOT NULL,
                session_count INTEGER NOT NULL DEFAULT 0,
                topic_preferences TEXT NOT NULL,
                interaction_history TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS comments (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                source TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_comments_session ON comments(session_id);
            """
        )
        self.connection.commit()

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._worker, fn, *args)
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite operation {fn.__name__} failed: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Blocking helpers (worker thread only)
    # ------------------------------------------------------------------ #

    def _select_preferences(self, user_id: str) -> Optional[UserPreferences]:
        row = self.connection.execute(
            "SELECT * FROM preferences WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return UserPreferences.from_payload(
            {
                "user_id": row["user_id"],
                "role_weights": json.loads(row["role_weights"]),
                "session_count": row["session_count"],
                "topic_preferences": json.loads(row["topic_preferences"]),
                "interaction_history": json.loads(row["interaction_history"]),
            }
        )

    def _upsert_preferences(self, preferences: UserPreferences) -> None:
        payload = preferences.to_payload()
        self.connection.execute(
            """
            INSERT INTO preferences (
                user_id, role_weights, session_count, topic_preferences,
                interaction_history, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                role_weights=excluded.role_weights,
                session_count=excluded.session_count,
                topic_preferences=excluded.topic_preferences,
                interaction_history=excluded.interaction_history,
                updated_at=excluded.updated_at
            """,
            (
                payload["user_id"],
                json.dumps(payload["role_weights"]),
                payload["session_count"],
                json.dumps(payload["topic_preferences"], ensure_ascii=False),
                json.dumps(payload["interaction_history"]),
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        self.connection.commit()

    def _update_weights(self, user_id: str, weights: RoleWeightMap) -> None:
        preferences = self._select_preferences(user_id) or UserPreferences(user_id=user_id)
        preferences.role_weights = dict(weights)
        self._upsert_preferences(preferences)

    def _insert_comment(self, session_id: str, comment: Comment) -> None:
        payload = comment.to_payload()
        self.connection.execute(
            """
            INSERT OR REPLACE INTO comments (id, session_id, role, content, source, payload, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                comment.id,
                session_id,
                comment.role.value,
                comment.content,
                comment.source,
                json.dumps(payload, ensure_ascii=False),
                payload["timestamp"],
            ),
        )
        self.connection.commit()

    def _select_comments(self, session_id: str) -> List[Dict[str, Any]]:
        rows = self.connection.execute(
            "SELECT payload FROM comments WHERE session_id = ? ORDER BY created_at",
            (session_id,),
        ).fetchall()
        return [json.loads(row["payload"]) for row in rows]

    # ------------------------------------------------------------------ #
    # Storage API
    # ------------------------------------------------------------------ #

    async def get_role_weights(self, user_id: str) -> Optional[RoleWeightMap]:
        preferences = await self._call(self._select_preferences, user_id)
        return preferences.role_weights if preferences else None

    async def put_role_weights(self, user_id: str, weights: RoleWeightMap) -> None:
        await self._call(self._update_weights, user_id, weights)

    async def append_comment(self, session_id: str, comment: Comment) -> None:
        await self._call(self._insert_comment, session_id, comment)

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        return await self._call(self._select_preferences, user_id)

    async def put_preferences(self, preferences: UserPreferences) -> None:
        await self._call(self._upsert_preferences, preferences)

    async def list_comments(self, session_id: str) -> List[Dict[str, Any]]:
        return await self._call(self._select_comments, session_id)

    async def close(self) -> None:
        try:
            await self._call(self.connection.close)
        finally:
            self._worker.shutdown(wait=True)
        logger.debug("Closed SQLite storage at %s", self.path)


__all__ = ["Storage", "PreferenceStorage", "InMemoryStorage", "SQLiteStorage"]
