"""Persistence for per-user game collections."""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Mapping

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from db.utils import DatabaseEngine
from helpers import now_utc_iso

logger = logging.getLogger(__name__)

USER_COLLECTIONS_TABLE = "user_collections"


class DuplicateCollectionEntry(Exception):
    """The game is already part of the user's collection."""


class UserCollectionRepository:
    """Row storage for ``user_collections`` scoped by ``user_id``.

    Every statement filters on the owning user, so one user can never read
    or delete another user's rows through this class.
    """

    def __init__(
        self,
        db: DatabaseEngine,
        *,
        timestamp_factory: Callable[[], str] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._db = db
        self._timestamp_factory = timestamp_factory or now_utc_iso
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._table = db.quote(USER_COLLECTIONS_TABLE)

    def ensure_schema(self) -> None:
        if self._db.dialect_name in {"mysql", "mariadb"}:
            definition = """
                id VARCHAR(36) PRIMARY KEY,
                user_id VARCHAR(64) NOT NULL,
                game_id BIGINT NOT NULL,
                game_data LONGTEXT NOT NULL,
                created_at VARCHAR(64) NOT NULL,
                UNIQUE (user_id, game_id)
            """
        else:
            definition = """
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                game_id BIGINT NOT NULL,
                game_data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE (user_id, game_id)
            """
        index_name = self._db.quote(f"{USER_COLLECTIONS_TABLE}_user_created_idx")
        with self._db.begin() as conn:
            conn.execute(text(f"CREATE TABLE IF NOT EXISTS {self._table} ({definition})"))
            if self._db.dialect_name not in {"mysql", "mariadb"}:
                conn.execute(
                    text(
                        f"CREATE INDEX IF NOT EXISTS {index_name} "
                        f"ON {self._table} (user_id, created_at)"
                    )
                )

    def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        """Return the user's rows, newest first."""

        with self._db.connect() as conn:
            rows = conn.execute(
                text(
                    f"SELECT id, user_id, game_id, game_data, created_at "
                    f"FROM {self._table} WHERE user_id = :user_id "
                    f"ORDER BY created_at DESC"
                ),
                {"user_id": user_id},
            ).mappings().all()
        return [_row_to_dict(row) for row in rows]

    def exists(self, user_id: str, game_id: int) -> bool:
        with self._db.connect() as conn:
            row = conn.execute(
                text(
                    f"SELECT id FROM {self._table} "
                    f"WHERE user_id = :user_id AND game_id = :game_id"
                ),
                {"user_id": user_id, "game_id": int(game_id)},
            ).first()
        return row is not None

    def insert(self, user_id: str, game_id: int, game_data: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a row and return it; duplicates raise :class:`DuplicateCollectionEntry`."""

        if self.exists(user_id, game_id):
            raise DuplicateCollectionEntry(f"game {game_id} already collected")
        row = {
            "id": self._id_factory(),
            "user_id": user_id,
            "game_id": int(game_id),
            "game_data": json.dumps(dict(game_data), ensure_ascii=False),
            "created_at": self._timestamp_factory(),
        }
        try:
            with self._db.begin() as conn:
                conn.execute(
                    text(
                        f"INSERT INTO {self._table} "
                        f"(id, user_id, game_id, game_data, created_at) "
                        f"VALUES (:id, :user_id, :game_id, :game_data, :created_at)"
                    ),
                    row,
                )
        except IntegrityError as exc:
            raise DuplicateCollectionEntry(f"game {game_id} already collected") from exc
        logger.info("User %s collected game %s", user_id, game_id)
        return _row_to_dict(row)

    def delete(self, user_id: str, game_id: int) -> int:
        """Delete the user's row for ``game_id``; returns the affected row count."""

        with self._db.begin() as conn:
            result = conn.execute(
                text(
                    f"DELETE FROM {self._table} "
                    f"WHERE user_id = :user_id AND game_id = :game_id"
                ),
                {"user_id": user_id, "game_id": int(game_id)},
            )
        return result.rowcount or 0


def _row_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    raw = row["game_data"]
    try:
        game_data = json.loads(raw) if isinstance(raw, str) else raw
    except ValueError:
        logger.warning("Discarding unreadable game_data for row %s", row["id"])
        game_data = None
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "game_id": int(row["game_id"]),
        "game_data": game_data,
        "created_at": row["created_at"],
    }


__all__ = [
    "DuplicateCollectionEntry",
    "USER_COLLECTIONS_TABLE",
    "UserCollectionRepository",
]
