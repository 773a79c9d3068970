"""Engine construction for the collections database."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine, make_url

DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0

_SQLITE_PRAGMAS = (
    ("journal_mode", "WAL"),
    ("foreign_keys", "ON"),
)


class DatabaseEngine:
    """An engine plus the dialect details the repositories need."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        with self._engine.connect() as conn:
            yield conn

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """Yield a connection whose transaction commits when the block exits cleanly."""

        with self._engine.begin() as conn:
            yield conn

    def quote(self, identifier: str) -> str:
        return self._engine.dialect.identifier_preparer.quote(identifier)

    def dispose(self) -> None:
        self._engine.dispose()


def _tune_sqlite_connection(conn: Any, busy_timeout: float) -> None:
    if not isinstance(conn, sqlite3.Connection):
        return
    statements = [f"PRAGMA {name}={value}" for name, value in _SQLITE_PRAGMAS]
    busy_timeout_ms = int(max(busy_timeout, 0) * 1000)
    if busy_timeout_ms:
        statements.insert(0, f"PRAGMA busy_timeout={busy_timeout_ms}")
    for statement in statements:
        try:
            conn.execute(statement).fetchall()
        except sqlite3.OperationalError:  # pragma: no cover - unsupported pragma
            continue


def _sqlite_database_path(database: str | None) -> str:
    """Return an absolute path for a SQLite database, creating its directory."""

    if not database or database == ":memory:":
        raise ValueError("collections database must be a SQLite file path")
    path = Path(database).expanduser()
    if not path.is_absolute():
        path = path.resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return os.fspath(path)


def build_engine_from_dsn(
    dsn: str,
    *,
    timeout: float | None = None,
    pool_recycle: int = 1_800,
    pool_pre_ping: bool = True,
) -> DatabaseEngine:
    """Return a :class:`DatabaseEngine` for ``dsn``.

    SQLite files are opened shareable across Flask worker threads in WAL
    mode; any other SQLAlchemy URL is passed through unchanged.
    """

    url = make_url(dsn)
    busy_timeout = timeout if timeout is not None else DEFAULT_CONNECT_TIMEOUT_SECONDS
    is_sqlite = url.get_backend_name() == "sqlite"

    connect_args: dict[str, object] = {}
    if is_sqlite:
        url = url.set(database=_sqlite_database_path(url.database))
        connect_args["check_same_thread"] = False

    engine = create_engine(
        url,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        connect_args=connect_args,
    )

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, connection_record):  # type: ignore[override]
            _tune_sqlite_connection(dbapi_conn, busy_timeout)

    return DatabaseEngine(engine)


__all__ = ["DEFAULT_CONNECT_TIMEOUT_SECONDS", "DatabaseEngine", "build_engine_from_dsn"]
