"""Client-side view of a user's game collection.

A signed-in user's collection lives in the remote ``/api/user/collections``
store; the in-memory list here is a read cache of it that only changes after
the remote write succeeded and is mirrored into local storage. Guests, and
signed-in users whose remote load fails, get a read-only view of that copy.
"""

from __future__ import annotations

import json
import locale
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Protocol

from client.api import APIClientError, GameAPIClient
from helpers import coerce_game_id, epoch_ms_from_iso, now_ms

logger = logging.getLogger(__name__)

COLLECTION_KEY = "aerolab-game-collection"
SORT_CRITERIA = ("dateAdded", "releaseDate", "name")


@dataclass(frozen=True)
class Session:
    user_id: str
    access_token: str


class Notifier(Protocol):
    def notify(self, level: str, message: str) -> None: ...


class LoggingNotifier:
    """Default notifier: transient messages end up in the log."""

    def notify(self, level: str, message: str) -> None:
        if level == "error":
            logger.warning("%s", message)
        else:
            logger.info("%s", message)


class LocalCollection:
    """Guest variant backed by a string key/value storage."""

    writable = False

    def __init__(self, storage: Any, key: str = COLLECTION_KEY) -> None:
        self._storage = storage
        self._key = key

    def load(self) -> list[dict[str, Any]]:
        raw = self._storage.get_item(self._key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Error parsing saved collection under %s", self._key)
            return []
        if not isinstance(data, list):
            return []
        return [dict(item) for item in data if isinstance(item, Mapping)]

    def save(self, games: Iterable[Mapping[str, Any]]) -> None:
        items = [dict(game) for game in games]
        self._storage.set_item(self._key, json.dumps(items, ensure_ascii=False))
        logger.info("Collection saved to local storage: %d games", len(items))


class RemoteCollection:
    """Signed-in variant backed by the collections API."""

    writable = True

    def __init__(self, session: Session, api: GameAPIClient) -> None:
        self.session = session
        self._api = api

    def load(self) -> list[dict[str, Any]]:
        rows = self._api.list_collection(self.session.access_token) or []
        games: list[dict[str, Any]] = []
        for row in rows:
            if not isinstance(row, Mapping) or not isinstance(row.get("game_data"), Mapping):
                continue
            game = dict(row["game_data"])
            game["collectedAt"] = epoch_ms_from_iso(row.get("created_at")) or 0
            games.append(game)
        return games

    def add(self, game: Mapping[str, Any]) -> None:
        self._api.add_to_collection(self.session.access_token, game["id"], game)

    def remove(self, game_id: int) -> None:
        self._api.remove_from_collection(self.session.access_token, game_id)


def _needs_details(game: Mapping[str, Any]) -> bool:
    return not game.get("rating") or game.get("platforms") is None or game.get("screenshots") is None


def _name_key(game: Mapping[str, Any]) -> tuple[str, str]:
    name = str(game.get("name") or "")
    try:
        collated = locale.strxfrm(name.casefold())
    except (ValueError, OSError):
        collated = name.casefold()
    return collated, name


class CollectionStore:
    """Collection state for one session, selected once per session."""

    def __init__(
        self,
        backend: RemoteCollection | LocalCollection,
        *,
        fallback: LocalCollection | None = None,
        details_fetcher: Callable[[int], Mapping[str, Any] | None] | None = None,
        notifier: Notifier | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.backend = backend
        self._fallback = fallback
        self._details_fetcher = details_fetcher
        self._notifier = notifier or LoggingNotifier()
        self._clock_ms = clock_ms or now_ms
        self._items: list[dict[str, Any]] = []
        self._listeners: list[Callable[[list[dict[str, Any]]], None]] = []
        self.is_loading = False

    @classmethod
    def for_session(
        cls,
        session: Session | None,
        *,
        api: GameAPIClient,
        storage: Any,
        notifier: Notifier | None = None,
        details_fetcher: Callable[[int], Mapping[str, Any] | None] | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> "CollectionStore":
        local = LocalCollection(storage)
        if session is None:
            return cls(local, notifier=notifier, clock_ms=clock_ms)
        return cls(
            RemoteCollection(session, api),
            fallback=local,
            details_fetcher=details_fetcher or api.get_game_details,
            notifier=notifier,
            clock_ms=clock_ms,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.backend.writable

    @property
    def items(self) -> list[dict[str, Any]]:
        return list(self._items)

    def subscribe(self, callback: Callable[[list[dict[str, Any]]], None]) -> Callable[[], None]:
        """Register ``callback`` for state changes; returns an unsubscribe function."""

        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _set_items(self, items: list[dict[str, Any]], *, mirror: bool = True) -> None:
        self._items = items
        snapshot = list(items)
        if mirror and self.backend.writable and self._fallback is not None:
            try:
                self._fallback.save(snapshot)
            except OSError as exc:
                logger.warning("Could not mirror collection to local storage: %s", exc)
        for listener in list(self._listeners):
            listener(snapshot)

    def load(self) -> list[dict[str, Any]]:
        self.is_loading = True
        try:
            mirror = True
            try:
                items = self.backend.load()
            except APIClientError as exc:
                logger.error("Error loading collection from remote store: %s", exc)
                items = self._fallback.load() if self._fallback is not None else []
                mirror = False
            self._set_items(items, mirror=mirror)
        finally:
            self.is_loading = False
        return self.items

    def contains(self, game_id: Any) -> bool:
        numeric = coerce_game_id(game_id)
        return numeric is not None and any(game.get("id") == numeric for game in self._items)

    def size(self) -> int:
        return len(self._items)

    def add(self, game: Mapping[str, Any]) -> bool:
        if not self.backend.writable:
            self._notifier.notify("error", "Please sign in to add games to your collection")
            return False

        name = game.get("name") or "Game"
        numeric = coerce_game_id(game.get("id"))
        if numeric is None:
            logger.error("Refusing to add game without a valid id: %r", game.get("id"))
            self._notifier.notify("error", "Failed to add game to collection")
            return False
        if self.contains(numeric):
            self._notifier.notify("error", f"{name} is already in your collection")
            return False

        game_to_add = dict(game)
        if _needs_details(game) and self._details_fetcher is not None:
            details = self._details_fetcher(numeric)
            if details:
                game_to_add = dict(details)
        game_to_add["id"] = numeric
        game_to_add["collectedAt"] = self._clock_ms()

        try:
            self.backend.add(game_to_add)
        except APIClientError as exc:
            logger.error("Error adding game %s to collection: %s", numeric, exc)
            self._notifier.notify("error", exc.message or "Failed to add game to collection")
            return False

        self._set_items([*self._items, game_to_add])
        self._notifier.notify("success", f"{name} added to your collection!")
        return True

    def remove(self, game_id: Any) -> None:
        if not self.backend.writable:
            self._notifier.notify("error", "Please sign in to remove games from your collection")
            return

        numeric = coerce_game_id(game_id)
        if numeric is None:
            self._notifier.notify("error", "Failed to remove from collection")
            return
        removed = next((game for game in self._items if game.get("id") == numeric), None)
        try:
            self.backend.remove(numeric)
        except APIClientError as exc:
            logger.error("Error removing game %s from collection: %s", game_id, exc)
            self._notifier.notify("error", "Failed to remove from collection")
            return

        self._set_items([game for game in self._items if game.get("id") != numeric])
        if removed is not None:
            self._notifier.notify("success", f"{removed.get('name')} removed from your collection")

    def sorted_view(self, criterion: str) -> list[dict[str, Any]]:
        items = list(self._items)
        if criterion == "dateAdded":
            items.sort(key=lambda game: game.get("collectedAt") or 0, reverse=True)
        elif criterion == "releaseDate":
            items.sort(
                key=lambda game: (
                    not game.get("first_release_date"),
                    -(game.get("first_release_date") or 0),
                )
            )
        elif criterion == "name":
            items.sort(key=_name_key)
        else:
            raise ValueError(f"unknown sort criterion: {criterion!r}")
        return items


__all__ = [
    "COLLECTION_KEY",
    "CollectionStore",
    "LocalCollection",
    "LoggingNotifier",
    "Notifier",
    "RemoteCollection",
    "SORT_CRITERIA",
    "Session",
]
