#!/usr/bin/env python3
"""Search the catalog and manage a game collection from the terminal.

Usage::

    collection_cli.py search TEXT...
    collection_cli.py popular
    collection_cli.py list [dateAdded|releaseDate|name]
    collection_cli.py add GAME_ID
    collection_cli.py remove GAME_ID

Signed-in commands use ``AEROGAMES_USER_ID`` and ``AEROGAMES_ACCESS_TOKEN``;
without them the collection is the read-only local copy.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import config
from client.api import GameAPIClient
from collection.storage import LocalStorage
from collection.store import SORT_CRITERIA, CollectionStore, Session
from helpers import coerce_game_id, format_rating, format_release_date
from search.controller import SearchController

USAGE = "usage: collection_cli.py {search TEXT|popular|list [SORT]|add ID|remove ID}"


class PrintNotifier:
    def __init__(self, out: Callable[[str], None]) -> None:
        self._out = out

    def notify(self, level: str, message: str) -> None:
        self._out(f"[{level}] {message}")


def format_game(game: Mapping[str, Any]) -> str:
    parts = [f"{game.get('id')}: {game.get('name') or 'Unknown'}"]
    released = format_release_date(game.get("first_release_date"))
    if released:
        parts.append(f"({released})")
    rating = format_rating(game.get("rating"))
    if rating:
        parts.append(f"- {rating}/10")
    return " ".join(parts)


def session_from_config() -> Session | None:
    if config.SESSION_USER_ID and config.SESSION_ACCESS_TOKEN:
        return Session(config.SESSION_USER_ID, config.SESSION_ACCESS_TOKEN)
    return None


def _print_games(games: Sequence[Mapping[str, Any]], out: Callable[[str], None], empty: str) -> None:
    if not games:
        out(empty)
        return
    for game in games:
        out(format_game(game))


def run(
    argv: Sequence[str],
    *,
    api: Any,
    storage: Any,
    session: Session | None,
    out: Callable[[str], None] = print,
) -> int:
    if not argv:
        out(USAGE)
        return 2
    command, args = argv[0], list(argv[1:])

    if command == "search":
        controller = SearchController(api)
        controller.set_query(" ".join(args))
        controller.flush()
        state = controller.state
        if state.error:
            out(state.error)
            return 1
        _print_games(state.results, out, "No games found.")
        return 0

    if command == "popular":
        _print_games(SearchController(api).load_suggestions(), out, "No popular games available.")
        return 0

    store = CollectionStore.for_session(
        session, api=api, storage=storage, notifier=PrintNotifier(out)
    )
    store.load()

    if command == "list":
        criterion = args[0] if args else "dateAdded"
        if criterion not in SORT_CRITERIA:
            out(f"Unknown sort '{criterion}'; choose one of {', '.join(SORT_CRITERIA)}.")
            return 2
        _print_games(store.sorted_view(criterion), out, "Your collection is empty.")
        return 0

    if command in {"add", "remove"}:
        game_id = coerce_game_id(args[0]) if args else None
        if game_id is None:
            out("Invalid game ID")
            return 2
        if command == "remove":
            store.remove(game_id)
            return 0 if store.is_authenticated and not store.contains(game_id) else 1
        game = api.get_game_details(game_id) if store.is_authenticated else {"id": game_id}
        if game is None:
            out("Game not found")
            return 1
        return 0 if store.add(game) else 1

    out(USAGE)
    return 2


def main(argv: Sequence[str] | None = None) -> int:
    api = GameAPIClient(config.API_BASE_URL, timeout=config.API_REQUEST_TIMEOUT_SECONDS)
    storage = LocalStorage(config.COLLECTION_STORAGE_PATH)
    return run(
        sys.argv[1:] if argv is None else argv,
        api=api,
        storage=storage,
        session=session_from_config(),
    )


if __name__ == "__main__":
    sys.exit(main())
