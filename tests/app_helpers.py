"""Shared testing helpers: fake HTTP openers, clocks and app construction."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, Callable
from urllib.error import HTTPError, URLError

from auth.identity import AuthUser
from db.user_collections import UserCollectionRepository
from db.utils import build_engine_from_dsn
from igdb.cache import ResponseCache
from igdb.client import CatalogClient
from igdb.token import TokenManager
from web.app_factory import AppServices, create_app


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, payload: Any = None, *, body: bytes | None = None) -> None:
        if body is None:
            body = json.dumps(payload).encode("utf-8") if payload is not None else b""
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None


def http_error(url: str, code: int, payload: Any = None, headers: dict | None = None) -> HTTPError:
    body = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return HTTPError(url, code, f"status {code}", headers or {}, io.BytesIO(body))


class FakeOpener:
    """Stand-in for ``urlopen`` that answers from a queue or a router.

    Queue items may be JSON payloads, :class:`FakeResponse` objects,
    exceptions (raised) or callables receiving the request.
    """

    def __init__(self, *responses: Any, router: Callable[[Any], Any] | None = None) -> None:
        self.responses = list(responses)
        self.router = router
        self.requests: list[Any] = []
        self.timeouts: list[float | None] = []

    def __call__(self, request: Any, timeout: float | None = None) -> FakeResponse:
        self.requests.append(request)
        self.timeouts.append(timeout)
        if self.router is not None:
            item = self.router(request)
        elif self.responses:
            item = self.responses.pop(0)
        else:
            raise URLError("no fake response queued")
        if callable(item) and not isinstance(item, FakeResponse):
            item = item(request)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, FakeResponse):
            return item
        return FakeResponse(item)

    def bodies(self) -> list[str]:
        return [request.data.decode("utf-8") for request in self.requests if request.data]

    def calls_to(self, fragment: str) -> list[Any]:
        return [request for request in self.requests if fragment in request.full_url]


def token_payload(token: str = "token-1", expires_in: int = 3600) -> dict[str, Any]:
    return {"access_token": token, "expires_in": expires_in, "token_type": "bearer"}


def igdb_router(games: dict[int, dict[str, Any]], search_results: list[dict[str, Any]] | None = None):
    """Route Twitch and IGDB requests to canned payloads."""

    def route(request: Any) -> Any:
        if "id.twitch.tv" in request.full_url:
            return token_payload()
        body = request.data.decode("utf-8")
        if body.startswith("search"):
            return list(search_results or [])
        if "sort rating desc" in body:
            return list(search_results or [])
        if "where id = (" in body:
            ids_text = body.split("where id = (", 1)[1].split(")", 1)[0]
            wanted = {int(value) for value in ids_text.split(",")}
            return [games[game_id] for game_id in sorted(wanted) if game_id in games]
        game_id = int(body.split("where id = ", 1)[1].split(";", 1)[0])
        return [games[game_id]] if game_id in games else []

    return route


def build_catalog(opener: FakeOpener, clock: FakeClock | None = None) -> CatalogClient:
    clock = clock or FakeClock()
    tokens = TokenManager("client-id", "client-secret", opener=opener, clock=clock)
    return CatalogClient(
        tokens,
        game_cache=ResponseCache(600, clock=clock, name="game-cache"),
        search_cache=ResponseCache(300, clock=clock, name="search-cache"),
        opener=opener,
        sleep=lambda _seconds: None,
    )


class FakeIdentity:
    """Accepts ``token-<user id>`` bearer tokens."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def get_user(self, token: str) -> AuthUser | None:
        self.calls.append(token)
        if token.startswith("token-"):
            user_id = token[len("token-"):]
            return AuthUser(id=user_id, email=f"{user_id}@example.com")
        return None


def build_repository(tmp_path: Path, **kwargs: Any) -> UserCollectionRepository:
    engine = build_engine_from_dsn(f"sqlite:///{(tmp_path / 'collections.db').as_posix()}")
    repository = UserCollectionRepository(engine, **kwargs)
    repository.ensure_schema()
    return repository


def build_test_app(
    tmp_path: Path,
    *,
    catalog: CatalogClient,
    repository: UserCollectionRepository | None = None,
    identity: FakeIdentity | None = None,
):
    services = AppServices(
        catalog=catalog,
        identity=identity or FakeIdentity(),
        repository=repository or build_repository(tmp_path),
    )
    flask_app = create_app(services, configure_logs=False)
    flask_app.config["TESTING"] = True
    return flask_app


def make_igdb_game(game_id, name, **overrides):
    payload = {
        "id": game_id,
        "name": name,
        "cover": {"id": game_id * 10, "url": f"//images.igdb.com/igdb/image/upload/t_thumb/co{game_id}.jpg"},
        "first_release_date": 1_600_000_000,
        "rating": 87.5,
        "platforms": [{"id": 6, "name": "PC (Microsoft Windows)"}],
        "screenshots": [
            {"id": 1, "url": f"//images.igdb.com/igdb/image/upload/t_thumb/sc{game_id}.jpg"}
        ],
        "similar_games": [],
        "slug": name.lower().replace(" ", "-"),
        "involved_companies": [
            {"company": {"name": "Publisher Co"}, "developer": False, "publisher": True},
            {"company": {"name": "Studio Dev"}, "developer": True, "publisher": False},
        ],
    }
    payload.update(overrides)
    return payload
