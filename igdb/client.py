"""IGDB catalog client: query building, caching and payload normalization."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from urllib.request import Request, urlopen

from helpers import coerce_game_id
from igdb.cache import (
    MISS,
    ResponseCache,
    game_key,
    popular_key,
    search_key,
    similar_key,
)
from igdb.errors import CatalogError, UpstreamCatalogError
from igdb.token import TokenManager
from igdb.transport import Opener, request_json

logger = logging.getLogger(__name__)

T = TypeVar("T")


__all__ = [
    "CatalogClient",
    "CatalogResult",
    "GamePage",
    "IMAGE_BASE_URL",
    "UNKNOWN_DEVELOPER",
    "absolute_image_url",
    "build_detail_query",
    "build_popular_query",
    "build_search_query",
    "build_similar_query",
    "cover_url_from_cover",
    "extract_developer",
    "normalize_game",
    "normalize_search_result",
    "resolve_igdb_page_size",
]

IMAGE_BASE_URL = "https://images.igdb.com/igdb/image/upload/"
UNKNOWN_DEVELOPER = "Unknown Developer"
SIMILAR_GAMES_LIMIT = 6
BASE_GAME_CATEGORY = 0

DETAIL_FIELDS = (
    "name,cover.url,cover.image_id,first_release_date,rating,platforms.name,"
    "screenshots.url,screenshots.image_id,similar_games,slug,"
    "involved_companies.company.name,involved_companies.developer"
)
SEARCH_FIELDS = "name,cover.url,cover.image_id,first_release_date,slug"
POPULAR_FIELDS = f"{SEARCH_FIELDS},rating"


def resolve_igdb_page_size(limit: Any, *, default: int = 10, max_page_size: int = 500) -> int:
    """Return a sanitized IGDB ``limit`` within ``1..max_page_size``."""

    if isinstance(limit, bool):
        return default
    try:
        size = int(limit)
    except (TypeError, ValueError):
        return default
    if size <= 0:
        return default
    return min(size, max_page_size)


def absolute_image_url(url: Any, size: str | None = None) -> str:
    """Rewrite an IGDB image URL to ``size`` and make it scheme-qualified."""

    if not isinstance(url, str):
        return ""
    text = url.strip()
    if not text:
        return ""
    if size:
        text = text.replace("t_thumb", size, 1)
    if text.startswith("//"):
        return f"https:{text}"
    if "://" not in text:
        return f"https://{text.lstrip('/')}"
    return text


def cover_url_from_cover(value: Any, size: str = "t_cover_big") -> str:
    """Return the IGDB image URL for an image payload or identifier."""

    if isinstance(value, Mapping):
        url = absolute_image_url(value.get("url"), size)
        if url:
            return url
        raw_id = value.get("image_id")
    else:
        raw_id = value
    image_id = str(raw_id).strip() if raw_id is not None else ""
    if not image_id:
        return ""
    return f"{IMAGE_BASE_URL}{size}/{image_id}.jpg"


def _normalize_image(value: Any, size: str) -> dict[str, Any] | None:
    if not isinstance(value, Mapping):
        return None
    url = cover_url_from_cover(value, size)
    if not url:
        return None
    return {"id": coerce_game_id(value.get("id")), "url": url}


def extract_developer(companies: Any) -> str:
    """Return the first involved company flagged as developer."""

    if isinstance(companies, list):
        for company in companies:
            if not isinstance(company, Mapping) or not company.get("developer"):
                continue
            company_obj = company.get("company")
            name: Any = None
            if isinstance(company_obj, Mapping):
                name = company_obj.get("name")
            elif isinstance(company_obj, str):
                name = company_obj
            if isinstance(name, str) and name.strip():
                return name.strip()
    return UNKNOWN_DEVELOPER


def _named_refs(values: Any) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for value in values or []:
        if isinstance(value, Mapping):
            items.append({"id": coerce_game_id(value.get("id")), "name": value.get("name")})
    return items


def _id_list(values: Any) -> list[int]:
    ids: list[int] = []
    for value in values or []:
        if isinstance(value, Mapping):
            value = value.get("id")
        numeric = coerce_game_id(value)
        if numeric is not None:
            ids.append(numeric)
    return ids


def normalize_search_result(
    item: Mapping[str, Any], *, include_rating: bool = False
) -> dict[str, Any] | None:
    """Return the reduced ``SearchResult`` projection of an IGDB record."""

    if not isinstance(item, Mapping):
        return None
    game_id = coerce_game_id(item.get("id"))
    if game_id is None:
        logger.warning("Skipping IGDB entry with invalid id %s", item.get("id"))
        return None
    result: dict[str, Any] = {
        "id": game_id,
        "name": item.get("name") or "",
        "cover": _normalize_image(item.get("cover"), "t_cover_big"),
        "first_release_date": item.get("first_release_date"),
        "slug": item.get("slug"),
    }
    if include_rating:
        result["rating"] = item.get("rating")
    return result


def normalize_game(item: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the full ``Game`` representation of an IGDB record."""

    base = normalize_search_result(item)
    if base is None:
        return None
    screenshots = []
    for shot in item.get("screenshots") or []:
        normalized = _normalize_image(shot, "t_screenshot_huge")
        if normalized is not None:
            screenshots.append(normalized)
    base.update(
        {
            "rating": item.get("rating"),
            "platforms": _named_refs(item.get("platforms")),
            "screenshots": screenshots,
            "similar_games": _id_list(item.get("similar_games")),
            "developer": extract_developer(item.get("involved_companies")),
        }
    )
    return base


def _escape_search_text(query: str) -> str:
    return query.replace("\\", "\\\\").replace('"', '\\"')


def build_detail_query(game_id: int) -> str:
    return f"fields {DETAIL_FIELDS}; where id = {int(game_id)};"


def build_similar_query(game_ids: Iterable[int]) -> str:
    ids = ",".join(str(int(value)) for value in game_ids)
    return f"fields {SEARCH_FIELDS}; where id = ({ids}); limit {SIMILAR_GAMES_LIMIT};"


def build_search_query(query: str, limit: int) -> str:
    return (
        f'search "{_escape_search_text(query)}"; '
        f"fields {SEARCH_FIELDS}; "
        f"limit {int(limit)}; "
        f"where category = {BASE_GAME_CATEGORY};"
    )


def build_popular_query(limit: int) -> str:
    return (
        f"fields {POPULAR_FIELDS}; "
        "sort rating desc; "
        f"where category = {BASE_GAME_CATEGORY} & rating != null; "
        f"limit {int(limit)};"
    )


@dataclass(frozen=True)
class CatalogResult(Generic[T]):
    """Outcome of a catalog lookup that keeps upstream failures visible."""

    value: T
    error: CatalogError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GamePage:
    game: dict[str, Any]
    similar_games: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"game": self.game, "similarGames": self.similar_games}


class CatalogClient:
    """Read-through cached access to the IGDB ``games`` endpoint.

    Upstream failures never propagate out of the public lookups: they are
    logged and mapped to ``None`` or ``[]``. The ``*_result`` variants return
    a :class:`CatalogResult` carrying the error for callers that need it.
    """

    BASE_URL = "https://api.igdb.com/v4"

    def __init__(
        self,
        tokens: TokenManager,
        *,
        game_cache: ResponseCache,
        search_cache: ResponseCache,
        user_agent: str = "",
        timeout: float = 10.0,
        max_retries: int = 3,
        rate_limit_wait: float = 1.0,
        max_page_size: int = 500,
        opener: Opener | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._tokens = tokens
        self.game_cache = game_cache
        self.search_cache = search_cache
        self._user_agent = (user_agent or "").strip()
        self._timeout = timeout
        self._max_retries = max(1, int(max_retries))
        self._rate_limit_wait = rate_limit_wait if rate_limit_wait > 0 else 1.0
        self._max_page_size = max_page_size if max_page_size > 0 else 500
        self._opener = opener or urlopen
        self._sleep = sleep or time.sleep

    # -- public lookups -------------------------------------------------

    def get_game_details(self, game_id: int) -> dict[str, Any] | None:
        return self.get_game_details_result(game_id).value

    def get_similar_games(self, game_ids: Iterable[Any]) -> list[dict[str, Any]]:
        return self.get_similar_games_result(game_ids).value

    def search(self, query: str, limit: Any = 10) -> list[dict[str, Any]]:
        return self.search_result(query, limit).value

    def get_popular(self, limit: Any = 10) -> list[dict[str, Any]]:
        return self.get_popular_result(limit).value

    def search_or_popular(self, query: str, limit: Any = 10) -> list[dict[str, Any]]:
        """Route the literal query ``popular`` to the popular-games list."""

        if query.strip().lower() == "popular":
            return self.get_popular(limit)
        return self.search(query, limit)

    def get_game_page(self, game_id: int) -> GamePage | None:
        """Return a game together with up to six similar games."""

        game = self.get_game_details(game_id)
        if game is None:
            return None
        similar: list[dict[str, Any]] = []
        if game.get("similar_games"):
            similar = self.get_similar_games(game["similar_games"])
        return GamePage(game=game, similar_games=similar)

    # -- result variants ------------------------------------------------

    def get_game_details_result(self, game_id: int) -> CatalogResult[dict[str, Any] | None]:
        key = game_key(game_id)
        cached = self.game_cache.get(key)
        if cached is not MISS:
            return CatalogResult(cached)
        try:
            payload = self._query_games(build_detail_query(game_id))
        except CatalogError as exc:
            logger.warning("Error getting game details for %s: %s", game_id, exc)
            return CatalogResult(None, exc)
        game = None
        for item in payload:
            game = normalize_game(item)
            if game is not None:
                break
        if game is not None:
            self.game_cache.put(key, game)
        return CatalogResult(game)

    def get_similar_games_result(
        self, game_ids: Iterable[Any]
    ) -> CatalogResult[list[dict[str, Any]]]:
        ids = tuple(dict.fromkeys(_id_list(game_ids)))
        if not ids:
            return CatalogResult([])
        key = similar_key(ids)
        cached = self.search_cache.get(key)
        if cached is not MISS:
            return CatalogResult(cached)
        try:
            payload = self._query_games(build_similar_query(ids))
        except CatalogError as exc:
            logger.warning("Error getting similar games for %s: %s", ids, exc)
            return CatalogResult([], exc)
        results = self._normalize_results(payload)[:SIMILAR_GAMES_LIMIT]
        if results:
            self.search_cache.put(key, results)
        return CatalogResult(results)

    def search_result(self, query: str, limit: Any = 10) -> CatalogResult[list[dict[str, Any]]]:
        if not isinstance(query, str) or not query.strip():
            return CatalogResult([])
        size = resolve_igdb_page_size(limit, max_page_size=self._max_page_size)
        key = search_key(query, size)
        cached = self.search_cache.get(key)
        if cached is not MISS:
            return CatalogResult(cached)
        try:
            payload = self._query_games(build_search_query(query, size))
        except CatalogError as exc:
            logger.warning("Error searching games for %r: %s", query, exc)
            return CatalogResult([], exc)
        results = self._normalize_results(payload)
        if results:
            self.search_cache.put(key, results)
        return CatalogResult(results)

    def get_popular_result(self, limit: Any = 10) -> CatalogResult[list[dict[str, Any]]]:
        size = resolve_igdb_page_size(limit, max_page_size=self._max_page_size)
        key = popular_key(size)
        cached = self.search_cache.get(key)
        if cached is not MISS:
            return CatalogResult(cached)
        try:
            payload = self._query_games(build_popular_query(size))
        except CatalogError as exc:
            logger.warning("Error fetching popular games: %s", exc)
            return CatalogResult([], exc)
        results = self._normalize_results(payload, include_rating=True)
        if results:
            self.search_cache.put(key, results)
        return CatalogResult(results)

    # -- transport ------------------------------------------------------

    @property
    def user_agent(self) -> str:
        return self._user_agent or "AeroGames/1.0 (support@example.com)"

    @staticmethod
    def _normalize_results(
        payload: list[Any], *, include_rating: bool = False
    ) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for item in payload:
            normalized = normalize_search_result(item, include_rating=include_rating)
            if normalized is not None:
                results.append(normalized)
        return results

    def _build_request(self, query: str, access_token: str) -> Request:
        request = Request(
            f"{self.BASE_URL}/games",
            data=query.encode("utf-8"),
            method="POST",
        )
        request.add_header("Client-ID", self._tokens.client_id)
        request.add_header("Authorization", f"Bearer {access_token}")
        request.add_header("Accept", "application/json")
        request.add_header("User-Agent", self.user_agent)
        return request

    def _query_games(self, query: str) -> list[Any]:
        """POST ``query`` to IGDB, retrying once with a fresh token on 401."""

        for attempt in range(2):
            request = self._build_request(query, self._tokens.get_token())
            try:
                payload = request_json(
                    request,
                    self._opener,
                    timeout=self._timeout,
                    error_prefix="IGDB API error",
                    generic_error="failed to query IGDB",
                    error_cls=UpstreamCatalogError,
                    max_retries=self._max_retries,
                    rate_limit_wait=self._rate_limit_wait,
                    sleep=self._sleep,
                )
            except UpstreamCatalogError as exc:
                if exc.status == 401 and attempt == 0:
                    logger.info("IGDB rejected the access token; refreshing")
                    self._tokens.invalidate()
                    continue
                raise
            if not isinstance(payload, list):
                raise UpstreamCatalogError("unexpected IGDB payload shape")
            return payload
        return []
