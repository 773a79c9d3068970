"""HTTP client for the game API exposed by this service."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping

from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)


class APIClientError(RuntimeError):
    """A call to the game API failed; ``status`` is ``None`` for network errors."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class GameAPIClient:
    """Thin wrapper over ``/api/search``, ``/api/games`` and ``/api/user/collections``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._opener = opener or urlopen

    # -- catalog --------------------------------------------------------

    def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        return self._request("GET", "/api/search", params={"q": query, "limit": limit})

    def get_popular(self, limit: int = 10) -> list[dict[str, Any]]:
        return self.search("popular", limit)

    def get_game_details(self, game_id: int) -> dict[str, Any] | None:
        """Return the game payload, or ``None`` when it is unknown or unavailable."""

        try:
            data = self._request("GET", f"/api/games/{int(game_id)}")
        except APIClientError as exc:
            logger.warning("Error getting game details for %s: %s", game_id, exc)
            return None
        game = data.get("game") if isinstance(data, Mapping) else None
        return dict(game) if isinstance(game, Mapping) else None

    # -- collections ----------------------------------------------------

    def list_collection(self, token: str) -> list[dict[str, Any]]:
        return self._request("GET", "/api/user/collections", token=token)

    def add_to_collection(
        self, token: str, game_id: int, game_data: Mapping[str, Any]
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/user/collections",
            token=token,
            body={"game_id": int(game_id), "game_data": dict(game_data)},
        )

    def remove_from_collection(self, token: str, game_id: int) -> None:
        self._request(
            "DELETE",
            "/api/user/collections",
            token=token,
            params={"game_id": int(game_id)},
        )

    # -- transport ------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
        token: str | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = Request(url, data=data, method=method)
        request.add_header("Accept", "application/json")
        if data is not None:
            request.add_header("Content-Type", "application/json")
        if token:
            request.add_header("Authorization", f"Bearer {token}")

        try:
            with self._opener(request, timeout=self._timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            raise APIClientError(_error_message(exc), status=exc.code) from exc
        except (URLError, OSError) as exc:
            raise APIClientError(f"request to {path} failed: {exc}") from exc
        try:
            return json.loads(raw.decode("utf-8")) if raw else None
        except (UnicodeDecodeError, ValueError) as exc:
            raise APIClientError(f"invalid JSON response from {path}") from exc


def _error_message(error: HTTPError) -> str:
    try:
        payload = json.loads(error.read().decode("utf-8"))
    except (OSError, UnicodeDecodeError, ValueError):
        payload = None
    if isinstance(payload, Mapping) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP error! status: {error.code}"


__all__ = ["APIClientError", "GameAPIClient"]
