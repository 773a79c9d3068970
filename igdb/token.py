"""Twitch client-credentials token management for IGDB requests."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Any, Callable, Mapping

from urllib.parse import urlencode
from urllib.request import Request, urlopen

from igdb.errors import UpstreamAuthError
from igdb.transport import Opener, request_json

logger = logging.getLogger(__name__)

TOKEN_URL = "https://id.twitch.tv/oauth2/token"
EXPIRY_MARGIN_SECONDS = 60.0


class TokenManager:
    """Cache a Twitch app-access token and refresh it shortly before expiry.

    Refreshes are single-flight: concurrent callers on a cold or expired
    cache wait on one exchange instead of each performing their own.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        token_url: str = TOKEN_URL,
        timeout: float = 10.0,
        opener: Opener | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._client_id = (client_id or "").strip()
        self._client_secret = (client_secret or "").strip()
        self._token_url = token_url
        self._timeout = timeout
        self._opener = opener or urlopen
        self._clock = clock or time.time
        self._lock = Lock()
        self._token: str | None = None
        self._expiry: float = 0.0

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def expiry(self) -> float:
        return self._expiry

    def _cached(self) -> str | None:
        if self._token and self._clock() < self._expiry:
            return self._token
        return None

    def get_token(self) -> str:
        """Return a usable bearer token, exchanging credentials when needed."""

        token = self._cached()
        if token is not None:
            return token
        with self._lock:
            token = self._cached()
            if token is not None:
                return token
            return self._refresh()

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expiry = 0.0

    def _refresh(self) -> str:
        if not self._client_id or not self._client_secret:
            raise UpstreamAuthError("missing twitch client credentials")

        payload = urlencode(
            {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "client_credentials",
            }
        ).encode("utf-8")
        request = Request(self._token_url, data=payload, method="POST")
        request.add_header("Content-Type", "application/x-www-form-urlencoded")

        started = self._clock()
        data = request_json(
            request,
            self._opener,
            timeout=self._timeout,
            error_prefix="failed to obtain twitch token",
            generic_error="failed to obtain twitch token",
            error_cls=UpstreamAuthError,
        )

        token = data.get("access_token") if isinstance(data, Mapping) else None
        if not token:
            raise UpstreamAuthError("missing access token in twitch response")

        lifetime = _coerce_seconds(data.get("expires_in"))
        self._token = str(token)
        self._expiry = started + lifetime - EXPIRY_MARGIN_SECONDS
        logger.info("Obtained twitch access token valid for %ss", int(lifetime))
        return self._token


def _coerce_seconds(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0.0
    return seconds if seconds > 0 else 0.0


__all__ = ["EXPIRY_MARGIN_SECONDS", "TOKEN_URL", "TokenManager"]
