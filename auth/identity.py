"""Bearer-token verification against the hosted identity service."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None


class IdentityVerifier:
    """Resolve a user access token into an :class:`AuthUser`.

    ``get_user`` never raises for an invalid or expired token; it returns
    ``None`` so the caller can answer 401.
    """

    def __init__(
        self,
        auth_url: str,
        service_key: str,
        *,
        timeout: float = 10.0,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self._auth_url = (auth_url or "").rstrip("/")
        self._service_key = (service_key or "").strip()
        self._timeout = timeout
        self._opener = opener or urlopen

    @property
    def configured(self) -> bool:
        return bool(self._auth_url and self._service_key)

    def get_user(self, token: str) -> AuthUser | None:
        token = (token or "").strip()
        if not token:
            return None
        if not self.configured:
            logger.error("Identity service is not configured; set AUTH_URL and AUTH_SERVICE_KEY")
            return None

        request = Request(f"{self._auth_url}/auth/v1/user", method="GET")
        request.add_header("Authorization", f"Bearer {token}")
        request.add_header("apikey", self._service_key)
        request.add_header("Accept", "application/json")
        try:
            with self._opener(request, timeout=self._timeout) as response:
                body = response.read()
        except HTTPError as exc:
            logger.info("Identity service rejected token: %s", exc.code)
            return None
        except (URLError, OSError) as exc:
            logger.warning("Identity service unreachable: %s", exc)
            return None
        try:
            payload = json.loads(body.decode("utf-8")) if body else None
        except (UnicodeDecodeError, ValueError):
            logger.warning("Identity service returned an invalid payload")
            return None
        return _user_from_payload(payload)


def _user_from_payload(payload: Any) -> AuthUser | None:
    if not isinstance(payload, Mapping):
        return None
    user_id = payload.get("id")
    if not user_id:
        return None
    email = payload.get("email")
    return AuthUser(id=str(user_id), email=str(email) if email else None)


def bearer_token(header_value: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer`` header value."""

    if not header_value:
        return None
    scheme, _, credentials = header_value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


__all__ = ["AuthUser", "IdentityVerifier", "bearer_token"]
