"""urllib plumbing shared by the IGDB client and the Twitch token manager."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from urllib.error import HTTPError, URLError

from igdb.errors import CatalogError

logger = logging.getLogger(__name__)

Opener = Callable[..., Any]


def request_json(
    request: Any,
    opener: Opener,
    *,
    timeout: float,
    error_prefix: str,
    generic_error: str,
    error_cls: type[CatalogError] = CatalogError,
    max_retries: int = 1,
    rate_limit_wait: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Send ``request`` and decode the JSON body.

    HTTP 429 responses are retried up to ``max_retries`` attempts, honouring
    ``Retry-After``. Every other failure raises ``error_cls``; HTTP failures
    keep their status code on ``exc.status`` when the error class accepts it.
    """

    attempts = max(1, int(max_retries))
    for attempt in range(attempts):
        try:
            with opener(request, timeout=timeout) as response:
                body = response.read()
        except HTTPError as exc:
            if exc.code == 429 and attempt + 1 < attempts:
                delay = retry_delay(exc, rate_limit_wait)
                logger.info("Rate limited by %s; retrying in %.2fs", request.full_url, delay)
                if delay > 0:
                    sleep(delay)
                continue
            raise _build_error(error_cls, format_http_error(error_prefix, exc), exc.code) from exc
        except (URLError, OSError, ValueError) as exc:
            raise error_cls(f"{generic_error}: {exc}") from exc
        try:
            text = body.decode("utf-8") if body else ""
        except UnicodeDecodeError as exc:
            raise error_cls(f"{generic_error}: undecodable response") from exc
        try:
            return json.loads(text) if text else []
        except ValueError as exc:
            raise error_cls(f"{generic_error}: invalid JSON response") from exc
    return []


def _build_error(error_cls: type[CatalogError], message: str, status: int) -> CatalogError:
    try:
        return error_cls(message, status=status)  # type: ignore[call-arg]
    except TypeError:
        return error_cls(message)


def retry_delay(error: HTTPError, default: float) -> float:
    headers = getattr(error, "headers", None)
    if headers is not None:
        value = headers.get("Retry-After")
        if value:
            try:
                delay = float(value)
                if delay > 0:
                    return delay
            except (TypeError, ValueError):
                pass
    return default


def format_http_error(prefix: str, error: HTTPError) -> str:
    message = f"{prefix}: {error.code}"
    error_message = ""
    try:
        error_body = error.read()
    except Exception:  # pragma: no cover - best effort to capture error body
        error_body = b""
    if error_body:
        error_message = error_body.decode("utf-8", errors="replace").strip()
    if not error_message and error.reason:
        error_message = str(error.reason)
    if error_message:
        message = f"{message} {error_message}"
    return message


__all__ = ["Opener", "format_http_error", "request_json", "retry_delay"]
