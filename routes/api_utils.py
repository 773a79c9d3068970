"""Error taxonomy, JSON responses and error logging shared by the API routes."""

from __future__ import annotations

import json
from functools import wraps
from typing import Any, Callable, Mapping, ParamSpec, TypeVar

from flask import Response, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

P = ParamSpec("P")
R = TypeVar("R")

DETAIL_CACHE_CONTROL = "public, s-maxage=600, stale-while-revalidate=1200"
SEARCH_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
GENERIC_ERROR_MESSAGE = "Internal server error"


class APIError(Exception):
    """An error that maps onto an HTTP status and an ``{"error": ...}`` body."""

    status_code: int = 500
    message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or type(self).message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> tuple[Response, int]:
        return jsonify({"error": self.message}), self.status_code


class BadRequestError(APIError):
    status_code = 400
    message = "Invalid request."


class UnauthorizedError(APIError):
    status_code = 401
    message = "Unauthorized"


class NotFoundError(APIError):
    status_code = 404
    message = "Resource not found."


class ConflictError(APIError):
    # Duplicates answer 400 rather than 409; clients already key off 400.
    status_code = 400
    message = "Already exists."


def json_response(payload: Any, *, cache_control: str | None = None) -> Response:
    """Serialize ``payload`` and attach a shared-cache policy when given."""

    response = jsonify(payload)
    if cache_control:
        response.headers["Cache-Control"] = cache_control
    return response


def _describe_body() -> Any:
    body = request.get_json(silent=True)
    if isinstance(body, Mapping):
        # game_data payloads are whole game records; keep logs to the shape.
        return {key: type(value).__name__ for key, value in body.items()}
    return None if body is None else type(body).__name__


def _request_context(status_code: int) -> str:
    user = g.get("auth_user")
    context: dict[str, Any] = {
        "method": request.method,
        "route": request.path,
        "endpoint": request.endpoint,
        "user": getattr(user, "id", None) or "anonymous",
        "has_token": "Authorization" in request.headers,
        "args": request.args.to_dict(flat=False),
        "status_code": status_code,
    }
    body = _describe_body()
    if body is not None:
        context["body"] = body
    try:
        return json.dumps(context, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(context)


def _log_api_error(exc: BaseException, status_code: int) -> None:
    context = _request_context(status_code)
    if status_code < 500:
        current_app.logger.warning("API error %s: %s | context=%s", status_code, exc, context)
        return
    cause = exc.__cause__ or exc
    current_app.logger.error(
        "API error %s: %s | context=%s", status_code, exc, context, exc_info=cause
    )


def handle_api_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Turn raised errors into JSON error responses and log them with context."""

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs):  # type: ignore[misc]
        try:
            return func(*args, **kwargs)
        except APIError as exc:
            _log_api_error(exc, exc.status_code)
            return exc.to_response()
        except HTTPException as exc:
            error = APIError(exc.description or str(exc), status_code=exc.code or 500)
            _log_api_error(exc, error.status_code)
            return error.to_response()
        except Exception as exc:
            _log_api_error(exc, 500)
            return APIError().to_response()

    return wrapper


__all__ = [
    "APIError",
    "BadRequestError",
    "ConflictError",
    "DETAIL_CACHE_CONTROL",
    "GENERIC_ERROR_MESSAGE",
    "NotFoundError",
    "SEARCH_CACHE_CONTROL",
    "UnauthorizedError",
    "handle_api_errors",
    "json_response",
]
