"""Catalog search API routes."""

from __future__ import annotations

from typing import Any, Mapping

from flask import Blueprint, request

from routes.api_utils import (
    SEARCH_CACHE_CONTROL,
    APIError,
    BadRequestError,
    handle_api_errors,
    json_response,
)

search_blueprint = Blueprint("search", __name__)

DEFAULT_SEARCH_LIMIT = 10

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Provide the catalog client used by the search endpoint."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"search routes missing context value: {key}")
    return _context[key]


def _parse_limit(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_SEARCH_LIMIT
    try:
        limit = int(raw.strip())
    except ValueError as exc:
        raise BadRequestError("Query parameter 'limit' must be an integer") from exc
    if limit <= 0:
        raise BadRequestError("Query parameter 'limit' must be positive")
    return limit


@search_blueprint.route("/api/search")
@handle_api_errors
def api_search():
    query = request.args.get("q")
    if not query:
        raise BadRequestError("Query parameter 'q' is required")
    limit = _parse_limit(request.args.get("limit"))

    catalog = _ctx("catalog")
    try:
        results = catalog.search_or_popular(query, limit)
    except Exception as exc:
        raise APIError("Failed to search games") from exc

    return json_response(results, cache_control=SEARCH_CACHE_CONTROL)
