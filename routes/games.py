"""Game detail API routes."""

from __future__ import annotations

from typing import Any, Mapping

from flask import Blueprint

from routes.api_utils import (
    DETAIL_CACHE_CONTROL,
    APIError,
    BadRequestError,
    NotFoundError,
    handle_api_errors,
    json_response,
)

games_blueprint = Blueprint("games", __name__)

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Provide the catalog client used by the detail endpoint."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"games routes missing context value: {key}")
    return _context[key]


def _parse_game_id(raw: str) -> int:
    text = raw.strip()
    digits = text[1:] if text[:1] in {"+", "-"} else text
    if not digits.isdigit():
        raise BadRequestError("Invalid game ID")
    return int(text)


@games_blueprint.route("/api/games/<raw_id>")
@handle_api_errors
def api_game_details(raw_id: str):
    game_id = _parse_game_id(raw_id)
    try:
        page = _ctx("catalog").get_game_page(game_id)
    except Exception as exc:
        raise APIError("Failed to get game details") from exc
    if page is None:
        raise NotFoundError("Game not found")
    return json_response(page.to_dict(), cache_control=DETAIL_CACHE_CONTROL)
