"""Per-user collection API routes."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Mapping

from flask import Blueprint, g, request

from auth.identity import bearer_token
from db.user_collections import DuplicateCollectionEntry
from helpers import coerce_game_id
from routes.api_utils import (
    APIError,
    BadRequestError,
    ConflictError,
    UnauthorizedError,
    handle_api_errors,
    json_response,
)

logger = logging.getLogger(__name__)

collections_blueprint = Blueprint("user_collections", __name__)

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Inject the identity verifier and the collection repository."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"collection routes missing context value: {key}")
    return _context[key]


def require_user(func: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve the bearer token into ``g.auth_user`` or answer 401."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            raise UnauthorizedError()
        user = _ctx("identity").get_user(token)
        if user is None:
            raise UnauthorizedError()
        g.auth_user = user
        return func(*args, **kwargs)

    return wrapper


@collections_blueprint.route("/api/user/collections", methods=["GET"])
@handle_api_errors
@require_user
def list_collection():
    repository = _ctx("repository")
    try:
        rows = repository.list_for_user(g.auth_user.id)
    except Exception as exc:
        raise APIError("Failed to fetch collections") from exc
    logger.debug("Fetched %d collection rows for %s", len(rows), g.auth_user.id)
    return json_response(rows)


@collections_blueprint.route("/api/user/collections", methods=["POST"])
@handle_api_errors
@require_user
def add_to_collection():
    body = request.get_json(silent=True)
    if not isinstance(body, Mapping):
        raise BadRequestError("Missing game_id or game_data")
    game_id = coerce_game_id(body.get("game_id"))
    game_data = body.get("game_data")
    if game_id is None or not isinstance(game_data, Mapping) or not game_data:
        raise BadRequestError("Missing game_id or game_data")

    repository = _ctx("repository")
    try:
        row = repository.insert(g.auth_user.id, game_id, game_data)
    except DuplicateCollectionEntry as exc:
        raise ConflictError("Game already in collection") from exc
    except Exception as exc:
        raise APIError("Failed to add to collection") from exc
    return json_response(row)


@collections_blueprint.route("/api/user/collections", methods=["DELETE"])
@handle_api_errors
@require_user
def remove_from_collection():
    raw_id = request.args.get("game_id")
    if not raw_id:
        raise BadRequestError("Game ID is required")
    game_id = coerce_game_id(raw_id)
    if game_id is None:
        raise BadRequestError("Invalid game ID")

    repository = _ctx("repository")
    try:
        repository.delete(g.auth_user.id, game_id)
    except Exception as exc:
        raise APIError("Failed to remove from collection") from exc
    return json_response({"success": True})
