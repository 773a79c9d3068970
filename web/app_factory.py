"""Flask application factory and service client initialization."""
from __future__ import annotations

import logging
import logging.config
import os
from dataclasses import dataclass
from pathlib import Path

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import config as app_config
from auth.identity import IdentityVerifier
from db.user_collections import UserCollectionRepository
from db.utils import build_engine_from_dsn
from igdb.cache import ResponseCache
from igdb.client import CatalogClient
from igdb.token import TokenManager
from routes import games as routes_games
from routes import search as routes_search
from routes import user_collections as routes_user_collections
from routes.api_utils import GENERIC_ERROR_MESSAGE

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Process-wide collaborators shared by every request."""

    catalog: CatalogClient
    identity: IdentityVerifier
    repository: UserCollectionRepository


def build_services(*, db_dsn: str | None = None) -> AppServices:
    """Construct the catalog, identity and persistence services from config."""

    app_config.validate_igdb_credentials()
    tokens = TokenManager(
        app_config.IGDB_CLIENT_ID,
        app_config.IGDB_CLIENT_SECRET,
        timeout=app_config.IGDB_REQUEST_TIMEOUT_SECONDS,
    )
    catalog = CatalogClient(
        tokens,
        game_cache=ResponseCache(
            app_config.GAME_CACHE_TTL_SECONDS,
            max_entries=app_config.CACHE_MAX_ENTRIES,
            name="game-cache",
        ),
        search_cache=ResponseCache(
            app_config.SEARCH_CACHE_TTL_SECONDS,
            max_entries=app_config.CACHE_MAX_ENTRIES,
            name="search-cache",
        ),
        user_agent=app_config.IGDB_USER_AGENT,
        timeout=app_config.IGDB_REQUEST_TIMEOUT_SECONDS,
    )
    identity = IdentityVerifier(
        app_config.AUTH_URL,
        app_config.AUTH_SERVICE_KEY,
        timeout=app_config.AUTH_REQUEST_TIMEOUT_SECONDS,
    )
    repository = UserCollectionRepository(build_engine_from_dsn(db_dsn or app_config.DB_DSN))
    return AppServices(catalog=catalog, identity=identity, repository=repository)


def _determine_log_level(flask_app: Flask) -> int:
    if flask_app.debug:
        return logging.DEBUG
    if os.environ.get('FLASK_DEBUG', '').lower() in {'1', 'true', 'yes', 'on'}:
        return logging.DEBUG
    return logging.INFO


def configure_logging(flask_app: Flask, log_file: str | None = None) -> None:
    log_level = _determine_log_level(flask_app)
    log_path = Path(log_file or app_config.LOG_FILE)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass

    for handler in list(flask_app.logger.handlers):
        flask_app.logger.removeHandler(handler)

    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'standard': {
                    'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
                    'datefmt': '%Y-%m-%d %H:%M:%S',
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'standard',
                    'level': log_level,
                    'stream': 'ext://sys.stdout',
                },
                'file': {
                    'class': 'logging.handlers.RotatingFileHandler',
                    'formatter': 'standard',
                    'level': logging.DEBUG,
                    'filename': os.fspath(log_path),
                    'maxBytes': 5 * 1024 * 1024,
                    'backupCount': 5,
                    'encoding': 'utf-8',
                },
            },
            'root': {
                'level': log_level,
                'handlers': ['console', 'file'],
            },
        }
    )

    flask_app.logger.setLevel(log_level)


def configure_blueprints(flask_app: Flask, services: AppServices) -> None:
    routes_games.configure({'catalog': services.catalog})
    routes_search.configure({'catalog': services.catalog})
    routes_user_collections.configure({
        'identity': services.identity,
        'repository': services.repository,
    })

    if 'games' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_games.games_blueprint)
    if 'search' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_search.search_blueprint)
    if 'user_collections' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_user_collections.collections_blueprint)


def create_app(
    services: AppServices | None = None,
    *,
    configure_logs: bool = True,
    log_file: str | None = None,
) -> Flask:
    """Return a configured Flask application instance."""

    flask_app = Flask(__name__)
    if configure_logs:
        configure_logging(flask_app, log_file)

    if services is None:
        services = build_services()
    services.repository.ensure_schema()
    flask_app.extensions['services'] = services

    configure_blueprints(flask_app, services)

    @flask_app.errorhandler(404)
    def handle_not_found(e):
        if request.path.startswith('/api/'):
            return jsonify({'error': 'Resource not found.'}), 404
        return "Not Found", 404

    @flask_app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        flask_app.logger.exception("Unhandled exception")
        if request.path.startswith('/api/'):
            return jsonify({'error': GENERIC_ERROR_MESSAGE}), 500
        return "Internal Server Error", 500

    logger.info("Application configured")
    return flask_app


__all__ = [
    "AppServices",
    "build_services",
    "configure_blueprints",
    "configure_logging",
    "create_app",
]
