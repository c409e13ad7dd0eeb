"""Flask application factory and service client initialization."""
from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Callable, Mapping

from flask import Flask

import config as app_config
from collection.importer import ImportPipeline
from collection.store import CollectionStore
from db import utils as db_utils
from igdb.client import IGDBClient
from igdb.credentials import CredentialStore
from igdb.token import TokenProvider
from init import initialize_app
from media.covers import CoverFetcher
from media.storage import AssetStore
from routes import games as routes_games
from routes import settings as routes_settings
from routes import web as routes_web

logger = logging.getLogger(__name__)


def _determine_log_level(flask_app: Flask) -> int:
    if flask_app.debug:
        return logging.DEBUG
    env_value = str(flask_app.config.get('ENV', '')).lower()
    if env_value == 'development':
        return logging.DEBUG
    if os.environ.get('FLASK_DEBUG', '').lower() in {'1', 'true', 'yes', 'on'}:
        return logging.DEBUG
    return logging.INFO


def _configure_logging(flask_app: Flask) -> None:
    log_level = _determine_log_level(flask_app)
    log_path = Path(flask_app.config['LOG_FILE'])
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

    flask_app.logger = logging.getLogger(flask_app.import_name)
    flask_app.logger.setLevel(log_level)
    logger.setLevel(log_level)


def build_services(
    settings: Mapping[str, Any],
    *,
    opener: Callable[..., Any] | None = None,
) -> dict[str, Any]:
    """Wire the store, IGDB client, cover fetcher and import pipeline.

    ``opener`` replaces :func:`urllib.request.urlopen` for every outbound
    request (token exchange, catalog queries and cover downloads).
    """

    database = db_utils.build_engine_from_dsn(
        settings['DB_DSN'], timeout=settings['DB_TIMEOUT_SECONDS']
    )
    store = CollectionStore(database)
    credentials = CredentialStore(
        client_id=settings['IGDB_CLIENT_ID'],
        client_secret=settings['IGDB_CLIENT_SECRET'],
        settings=store,
    )
    timeout = float(settings['IGDB_TIMEOUT_SECONDS'])
    user_agent = settings['IGDB_USER_AGENT']
    tokens = TokenProvider(credentials, timeout=timeout, opener=opener)
    igdb_client = IGDBClient(
        tokens, user_agent=user_agent, timeout=timeout, opener=opener
    )
    asset_store = AssetStore(
        settings['COVERS_DIR'],
        store,
        thumbnail_size=int(settings['COVER_THUMBNAIL_SIZE']),
    )
    covers = CoverFetcher(
        asset_store, timeout=timeout, user_agent=user_agent, opener=opener
    )
    pipeline = ImportPipeline(
        store,
        covers,
        allow_new_statuses=bool(settings['ALLOW_NEW_STATUS_TERMS']),
    )
    return {
        'database': database,
        'store': store,
        'credentials': credentials,
        'tokens': tokens,
        'igdb_client': igdb_client,
        'asset_store': asset_store,
        'covers': covers,
        'pipeline': pipeline,
    }


def configure_blueprints(flask_app: Flask, services: Mapping[str, Any]) -> None:
    settings = flask_app.config
    routes_games.configure({
        'store': services['store'],
        'igdb_client': services['igdb_client'],
        'pipeline': services['pipeline'],
        'asset_store': services['asset_store'],
        'search_default_limit': settings['IGDB_SEARCH_DEFAULT_LIMIT'],
        'search_max_limit': settings['IGDB_SEARCH_MAX_LIMIT'],
        'search_errors_as_empty': bool(settings['IGDB_SEARCH_ERRORS_AS_EMPTY']),
    })
    routes_settings.configure({
        'credentials': services['credentials'],
        'tokens': services['tokens'],
    })
    routes_web.configure({
        'app_password': settings['APP_PASSWORD'],
        'store': services['store'],
        'credentials': services['credentials'],
    })

    if 'games' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_games.games_blueprint)
    if 'settings' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_settings.settings_blueprint)
    if 'web' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_web.web_blueprint)


def create_app(
    config_overrides: Mapping[str, Any] | None = None,
    *,
    flask_app: Flask | None = None,
    opener: Callable[..., Any] | None = None,
) -> Flask:
    """Return a configured Flask application instance."""
    if flask_app is None:
        flask_app = Flask('app')

    settings = app_config.default_settings()
    if config_overrides:
        settings.update(config_overrides)
    flask_app.config.update(settings)
    flask_app.secret_key = settings['APP_SECRET_KEY']

    _configure_logging(flask_app)

    services = build_services(flask_app.config, opener=opener)
    covers_dir = Path(flask_app.config['COVERS_DIR'])
    initialize_app(
        ensure_dirs=lambda: covers_dir.mkdir(parents=True, exist_ok=True),
        store=services['store'],
    )
    app_config.validate_igdb_credentials(*services['credentials'].get())

    flask_app.extensions['game_log'] = services
    configure_blueprints(flask_app, services)
    return flask_app


__all__ = ["build_services", "configure_blueprints", "create_app"]
