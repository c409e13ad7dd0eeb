"""Pytest fixtures shared across the test suite."""

import pytest

from collection.store import CollectionStore
from db import utils as db_utils
from media.storage import AssetStore
from tests.app_helpers import FakeOpener, authenticate, load_app


@pytest.fixture
def database(tmp_path):
    """Engine bound to a throwaway SQLite file."""

    engine_wrapper = db_utils.build_engine_from_dsn(
        f"sqlite:///{(tmp_path / 'collection.db').as_posix()}"
    )
    yield engine_wrapper
    engine_wrapper.dispose()


@pytest.fixture
def store(database):
    collection_store = CollectionStore(database)
    collection_store.create_schema()
    collection_store.ensure_default_statuses()
    return collection_store


@pytest.fixture
def asset_store(tmp_path, store):
    return AssetStore(tmp_path / "covers", store, thumbnail_size=120)


@pytest.fixture
def opener():
    return FakeOpener()


@pytest.fixture
def app(tmp_path, opener):
    flask_app = load_app(tmp_path, opener=opener)
    yield flask_app
    flask_app.extensions['game_log']['database'].dispose()


@pytest.fixture
def client(app):
    test_client = app.test_client()
    authenticate(test_client)
    return test_client
