"""Pytest fixtures shared across the test suite."""

import pytest

from tests.app_helpers import (
    FakeClock,
    FakeIdentity,
    FakeOpener,
    build_catalog,
    build_repository,
    build_test_app,
    igdb_router,
    make_igdb_game,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog_games():
    return {
        1020: make_igdb_game(1020, "Chrono Trigger", similar_games=[1021, 1022]),
        1021: make_igdb_game(1021, "Secret of Mana"),
        1022: make_igdb_game(1022, "Final Fantasy VI"),
    }


@pytest.fixture
def opener(catalog_games):
    return FakeOpener(router=igdb_router(catalog_games))


@pytest.fixture
def catalog(opener, clock):
    return build_catalog(opener, clock)


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def repository(tmp_path):
    return build_repository(tmp_path)


@pytest.fixture
def app(tmp_path, catalog, repository, identity):
    return build_test_app(tmp_path, catalog=catalog, repository=repository, identity=identity)


@pytest.fixture
def client(app):
    return app.test_client()
