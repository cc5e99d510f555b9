from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def _init_species_from_test_fixtures() -> None:
    """Initialize the species catalog from `tests/assets` and forbid fallback data.

    This keeps tests hermetic and prevents coupling to the repo's real species list.
    """

    os.environ["WILDBATTLE_STRICT_SPECIES"] = "1"

    from wildbattle.species.singleton import init_species, reset_species_for_tests

    reset_species_for_tests()

    # Point the loader at a fake project root: tests/ contains an assets/ dir.
    test_root = Path(__file__).resolve().parent
    init_species(project_root=test_root, strict=True)


@pytest.fixture(autouse=True)
def _clear_battle_sessions() -> Generator[None, None, None]:
    from wildbattle.session import hub

    yield
    hub.reset_for_tests()


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient wired to fakeredis, plus the fake client itself."""

    import fakeredis
    from fastapi.testclient import TestClient

    from wildbattle.api.deps import get_redis
    from wildbattle.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
