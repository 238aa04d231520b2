"""
Shared test fixtures.

Provides:
  • a temporary SQLite database per test (``database``)
  • a FastAPI TestClient wired to that database via the app lifespan
    (``client``), with auth bypassed as ``MOCK_USER``
  • ``seeded``: the mock organization, its courts and a monthly member

The `client` fixture runs the full lifespan (DB init / shutdown) so the
endpoints work against SQLite exactly as in production.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app import db
from app.dependencies import get_current_user
from app.main import app
from tests.mocks.models import MOCK_ORG, MOCK_USER
from tests.mocks.storage import seed_member, seed_org


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path):
    """
    Internal fixture that points the DB at a temp file and disables
    rate limiting.
    """
    # ── Temp database ─────────────────────────────────────────────────
    import app.db as db_mod

    monkeypatch.setattr(db_mod, "DB_PATH", str(tmp_path / "test.db"))

    # ── Disable rate limiting in tests ────────────────────────────────
    from app.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
async def database(_test_env):
    """Initialized database for tests that call ``app.db`` directly."""
    await db.init_db()
    yield
    await db.close_db()


@pytest.fixture()
def client(_test_env) -> TestClient:
    """
    FastAPI TestClient with temp DB and auth bypassed.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    """
    async def _mock_current_user():
        return MOCK_USER

    app.dependency_overrides[get_current_user] = _mock_current_user

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()


@pytest.fixture()
def unauthed_client(_test_env) -> TestClient:
    """
    TestClient without auth overrides: requests are rejected unless
    a session cookie is provided.
    """
    app.dependency_overrides.clear()

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()


@pytest.fixture()
async def seeded(client):
    """The mock organization with its courts, and MOCK_USER as a monthly member."""
    await seed_org(MOCK_ORG)
    await seed_member(MOCK_USER.user_id, MOCK_ORG.id, tier="monthly")
    return client
