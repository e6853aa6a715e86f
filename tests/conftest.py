"""
Shared fixtures.

Every test starts with an empty tracker and ledger, in local mode, with no
real Verified ID tenant: the token call is patched to fail so /api/verify
takes the mock path unless a test patches it differently.
"""

import pytest
from fastapi.testclient import TestClient

from portal import config, store
from portal.main import app
from portal.routes import verify as verify_routes
from portal.verifiedid.auth import TokenError

from tests.sample_data import HIGH_VALUE


async def _no_token(transport=None):
    raise TokenError("All token scopes failed")


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    monkeypatch.setattr(config, "BASE_URL", None)
    monkeypatch.setattr(config, "API_KEY", "test-key")
    monkeypatch.setattr(verify_routes, "get_access_token", _no_token)
    store.reset()
    yield
    store.reset()


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def pending(client):
    """Id of a tracked verification request for HIGH_VALUE (mock mode)."""
    resp = client.post("/api/verify", json={"transaction_details": HIGH_VALUE})
    assert resp.status_code == 200
    return resp.json()["request_id"]
