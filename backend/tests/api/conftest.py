"""API-specific test fixtures.

The app runs against an InMemoryStore via dependency overrides. TestClient is
not entered as a context manager, so the lifespan (database init) never runs.
"""

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient

from taskflow.api.deps import get_stores
from taskflow.core.auth import AuthUser, require_auth
from taskflow.main import app
from taskflow.store.memory import InMemoryStore


async def _header_auth(request: Request) -> AuthUser:
    """Authenticate as whoever the X-Test-User header names."""
    user_id = request.headers.get("X-Test-User")
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    request.state.user_id = user_id
    return AuthUser(user_id=user_id, claims={"sub": user_id})


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def api_client(memory_store):
    stores = memory_store.as_stores()
    app.dependency_overrides[get_stores] = lambda: stores
    app.dependency_overrides[require_auth] = _header_auth
    yield TestClient(app)
    app.dependency_overrides.clear()
