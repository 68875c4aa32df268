"""
Shared pytest fixtures for the NyayChain test suite.

Provides an in-memory mongomock database, seeded accounts for each role, an
httpx AsyncClient bound to the app, and pre-authenticated headers per role.
"""

import os
import tempfile

# Must be set before nyaychain.config is imported
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256-signing")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="nyaychain-uploads-"))
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LEDGER_DELAY_SECONDS"] = "0"

import httpx
import mongomock
import pytest
import pytest_asyncio

from nyaychain.app import app, limiter
from nyaychain.auth import create_access_token, new_user_doc
from nyaychain.categories import initialize_default_categories
from nyaychain.database import get_db
from nyaychain.models import UserRole

PASSWORD = "secret123"


@pytest.fixture
def db():
    """Fresh in-memory database with default categories."""
    client = mongomock.MongoClient(tz_aware=True)
    database = client["nyaychain_test"]
    database.users.create_index("email", unique=True)
    database.categories.create_index("name", unique=True)
    initialize_default_categories(database)
    yield database
    client.close()


@pytest.fixture
def users(db):
    """One account per role plus a second citizen, keyed by role name."""
    accounts = {
        "citizen": new_user_doc("Asha Citizen", "asha@example.com", PASSWORD, UserRole.CITIZEN),
        "citizen2": new_user_doc("Ravi Citizen", "ravi@example.com", PASSWORD, UserRole.CITIZEN),
        "official": new_user_doc("Meera Official", "meera@example.com", PASSWORD, UserRole.OFFICIAL,
                                 department="Water Works"),
        "admin": new_user_doc("Admin", "admin@example.com", PASSWORD, UserRole.ADMIN),
    }
    db.users.insert_many(list(accounts.values()))
    return accounts


@pytest.fixture
def water_supply(db):
    return db.categories.find_one({"name": "Water Supply"})


@pytest_asyncio.fixture
async def client(db):
    """In-process httpx AsyncClient with the database dependency swapped out."""
    # Disable rate limiting during tests so login calls aren't throttled
    limiter.enabled = False
    app.dependency_overrides[get_db] = lambda: db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


def _headers(user: dict) -> dict:
    token = create_access_token({"sub": user["_id"], "role": user["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def citizen_headers(users):
    return _headers(users["citizen"])


@pytest.fixture
def citizen2_headers(users):
    return _headers(users["citizen2"])


@pytest.fixture
def official_headers(users):
    return _headers(users["official"])


@pytest.fixture
def admin_headers(users):
    return _headers(users["admin"])
