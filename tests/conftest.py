from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import ServerSelectionTimeoutError

TEST_JWT_SECRET = "test-secret-with-enough-length-for-hs256"

# Must be set before main is imported
os.environ["MONGODB_URI"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["SUPABASE_JWT_AUDIENCE"] = "authenticated"

from main import app  # noqa: E402
from routes import get_expenses_collection  # noqa: E402

OWNER_ID = "3f1c2d4e-0000-4000-8000-000000000001"
OTHER_OWNER_ID = "3f1c2d4e-0000-4000-8000-000000000002"


def run(coro):
    return asyncio.run(coro)


def make_token(owner_id: str = OWNER_ID, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    payload = {
        "sub": owner_id,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + expires_in,
        **claims,
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(owner_id: str = OWNER_ID) -> dict:
    return {"Authorization": f"Bearer {make_token(owner_id)}"}


class BrokenCursor:
    def __init__(self, error):
        self.error = error

    def sort(self, *args, **kwargs):
        return self

    def skip(self, *args, **kwargs):
        return self

    def limit(self, *args, **kwargs):
        return self

    async def to_list(self, length=None):
        raise self.error


class BrokenCollection:
    """Collection double whose every operation fails like an unreachable server."""

    name = "expenses"

    def __init__(self, error=None):
        self.error = error or ServerSelectionTimeoutError("db down: connection refused on 10.0.0.5")

    async def insert_one(self, *args, **kwargs):
        raise self.error

    async def find_one(self, *args, **kwargs):
        raise self.error

    async def find_one_and_update(self, *args, **kwargs):
        raise self.error

    async def delete_one(self, *args, **kwargs):
        raise self.error

    async def count_documents(self, *args, **kwargs):
        raise self.error

    def find(self, *args, **kwargs):
        return BrokenCursor(self.error)

    def aggregate(self, *args, **kwargs):
        return BrokenCursor(self.error)


@pytest.fixture()
def collection():
    client = AsyncMongoMockClient()
    return client["expense_tracker_test"]["expenses"]


@pytest.fixture()
def client(collection):
    app.dependency_overrides[get_expenses_collection] = lambda: collection
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def broken_client():
    broken = BrokenCollection()
    app.dependency_overrides[get_expenses_collection] = lambda: broken
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def headers():
    return auth_headers(OWNER_ID)


@pytest.fixture()
def other_headers():
    return auth_headers(OTHER_OWNER_ID)
