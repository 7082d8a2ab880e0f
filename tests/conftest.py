"""
Pytest configuration and shared fixtures.

Every test gets a fresh in-memory MongoDB (mongomock) with the production
indexes, so unique email / referral code constraints behave as in Atlas.
"""
import pytest
import mongomock
from bson import ObjectId
from fastapi.testclient import TestClient

from multiverse_backend.db import get_database, ensure_indexes, USERS
from multiverse_backend.main import create_app
from multiverse_backend.referral_engine import ReferralEngine


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def db(mongo_client):
    database = get_database(mongo_client)
    ensure_indexes(database)
    return database


@pytest.fixture
def users(db):
    return db[USERS]


@pytest.fixture
def engine(db):
    return ReferralEngine(db)


@pytest.fixture
def make_user(users):
    """Insert a user document directly, bypassing registration."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        doc = {
            "_id": ObjectId(),
            "name": f"user{counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "password": "not-a-real-hash",
            "credits": 1000,
            "plan_type": "free",
            "referral_code": f"REF-TEST{counter['n']:02d}",
            "referred_by": None,
            "referral_count": 0,
            "is_banned": False,
        }
        doc.update(overrides)
        users.insert_one(doc)
        return doc

    return _make


@pytest.fixture
def client(mongo_client):
    app = create_app(mongo_client=mongo_client)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def app_users(client):
    return client.app.state.db[USERS]
