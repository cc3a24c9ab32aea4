"""
Shared fixtures for the Community Hub tests.

The API runs against an in-memory mongomock database; hashing costs are
lowered so registration stays fast.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_PARALLELISM", "1")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db, utcnow
from main import app


@pytest.fixture
def db():
    database = mongomock.MongoClient()["community_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def register(client, username, email=None, password="secret123"):
    """Register a user and return ``(user, auth headers)``."""
    resp = client.post(
        "/api/users/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
def alice(client):
    return register(client, "alice")


@pytest.fixture
def bob(client):
    return register(client, "bob")


def future(days=3):
    return (utcnow() + timedelta(days=days)).isoformat()


def event_payload(**overrides):
    payload = {
        "title": "Neighbourhood potluck",
        "description": "Bring a dish to share",
        "date": future(),
        "location": {"address": "12 Main St"},
    }
    payload.update(overrides)
    return payload
