# =============================================================================
# Shared test fixtures
# =============================================================================
#
# The chat store runs on an in-memory SQLite database shared by every
# session (StaticPool), so route handlers and tests see the same rows.
# No test needs an OpenAI key, a search engine or a MySQL server: those
# collaborators are patched per test.
# =============================================================================

from __future__ import annotations

import asyncio
import json
import os
from types import SimpleNamespace

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app import models  # noqa: E402,F401
from app.config import settings  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.services.auth import create_user  # noqa: E402


def run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def completion(content):
    """Fake non-streaming chat completion carrying *content*."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def stream_chunk(text):
    """Fake streaming chunk carrying a *text* delta."""
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=text))]
    )


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Reset settings the tests commonly flip."""
    monkeypatch.setattr(settings, "elasticsearch_url", "http://search.test/logs/_search")
    monkeypatch.setattr(settings, "enable_database_search", False)
    monkeypatch.setattr(settings, "search_database_url", "")


@pytest.fixture
def db():
    """Fresh chat store schema for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def alice(db):
    """A user and their bearer token."""
    user, token = create_user(db, "alice@example.com")
    return SimpleNamespace(user=user, token=token, headers={"Authorization": f"Bearer {token}"})


@pytest.fixture
def bob(db):
    user, token = create_user(db, "bob@example.com")
    return SimpleNamespace(user=user, token=token, headers={"Authorization": f"Bearer {token}"})
