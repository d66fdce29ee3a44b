# tests/conftest.py

from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

# Default to the memory backend so importing the app never needs a database
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from task_api.main import app  # noqa: E402
from task_api.repositories import InMemoryRepository  # noqa: E402
from task_api.service import get_gateway, get_memory_repository  # noqa: E402

_TASK_ENV = (
    "PERSISTENCE_BACKEND",
    "MONGODB_URI",
    "OWNER_STRATEGY",
    "DEFAULT_OWNER",
    "CORS_ALLOW_ORIGINS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """
    Every test starts from the memory backend with the fixed owner strategy and
    no dependency overrides.
    """
    for name in _TASK_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
    get_gateway.cache_clear()
    yield
    app.dependency_overrides.clear()
    get_gateway.cache_clear()


@pytest.fixture()
def repo() -> InMemoryRepository:
    """A fresh in-memory store wired into the app for one test."""
    store = InMemoryRepository()
    app.dependency_overrides[get_memory_repository] = lambda: store
    return store


@pytest.fixture()
def client(repo: InMemoryRepository) -> TestClient:
    return TestClient(app)
