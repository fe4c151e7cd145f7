"""Shared fixtures for friendface tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from friendface.cache import CacheStore, Friend, User
from friendface.logging import JSONLLogger


@pytest.fixture
def make_user():
    """Factory for User records with sensible defaults."""

    def _make(user_id: str, name: str | None = None, **kwargs) -> User:
        defaults = {
            "age": 30,
            "company": "Acme",
            "email": f"{user_id.lower()}@example.com",
            "address": "1 Main Street",
            "about": "Just a test user.",
            "registered": datetime(2015, 11, 10, 1, 47, 18, tzinfo=timezone.utc),
            "tags": ("swift", "ios"),
            "friends": (Friend(id=f"{user_id}-f1", name="Friend One"),),
            "is_active": True,
        }
        defaults.update(kwargs)
        return User(id=user_id, name=name or f"User {user_id}", **defaults)

    return _make


@pytest.fixture
def user_payload() -> list[dict]:
    """A two-user payload in the remote feed format."""
    return [
        {
            "id": "50a48fa3-2c0f-4397-ac50-64da464f9954",
            "isActive": False,
            "name": "Alford Rodriguez",
            "age": 21,
            "company": "Imkan",
            "email": "alfordrodriguez@imkan.com",
            "address": "907 Nelson Street, Cotopaxi, South Dakota, 5913",
            "about": "Occaecat consequat elit aliquip magna laboris dolore laboris.",
            "registered": "2015-11-10T01:47:18-00:00",
            "tags": ["cillum", "consequat", "deserunt"],
            "friends": [
                {"id": "91b5be3d-9a19-4ac2-b2ce-89cc41884ed0", "name": "Hawkins Patel"},
                {"id": "0c395a95-57e2-4d53-b4f6-9b9e46a32cf6", "name": "Jewel Sexton"},
            ],
        },
        {
            "id": "91b5be3d-9a19-4ac2-b2ce-89cc41884ed0",
            "isActive": True,
            "name": "Hawkins Patel",
            "age": 27,
            "company": "Mazuda",
            "email": "hawkinspatel@mazuda.com",
            "address": "256 Union Avenue, Baker, New Mexico, 518",
            "about": "Consectetur mollit officia laborum.",
            "registered": "2016-06-30T07:42:08-01:00",
            "tags": ["irure"],
            "friends": [],
        },
    ]


@pytest.fixture
def store(tmp_path: Path):
    """Create a CacheStore with a temporary database."""
    store = CacheStore(tmp_path / "cache.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def event_logger(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")
