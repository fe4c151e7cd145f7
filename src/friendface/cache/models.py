"""Data models for decoded and cached users."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO-8601 timestamp such as ``2015-11-10T01:47:18-00:00``.

    Naive timestamps are assumed to be UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 string.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(value).__name__}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require(data: dict[str, Any], key: str, expected: type | tuple[type, ...]) -> Any:
    """Return ``data[key]`` after checking presence and type."""
    if key not in data:
        raise ValueError(f"Missing key: {key}")
    value = data[key]
    # bool is a subclass of int
    if expected is int and isinstance(value, bool):
        raise ValueError(f"Key '{key}' must be int, got bool")
    if not isinstance(value, expected):
        raise ValueError(f"Key '{key}' has wrong type: {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Friend:
    """A friend reference attached to a user.

    Attributes:
        id: Unique identifier of the friend.
        name: Display name.
    """

    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Friend":
        """Decode a friend from its JSON object."""
        if not isinstance(data, dict):
            raise ValueError(f"Friend must be an object, got {type(data).__name__}")
        return cls(
            id=_require(data, "id", str),
            name=_require(data, "name", str),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class User:
    """A user record, either freshly decoded or read back from the cache.

    Attributes:
        id: Unique identifier (UUID string in the remote feed).
        name: Full name.
        age: Age in years.
        company: Employer.
        email: Contact address.
        address: Postal address.
        about: Free-form biography.
        registered: Registration time, timezone-aware.
        tags: Ordered tag list.
        friends: Ordered friend list.
        is_active: Whether the user is active right now.
    """

    id: str
    name: str
    age: int = 0
    company: str = ""
    email: str = ""
    address: str = ""
    about: str = ""
    registered: datetime = EPOCH
    tags: tuple[str, ...] = field(default_factory=tuple)
    friends: tuple[Friend, ...] = field(default_factory=tuple)
    is_active: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        """Decode a user from its JSON object.

        Raises:
            ValueError: On a missing key, a wrong type, or a bad timestamp.
        """
        if not isinstance(data, dict):
            raise ValueError(f"User must be an object, got {type(data).__name__}")

        tags = _require(data, "tags", list)
        if not all(isinstance(tag, str) for tag in tags):
            raise ValueError("Key 'tags' must contain only strings")

        friends = _require(data, "friends", list)

        return cls(
            id=_require(data, "id", str),
            name=_require(data, "name", str),
            age=_require(data, "age", int),
            company=_require(data, "company", str),
            email=_require(data, "email", str),
            address=_require(data, "address", str),
            about=_require(data, "about", str),
            registered=parse_iso8601(_require(data, "registered", str)),
            tags=tuple(tags),
            friends=tuple(Friend.from_dict(item) for item in friends),
            is_active=_require(data, "isActive", bool),
        )

    def to_dict(self) -> dict[str, Any]:
        """Encode back to the remote JSON shape."""
        return {
            "id": self.id,
            "isActive": self.is_active,
            "name": self.name,
            "age": self.age,
            "company": self.company,
            "email": self.email,
            "address": self.address,
            "about": self.about,
            "registered": self.registered.isoformat(),
            "tags": list(self.tags),
            "friends": [friend.to_dict() for friend in self.friends],
        }

    @property
    def friend_names(self) -> list[str]:
        return [friend.name for friend in self.friends]

    @property
    def formatted_registered(self) -> str:
        """Registration date for display, e.g. ``10 Nov 2015``."""
        return self.registered.strftime("%d %b %Y")


def decode_users(payload: Any) -> list[User]:
    """Decode the remote payload (a JSON array of users).

    Raises:
        ValueError: If the payload is not a list or any item is invalid.
    """
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array of users, got {type(payload).__name__}")
    return [User.from_dict(item) for item in payload]
