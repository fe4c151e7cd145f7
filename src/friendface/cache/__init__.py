"""Local cache of users and friends."""

from .models import Friend, User, decode_users, parse_iso8601
from .store import CacheStore
from .tags import decode_tags, encode_tags

__all__ = [
    "CacheStore",
    "Friend",
    "User",
    "decode_tags",
    "decode_users",
    "encode_tags",
    "parse_iso8601",
]
