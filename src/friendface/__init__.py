"""Offline-first cache of the Friendface user directory."""

from .cache import CacheStore, Friend, User
from .config import SyncConfig, config_from_env
from .errors import FetchError, FetchErrorKind, FriendfaceError, StoreError, StoreErrorKind
from .fetcher import RemoteFetcher
from .sync import CacheSynchronizer, SyncEvent, SyncNotice, SyncState

__all__ = [
    "CacheStore",
    "CacheSynchronizer",
    "FetchError",
    "FetchErrorKind",
    "Friend",
    "FriendfaceError",
    "RemoteFetcher",
    "StoreError",
    "StoreErrorKind",
    "SyncConfig",
    "SyncEvent",
    "SyncNotice",
    "SyncState",
    "User",
    "config_from_env",
]
