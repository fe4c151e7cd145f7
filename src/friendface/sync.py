"""Cache synchronizer: fetch once per load, upsert, fall back to cache."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from .cache.models import User
from .cache.store import CacheStore
from .errors import FetchError, StoreError
from .logging import JSONLLogger, get_logger

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Where the synchronizer is in its load cycle."""

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    SYNC_FAILED_FALLBACK = "sync_failed_fallback"


class SyncEvent(Enum):
    """Signals delivered to observers."""

    DATA_CHANGED = "data_changed"
    USING_CACHED_DATA = "using_cached_data"
    STORE_WRITE_FAILED = "store_write_failed"


@dataclass(frozen=True)
class SyncNotice:
    """What an observer receives after a sync attempt.

    Attributes:
        event: The kind of signal.
        state: Synchronizer state after the attempt.
        count: Number of users written (0 unless data changed).
        error: Error message for fallback and write-failure signals.
    """

    event: SyncEvent
    state: SyncState
    count: int = 0
    error: str | None = None

    @property
    def is_warning(self) -> bool:
        """True when the notice should be shown to the user as a warning."""
        return self.event is SyncEvent.STORE_WRITE_FAILED


Observer = Callable[[SyncNotice], None]


class Fetcher(Protocol):
    """Anything that can retrieve the user feed."""

    url: str

    async def fetch(self) -> list[User]: ...


class CacheSynchronizer:
    """Keeps the local cache in step with the remote feed.

    The cache is the only thing presentation reads. Each load tries one
    fetch; success is merged into the cache, failure leaves the cache as it
    was. Writing the cache and notifying observers happen together under
    one lock, so a reader never sees a half-applied update.
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: Fetcher,
        event_logger: JSONLLogger | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.event_log = event_logger or get_logger()
        self.last_error: str | None = None
        self.last_synced_at: datetime | None = None
        self._state = SyncState.IDLE
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._attempted = False
        self._closed = False
        self._observers: list[Observer] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        """Whether a fetch is currently in flight."""
        return self._task is not None and not self._task.done()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer.

        Args:
            observer: Called with a SyncNotice after every sync attempt.

        Returns:
            A function that removes the observer again.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def should_sync(self) -> bool:
        """Check whether a new sync cycle may start now.

        No new cycle while one is in flight, after close, or once a sync
        has been attempted and the cache already holds data.
        """
        if self._closed or self.is_syncing:
            return False
        return not (self._attempted and not self.store.is_empty())

    def trigger(self) -> asyncio.Task[None] | None:
        """Start a sync in the background if the guard allows it.

        Returns:
            The in-flight task (new or already running), or None when no
            sync runs.
        """
        if self.is_syncing:
            return self._task

        if not self.should_sync():
            logger.debug("Sync skipped: state=%s", self._state.value)
            self.event_log.log("sync_skipped", state=self._state.value)
            return None

        self._attempted = True
        self._state = SyncState.SYNCING
        self._task = asyncio.create_task(self._sync())
        return self._task

    async def load(self) -> SyncState:
        """Run (or join) the sync for this load and wait for it.

        Fetch and store failures are reported to observers, never raised.

        Returns:
            The state reached.
        """
        task = self.trigger()
        if task is None:
            return self._state

        # wait() does not propagate cancellation of the task to the caller
        await asyncio.wait([task])
        if not task.cancelled():
            task.result()
        return self._state

    def users(self) -> list[User]:
        """Current cache contents: the single source of truth for display."""
        return self.store.read_all()

    def user(self, user_id: str) -> User | None:
        return self.store.get(user_id)

    async def snapshot(self) -> list[User]:
        """Read the cache, ordered after any in-progress write and notify."""
        async with self._lock:
            return self.store.read_all()

    async def close(self) -> None:
        """Stop syncing. A fetch still in flight is cancelled and discarded."""
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        # A task cancelled before it started never reset the state
        if self._state is SyncState.SYNCING:
            self._state = SyncState.IDLE
        self._observers.clear()

    async def _sync(self) -> None:
        """One sync cycle: fetch, then write and notify as a single unit."""
        url = self.fetcher.url
        start_time = time.time()
        self.event_log.log_sync_start(url)

        try:
            try:
                users = await self.fetcher.fetch()
            except FetchError as e:
                duration_ms = (time.time() - start_time) * 1000
                await self._fall_back(e)
                if self._closed:
                    return
                self.event_log.log_sync_fallback(
                    url, str(e), duration_ms, kind=e.kind.value
                )
                return

            async with self._lock:
                if self._closed:
                    logger.debug("Discarding %d fetched user(s) after close", len(users))
                    return

                try:
                    count = self.store.upsert(users)
                except StoreError as e:
                    logger.warning("Cache write failed: %s", e)
                    self.event_log.log_store_error(str(e), kind=e.kind.value)
                    self._state = SyncState.SYNC_FAILED_FALLBACK
                    self.last_error = str(e)
                    self._notify(SyncNotice(
                        event=SyncEvent.STORE_WRITE_FAILED,
                        state=self._state,
                        error=str(e),
                    ))
                    return

                self._state = SyncState.SYNCED
                self.last_error = None
                self.last_synced_at = datetime.now(timezone.utc)
                self._notify(SyncNotice(
                    event=SyncEvent.DATA_CHANGED,
                    state=self._state,
                    count=count,
                ))

            duration_ms = (time.time() - start_time) * 1000
            self.event_log.log_sync_complete(url, count, duration_ms)
        finally:
            if self._state is SyncState.SYNCING:
                self._state = SyncState.IDLE

    async def _fall_back(self, error: FetchError) -> None:
        """Keep the cache as is and tell observers it is being used."""
        logger.info("Fetch failed, using cached data: %s", error)
        async with self._lock:
            if self._closed:
                return
            self._state = SyncState.SYNC_FAILED_FALLBACK
            self.last_error = str(error)
            self._notify(SyncNotice(
                event=SyncEvent.USING_CACHED_DATA,
                state=self._state,
                error=str(error),
            ))

    def _notify(self, notice: SyncNotice) -> None:
        """Deliver a notice to every observer; a failing observer is skipped."""
        for observer in list(self._observers):
            try:
                observer(notice)
            except Exception as e:
                logger.warning("Observer failed on %s: %s", notice.event.value, e)
                self.event_log.log("observer_error", error=str(e), event_name=notice.event.value)
