"""Tests for the cache synchronizer."""

import asyncio
import json

import pytest

from friendface.cache import CacheStore, User
from friendface.errors import FetchError, FetchErrorKind, StoreError
from friendface.logging import JSONLLogger
from friendface.sync import CacheSynchronizer, SyncEvent, SyncNotice, SyncState


class FakeFetcher:
    """Fetcher double that returns canned users or raises."""

    url = "https://example.test/friendface.json"

    def __init__(
        self,
        users: list[User] | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.users = users or []
        self.error = error
        self.gate = gate
        self.calls = 0

    async def fetch(self) -> list[User]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.users)


def network_error() -> FetchError:
    return FetchError("Request failed: connection refused", FetchErrorKind.NETWORK)


@pytest.fixture
def notices() -> list[SyncNotice]:
    return []


def make_sync(
    store: CacheStore,
    fetcher: FakeFetcher,
    event_logger: JSONLLogger,
    notices: list[SyncNotice],
) -> CacheSynchronizer:
    synchronizer = CacheSynchronizer(store, fetcher, event_logger=event_logger)
    synchronizer.subscribe(notices.append)
    return synchronizer


@pytest.mark.asyncio
class TestLoadScenarios:
    async def test_empty_store_successful_fetch(self, store, make_user, event_logger, notices):
        """Empty store, fetch of A, B, C: cache holds exactly A, B, C."""
        fetcher = FakeFetcher([make_user("A"), make_user("B"), make_user("C")])
        sync = make_sync(store, fetcher, event_logger, notices)

        state = await sync.load()

        assert state is SyncState.SYNCED
        assert [u.id for u in sync.users()] == ["A", "B", "C"]
        assert notices == [SyncNotice(SyncEvent.DATA_CHANGED, SyncState.SYNCED, count=3)]
        assert sync.last_synced_at is not None
        assert sync.last_error is None

    async def test_update_and_insert(self, store, make_user, event_logger, notices):
        """Cached A 'Old' plus fetched A 'New' and B: no duplicate A."""
        store.upsert([make_user("A", "Old")])
        fetcher = FakeFetcher([make_user("A", "New"), make_user("B")])
        sync = make_sync(store, fetcher, event_logger, notices)

        await sync.load()

        users = sync.users()
        assert [(u.id, u.name) for u in users] == [("A", "New"), ("B", "User B")]

    async def test_fetch_failure_falls_back(self, store, make_user, event_logger, notices):
        """Cached A, B and a failed fetch: cache unchanged, observer told."""
        store.upsert([make_user("A"), make_user("B")])
        before = store.read_all()
        sync = make_sync(store, FakeFetcher(error=network_error()), event_logger, notices)

        state = await sync.load()

        assert state is SyncState.SYNC_FAILED_FALLBACK
        assert sync.users() == before
        assert len(notices) == 1
        assert notices[0].event is SyncEvent.USING_CACHED_DATA
        assert not notices[0].is_warning
        assert "connection refused" in notices[0].error
        assert sync.last_error is not None

    async def test_fetch_failure_with_empty_store(self, store, event_logger, notices):
        sync = make_sync(store, FakeFetcher(error=network_error()), event_logger, notices)

        assert await sync.load() is SyncState.SYNC_FAILED_FALLBACK
        assert sync.users() == []

    async def test_store_failure_is_warning(
        self, store, make_user, event_logger, notices, monkeypatch
    ):
        store.upsert([make_user("A", "Kept")])

        def broken_upsert(users):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "upsert", broken_upsert)
        sync = make_sync(store, FakeFetcher([make_user("A", "Lost")]), event_logger, notices)

        state = await sync.load()

        assert state is SyncState.SYNC_FAILED_FALLBACK
        assert notices[0].event is SyncEvent.STORE_WRITE_FAILED
        assert notices[0].is_warning
        assert sync.users()[0].name == "Kept"

    async def test_unexpected_error_propagates(self, store, event_logger, notices):
        sync = make_sync(store, FakeFetcher(error=RuntimeError("bug")), event_logger, notices)

        with pytest.raises(RuntimeError):
            await sync.load()
        assert sync.state is SyncState.IDLE
        assert notices == []


@pytest.mark.asyncio
class TestGuard:
    async def test_rapid_loads_share_one_fetch(self, store, make_user, event_logger, notices):
        gate = asyncio.Event()
        fetcher = FakeFetcher([make_user("A")], gate=gate)
        sync = make_sync(store, fetcher, event_logger, notices)

        first = asyncio.create_task(sync.load())
        second = asyncio.create_task(sync.load())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert sync.is_syncing
        assert sync.state is SyncState.SYNCING

        gate.set()
        states = await asyncio.gather(first, second)

        assert fetcher.calls == 1
        assert states == [SyncState.SYNCED, SyncState.SYNCED]
        assert len(notices) == 1

    async def test_trigger_returns_in_flight_task(self, store, make_user, event_logger, notices):
        gate = asyncio.Event()
        sync = make_sync(store, FakeFetcher([make_user("A")], gate=gate), event_logger, notices)

        task = sync.trigger()
        assert task is not None
        assert sync.trigger() is task
        assert not sync.should_sync()

        gate.set()
        await task

    async def test_no_refetch_after_sync_with_data(self, store, make_user, event_logger, notices):
        fetcher = FakeFetcher([make_user("A")])
        sync = make_sync(store, fetcher, event_logger, notices)

        await sync.load()
        state = await sync.load()

        assert fetcher.calls == 1
        assert state is SyncState.SYNCED
        assert sync.trigger() is None

    async def test_no_refetch_after_fallback_with_data(
        self, store, make_user, event_logger, notices
    ):
        store.upsert([make_user("A")])
        fetcher = FakeFetcher(error=network_error())
        sync = make_sync(store, fetcher, event_logger, notices)

        await sync.load()
        await sync.load()

        assert fetcher.calls == 1

    async def test_retries_while_store_empty(self, store, make_user, event_logger, notices):
        fetcher = FakeFetcher(error=network_error())
        sync = make_sync(store, fetcher, event_logger, notices)

        await sync.load()
        fetcher.error = None
        fetcher.users = [make_user("A")]
        state = await sync.load()

        assert fetcher.calls == 2
        assert state is SyncState.SYNCED
        assert [u.id for u in sync.users()] == ["A"]

    async def test_first_load_fetches_even_with_cached_data(
        self, store, make_user, event_logger, notices
    ):
        """A fresh app load always tries the network once."""
        store.upsert([make_user("A")])
        fetcher = FakeFetcher([make_user("A", "Changed")])
        sync = make_sync(store, fetcher, event_logger, notices)

        await sync.load()

        assert fetcher.calls == 1
        assert sync.user("A").name == "Changed"


@pytest.mark.asyncio
class TestClose:
    async def test_close_cancels_in_flight_fetch(self, store, make_user, event_logger, notices):
        gate = asyncio.Event()
        sync = make_sync(store, FakeFetcher([make_user("A")], gate=gate), event_logger, notices)

        task = sync.trigger()
        await asyncio.sleep(0)
        await sync.close()

        assert task.cancelled()
        assert store.is_empty()
        assert notices == []
        assert sync.state is SyncState.IDLE

    async def test_late_result_discarded(self, store, make_user, event_logger, notices):
        """A fetch that completes after close never writes the cache."""
        gate = asyncio.Event()

        class StubbornFetcher(FakeFetcher):
            async def fetch(self) -> list[User]:
                self.calls += 1
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    pass
                return [make_user("A")]

        sync = make_sync(store, StubbornFetcher(), event_logger, notices)
        sync.trigger()
        await asyncio.sleep(0)
        await sync.close()

        assert store.is_empty()
        assert notices == []

    async def test_failure_after_close_not_logged(self, store, event_logger, notices):
        """A fetch that fails after close leaves no fallback in the event log."""
        gate = asyncio.Event()

        class StubbornFetcher(FakeFetcher):
            async def fetch(self) -> list[User]:
                self.calls += 1
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    pass
                raise network_error()

        sync = make_sync(store, StubbornFetcher(), event_logger, notices)
        sync.trigger()
        await asyncio.sleep(0)
        await sync.close()

        with open(event_logger.log_path) as f:
            events = [json.loads(line)["event"] for line in f]

        assert "sync_fallback" not in events
        assert notices == []

    async def test_load_after_close_does_nothing(self, store, make_user, event_logger, notices):
        fetcher = FakeFetcher([make_user("A")])
        sync = make_sync(store, fetcher, event_logger, notices)

        await sync.close()
        state = await sync.load()

        assert state is SyncState.IDLE
        assert fetcher.calls == 0


@pytest.mark.asyncio
class TestObservers:
    async def test_failing_observer_does_not_block_others(
        self, store, make_user, event_logger, notices
    ):
        sync = CacheSynchronizer(store, FakeFetcher([make_user("A")]), event_logger=event_logger)

        def broken(notice: SyncNotice) -> None:
            raise ValueError("observer bug")

        sync.subscribe(broken)
        sync.subscribe(notices.append)

        assert await sync.load() is SyncState.SYNCED
        assert len(notices) == 1

    async def test_unsubscribe(self, store, make_user, event_logger, notices):
        sync = CacheSynchronizer(store, FakeFetcher([make_user("A")]), event_logger=event_logger)
        unsubscribe = sync.subscribe(notices.append)
        unsubscribe()
        unsubscribe()

        await sync.load()
        assert notices == []

    async def test_observer_sees_written_cache(self, store, make_user, event_logger):
        """By the time observers hear DATA_CHANGED, the cache is updated."""
        sync = CacheSynchronizer(
            store, FakeFetcher([make_user("A"), make_user("B")]), event_logger=event_logger
        )
        seen: list[list[str]] = []
        sync.subscribe(lambda notice: seen.append([u.id for u in sync.users()]))

        await sync.load()

        assert seen == [["A", "B"]]

    async def test_snapshot(self, store, make_user, event_logger, notices):
        sync = make_sync(store, FakeFetcher([make_user("A")]), event_logger, notices)
        await sync.load()
        assert [u.id for u in await sync.snapshot()] == ["A"]


@pytest.mark.asyncio
class TestEventLog:
    async def test_logs_complete(self, store, make_user, event_logger, notices):
        sync = make_sync(store, FakeFetcher([make_user("A")]), event_logger, notices)
        await sync.load()

        with open(event_logger.log_path) as f:
            events = [json.loads(line) for line in f]

        assert [e["event"] for e in events] == ["sync_start", "sync_complete"]
        assert events[1]["count"] == 1
        assert events[1]["url"] == FakeFetcher.url

    async def test_logs_fallback(self, store, event_logger, notices):
        sync = make_sync(store, FakeFetcher(error=network_error()), event_logger, notices)
        await sync.load()

        with open(event_logger.log_path) as f:
            events = [json.loads(line) for line in f]

        assert events[-1]["event"] == "sync_fallback"
        assert events[-1]["extra"]["kind"] == "network"

    async def test_logs_skip(self, store, make_user, event_logger, notices):
        sync = make_sync(store, FakeFetcher([make_user("A")]), event_logger, notices)
        await sync.load()
        await sync.load()

        with open(event_logger.log_path) as f:
            events = [json.loads(line)["event"] for line in f]

        assert events[-1] == "sync_skipped"

    async def test_unwritable_log_still_falls_back(self, store, make_user, tmp_path, notices):
        """Event log failures never change the outcome of a load."""
        blocked = JSONLLogger(log_dir=tmp_path / "blocked")
        blocked.log_path.mkdir()
        store.upsert([make_user("A")])
        sync = make_sync(store, FakeFetcher(error=network_error()), blocked, notices)

        assert await sync.load() is SyncState.SYNC_FAILED_FALLBACK
        assert [u.id for u in sync.users()] == ["A"]
        assert [n.event for n in notices] == [SyncEvent.USING_CACHED_DATA]

    async def test_unwritable_log_still_syncs(self, store, make_user, tmp_path, notices):
        blocked = JSONLLogger(log_dir=tmp_path / "blocked")
        blocked.log_path.mkdir()
        sync = make_sync(store, FakeFetcher([make_user("A")]), blocked, notices)

        assert await sync.load() is SyncState.SYNCED
        assert [n.event for n in notices] == [SyncEvent.DATA_CHANGED]
