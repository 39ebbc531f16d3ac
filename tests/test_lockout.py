"""
Tests for LockoutTracker - consecutive failure counting and timed lockout.

Covers:
- Clean status with no record
- Failure sequence [2, 1, 0] and lock at N
- No increment while locked
- Lazy expiry: record reset once the window passes
- clear() is idempotent and resets the record in place
- Concurrent failures are not lost on compare-and-set backends
- Read-modify-write fallback on backends without compare-and-set
"""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from familyhub.vault import (
    LockoutTracker,
    MemoryBackend,
    SecretStore,
    StoreError,
)
from familyhub.vault.lockout import LOCKOUT_KEY, LockoutRecord
from familyhub.vault.secret_store import SYSTEM_CATEGORY

USER = "alice@example.com"


@pytest.fixture
def store(backend, clock):
    return SecretStore(backend, clock=clock)


@pytest.fixture
def tracker(store, clock):
    return LockoutTracker(store, max_attempts=3, lockout_duration=timedelta(minutes=15), clock=clock)


class NoCasBackend(MemoryBackend):
    """Memory backend that behaves like a store without conditional writes."""

    name = "nocas"
    supports_cas = False

    def compare_and_set(self, *args, **kwargs):
        raise AssertionError("compare_and_set must not be used without CAS support")


class TestStatus:
    def test_clean_without_record(self, tracker):
        status = tracker.get_status(USER)
        assert status.locked is False
        assert status.attempts_left == 3
        assert status.unlock_time is None

    def test_record_is_json(self, tracker, store):
        tracker.record_failure(USER)
        raw = store.get(USER, SYSTEM_CATEGORY, LOCKOUT_KEY)
        assert LockoutRecord.from_json(raw) == LockoutRecord(failed_attempts=1, locked_until=None)

    def test_invalid_max_attempts(self, store):
        with pytest.raises(ValueError):
            LockoutTracker(store, max_attempts=0)


class TestRecordFailure:
    def test_attempts_count_down_then_lock(self, tracker, clock):
        results = [tracker.record_failure(USER) for _ in range(3)]

        assert [r.attempts_left for r in results] == [2, 1, 0]
        assert [r.locked for r in results] == [False, False, True]
        assert results[2].unlock_time == clock() + timedelta(minutes=15)

    def test_status_reflects_lock(self, tracker, clock):
        for _ in range(3):
            tracker.record_failure(USER)

        status = tracker.get_status(USER)
        assert status.locked is True
        assert status.attempts_left == 0
        assert status.unlock_time == clock() + timedelta(minutes=15)

    def test_no_increment_while_locked(self, tracker, store, clock):
        for _ in range(3):
            tracker.record_failure(USER)
        locked_until = tracker.get_status(USER).unlock_time

        clock.advance(minutes=5)
        status = tracker.record_failure(USER)

        assert status.locked is True
        assert status.unlock_time == locked_until
        record = LockoutRecord.from_json(store.get(USER, SYSTEM_CATEGORY, LOCKOUT_KEY))
        assert record.failed_attempts == 3

    def test_users_tracked_independently(self, tracker):
        tracker.record_failure(USER)
        tracker.record_failure(USER)
        assert tracker.get_status("bob@example.com").attempts_left == 3

    def test_single_attempt_policy(self, store, clock):
        tracker = LockoutTracker(store, max_attempts=1, clock=clock)
        status = tracker.record_failure(USER)
        assert status.locked is True
        assert status.attempts_left == 0


class TestExpiry:
    def test_locked_just_before_unlock_time(self, tracker, clock):
        for _ in range(3):
            tracker.record_failure(USER)
        clock.advance(minutes=15, microseconds=-1)
        assert tracker.get_status(USER).locked is True

    def test_unlocked_at_unlock_time(self, tracker, store, clock):
        for _ in range(3):
            tracker.record_failure(USER)
        clock.advance(minutes=15)

        status = tracker.get_status(USER)

        assert status.locked is False
        assert status.attempts_left == 3
        record = LockoutRecord.from_json(store.get(USER, SYSTEM_CATEGORY, LOCKOUT_KEY))
        assert record == LockoutRecord()

    def test_failure_after_expiry_starts_fresh_budget(self, tracker, clock):
        for _ in range(3):
            tracker.record_failure(USER)
        clock.advance(minutes=16)

        status = tracker.record_failure(USER)

        assert status.locked is False
        assert status.attempts_left == 2


class TestClear:
    def test_clear_resets(self, tracker):
        tracker.record_failure(USER)
        tracker.clear(USER)
        assert tracker.get_status(USER).attempts_left == 3

    def test_clear_is_idempotent(self, tracker):
        tracker.clear(USER)
        tracker.clear(USER)
        assert tracker.get_status(USER).attempts_left == 3

    def test_clear_without_record_writes_nothing(self, tracker, backend):
        tracker.clear(USER)
        assert len(backend) == 0

    def test_clear_resets_in_place(self, tracker, store, monkeypatch):
        tracker.record_failure(USER)
        monkeypatch.setattr(store, "delete", MagicMock(side_effect=AssertionError("lockout record deleted")))

        tracker.clear(USER)

        record = LockoutRecord.from_json(store.get(USER, SYSTEM_CATEGORY, LOCKOUT_KEY))
        assert record == LockoutRecord()
        assert tracker.get_status(USER).attempts_left == 3

    def test_clear_repairs_corrupted_record(self, tracker, store):
        store.save(USER, SYSTEM_CATEGORY, LOCKOUT_KEY, "not json")
        with pytest.raises(StoreError):
            tracker.get_status(USER)

        tracker.clear(USER)

        assert tracker.get_status(USER).attempts_left == 3


class TestConcurrency:
    def test_concurrent_failures_not_lost(self, clock):
        store = SecretStore(MemoryBackend(), clock=clock)
        tracker = LockoutTracker(store, max_attempts=50, clock=clock)
        start = threading.Barrier(6)

        def fail():
            start.wait()
            tracker.record_failure(USER)

        threads = [threading.Thread(target=fail) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        record = LockoutRecord.from_json(store.get(USER, SYSTEM_CATEGORY, LOCKOUT_KEY))
        assert record.failed_attempts == 6
        assert tracker.get_status(USER).attempts_left == 44

    def test_conflict_is_retried(self, tracker, store, monkeypatch):
        calls = {"n": 0}
        original = store.compare_and_set

        def flaky(user_id, category, key, value, expected_version, metadata=None):
            calls["n"] += 1
            if calls["n"] == 1:
                # Another writer sneaks in first
                original(user_id, category, key, LockoutRecord(1).to_json(), expected_version)
            return original(user_id, category, key, value, expected_version)

        monkeypatch.setattr(store, "compare_and_set", flaky)

        status = tracker.record_failure(USER)

        assert calls["n"] == 2
        assert status.attempts_left == 1

    def test_persistent_conflict_raises(self, tracker, store, monkeypatch):
        from familyhub.vault import VersionConflict

        def always_conflict(user_id, category, key, value, expected_version, metadata=None):
            raise VersionConflict(key, expected_version)

        monkeypatch.setattr(store, "compare_and_set", always_conflict)

        with pytest.raises(StoreError):
            tracker.record_failure(USER)


class TestWithoutCompareAndSet:
    def test_falls_back_to_plain_write(self, clock):
        store = SecretStore(NoCasBackend(), clock=clock)
        tracker = LockoutTracker(store, max_attempts=3, clock=clock)

        results = [tracker.record_failure(USER) for _ in range(3)]

        assert [r.attempts_left for r in results] == [2, 1, 0]
        assert results[-1].locked is True
