"""
Elevated Access Session Store Tests

Freshness windows, invalidation, the amortized sweep, and concurrent use.
"""

import threading
from datetime import timedelta

import pytest

from rbac import ElevatedAccessStore, PolicyConfigurationError, sweep_expired
from rbac.elevated_access import (
    DEFAULT_ELEVATED_ACCESS_TTL,
    MAX_ELEVATED_ACCESS_TTL,
    as_timedelta,
    validate_ttl,
)
from tests.helpers.authz import FakeClock

FIVE_MINUTES = timedelta(minutes=5)


# =============================================================================
# TTL VALIDATION
# =============================================================================

class TestTTLValidation:

    def test_default_is_five_minutes(self):
        assert DEFAULT_ELEVATED_ACCESS_TTL == FIVE_MINUTES

    @pytest.mark.parametrize("ttl", [1, 300, 3600, timedelta(minutes=30)])
    def test_valid(self, ttl):
        assert validate_ttl(ttl) == as_timedelta(ttl)

    @pytest.mark.parametrize("ttl", [0, 0.5, 3601, timedelta(hours=2), -1])
    def test_out_of_range(self, ttl):
        with pytest.raises(PolicyConfigurationError):
            validate_ttl(ttl)

    def test_sweep_interval_must_be_positive(self):
        with pytest.raises(PolicyConfigurationError):
            ElevatedAccessStore(sweep_interval=0)


# =============================================================================
# FRESHNESS
# =============================================================================

class TestFreshness:

    def test_unknown_subject_is_stale(self, session_store):
        assert not session_store.is_fresh("nobody", FIVE_MINUTES)
        assert session_store.time_remaining("nobody", FIVE_MINUTES) == timedelta(0)
        assert session_store.valid_until("nobody", FIVE_MINUTES) is None

    def test_fresh_immediately_after_verification(self, session_store):
        session_store.record_verification("user-1")
        assert session_store.is_fresh("user-1", timedelta(seconds=1))
        assert session_store.is_fresh("user-1", FIVE_MINUTES)

    def test_window_boundaries(self, session_store, clock):
        """Fresh at t0+4m59s, stale at t0+5m1s."""
        session_store.record_verification("user-1")
        clock.advance(minutes=4, seconds=59)
        assert session_store.is_fresh("user-1", FIVE_MINUTES)
        clock.advance(seconds=2)
        assert not session_store.is_fresh("user-1", FIVE_MINUTES)

    def test_exactly_ttl_is_stale(self, session_store, clock):
        session_store.record_verification("user-1")
        clock.advance(minutes=5)
        assert not session_store.is_fresh("user-1", FIVE_MINUTES)

    def test_ttl_supplied_per_call(self, session_store, clock):
        session_store.record_verification("user-1")
        clock.advance(minutes=10)
        assert not session_store.is_fresh("user-1", FIVE_MINUTES)
        assert session_store.is_fresh("user-1", timedelta(minutes=15))
        assert session_store.is_fresh("user-1", 901)

    def test_reverification_resets_window(self, session_store, clock):
        session_store.record_verification("user-1")
        clock.advance(minutes=4)
        session_store.record_verification("user-1")
        clock.advance(minutes=4)
        assert session_store.is_fresh("user-1", FIVE_MINUTES)
        assert session_store.time_remaining("user-1", FIVE_MINUTES) == timedelta(minutes=1)

    def test_reverification_never_extends_additively(self, session_store, clock):
        session_store.record_verification("user-1")
        session_store.record_verification("user-1")
        assert session_store.time_remaining("user-1", FIVE_MINUTES) == FIVE_MINUTES

    def test_time_remaining_floored_at_zero(self, session_store, clock):
        session_store.record_verification("user-1")
        clock.advance(hours=1)
        assert session_store.time_remaining("user-1", FIVE_MINUTES) == timedelta(0)

    def test_valid_until(self, session_store, clock):
        verified_at = session_store.record_verification("user-1")
        assert verified_at == clock.current
        assert session_store.valid_until("user-1", FIVE_MINUTES) == verified_at + FIVE_MINUTES
        assert session_store.verified_at("user-1") == verified_at

    def test_subjects_independent(self, session_store, clock):
        session_store.record_verification("user-1")
        clock.advance(minutes=3)
        session_store.record_verification("user-2")
        clock.advance(minutes=3)
        assert not session_store.is_fresh("user-1", FIVE_MINUTES)
        assert session_store.is_fresh("user-2", FIVE_MINUTES)

    def test_fresh_window(self, session_store, clock):
        verified_at = session_store.record_verification("user-1")
        clock.advance(minutes=2)
        remaining, valid_until = session_store.fresh_window("user-1", FIVE_MINUTES)
        assert remaining == timedelta(minutes=3)
        assert valid_until == verified_at + FIVE_MINUTES

    def test_fresh_window_none_when_stale_or_unknown(self, session_store, clock):
        assert session_store.fresh_window("nobody", FIVE_MINUTES) is None
        session_store.record_verification("user-1")
        clock.advance(minutes=5)
        assert session_store.fresh_window("user-1", FIVE_MINUTES) is None


class TestInvalidation:

    def test_clear_verification(self, session_store):
        session_store.record_verification("user-1")
        session_store.record_verification("user-2")
        session_store.clear_verification("user-1")
        assert not session_store.is_fresh("user-1", FIVE_MINUTES)
        assert session_store.is_fresh("user-2", FIVE_MINUTES)

    def test_clear_unknown_is_noop(self, session_store):
        session_store.clear_verification("nobody")
        assert len(session_store) == 0

    def test_clear_all(self, session_store):
        for i in range(5):
            session_store.record_verification(f"user-{i}")
        session_store.clear_all()
        assert len(session_store) == 0
        assert "user-0" not in session_store


# =============================================================================
# SWEEP
# =============================================================================

class TestSweepFunction:
    """The pure sweep over a snapshot."""

    def test_selects_entries_at_or_past_max_age(self, clock):
        now = clock.current
        sessions = {
            "old": now - timedelta(hours=2),
            "edge": now - timedelta(hours=1),
            "fresh": now - timedelta(minutes=59),
        }
        assert sweep_expired(sessions, now, timedelta(hours=1)) == {"old", "edge"}

    def test_empty_snapshot(self, clock):
        assert sweep_expired({}, clock.current, timedelta(hours=1)) == set()

    def test_does_not_mutate_snapshot(self, clock):
        sessions = {"old": clock.current - timedelta(days=1)}
        sweep_expired(sessions, clock.current, timedelta(hours=1))
        assert "old" in sessions


class TestStoreSweep:
    """Amortized sweeping inside the store."""

    def test_manual_sweep(self, clock):
        store = ElevatedAccessStore(clock=clock)
        store.record_verification("old")
        clock.advance(hours=1, seconds=1)
        store.record_verification("new")
        assert store.sweep() == 1
        assert "old" not in store
        assert "new" in store

    def test_sweeps_every_n_writes(self, clock):
        store = ElevatedAccessStore(clock=clock, sweep_interval=3)
        store.record_verification("old-1")
        store.record_verification("old-2")
        clock.advance(hours=2)
        assert len(store) == 2
        store.record_verification("new")  # third write triggers the sweep
        assert len(store) == 1
        assert "new" in store

    def test_no_sweep_before_interval(self, clock):
        store = ElevatedAccessStore(clock=clock, sweep_interval=10)
        store.record_verification("old")
        clock.advance(hours=2)
        store.record_verification("new")
        assert "old" in store

    def test_sweep_keeps_entries_fresh_for_longest_ttl_seen(self, clock):
        store = ElevatedAccessStore(clock=clock, sweep_ceiling=timedelta(minutes=5))
        store.record_verification("user-1")
        assert store.is_fresh("user-1", timedelta(minutes=30))
        assert store.sweep_ceiling == timedelta(minutes=30)
        clock.advance(minutes=10)
        store.sweep()
        assert store.is_fresh("user-1", timedelta(minutes=30))

    def test_default_ceiling_is_one_hour(self):
        assert ElevatedAccessStore().sweep_ceiling == MAX_ELEVATED_ACCESS_TTL


# =============================================================================
# CONCURRENCY
# =============================================================================

class TestConcurrency:
    """Readers and writers from many threads."""

    def test_concurrent_writes_and_reads(self):
        clock = FakeClock()
        store = ElevatedAccessStore(clock=clock, sweep_interval=7)
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    subject = f"user-{n}-{i % 10}"
                    store.record_verification(subject)
                    if not store.is_fresh(subject, FIVE_MINUTES):
                        errors.append(subject)
                    store.time_remaining(subject, FIVE_MINUTES)
            except Exception as exc:  # surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(store) == 80

    def test_concurrent_same_subject(self):
        clock = FakeClock()
        store = ElevatedAccessStore(clock=clock, sweep_interval=1)
        seen = []

        def writer():
            for _ in range(500):
                store.record_verification("shared")

        def reader():
            for _ in range(500):
                value = store.verified_at("shared")
                if value is not None:
                    seen.append(value)

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(value == clock.current for value in seen)
        assert store.is_fresh("shared", FIVE_MINUTES)
