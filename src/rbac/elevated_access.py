"""
KGC ERP - Elevated Access Sessions

Sensitive operations (cancellations, stock corrections, user deletion,
system configuration) require the caller to have re-verified their identity
recently. Verification itself happens elsewhere; this store only records
WHEN it happened and answers freshness questions against a TTL supplied by
each operation's policy.

Thread-safe, single-process, in-memory. Expired entries are swept every N
writes; the sweep is a pure function over a snapshot so it can be tested on
its own.

Usage:
    store = ElevatedAccessStore()
    store.record_verification("user-1")
    store.is_fresh("user-1", timedelta(minutes=5))   # True
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Mapping, Optional, Set, Tuple, Union

from .exceptions import PolicyConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# TTL POLICY
# =============================================================================

DEFAULT_ELEVATED_ACCESS_TTL = timedelta(minutes=5)
MIN_ELEVATED_ACCESS_TTL = timedelta(seconds=1)
MAX_ELEVATED_ACCESS_TTL = timedelta(hours=1)

DEFAULT_SWEEP_INTERVAL = 100  # writes between sweeps

TTLValue = Union[timedelta, int, float]


def as_timedelta(ttl: TTLValue) -> timedelta:
    """Accept a timedelta or a number of seconds."""
    if isinstance(ttl, timedelta):
        return ttl
    return timedelta(seconds=ttl)


def validate_ttl(ttl: TTLValue) -> timedelta:
    """
    Check a TTL declared by an operation policy.

    Raises:
        PolicyConfigurationError: TTL below 1 second or above 1 hour
    """
    value = as_timedelta(ttl)
    if value < MIN_ELEVATED_ACCESS_TTL or value > MAX_ELEVATED_ACCESS_TTL:
        raise PolicyConfigurationError(
            f"Elevated access TTL must be between {MIN_ELEVATED_ACCESS_TTL.total_seconds():.0f}s "
            f"and {MAX_ELEVATED_ACCESS_TTL.total_seconds():.0f}s, got {value.total_seconds()}s"
        )
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sweep_expired(
    sessions: Mapping[str, datetime],
    now: datetime,
    max_age: timedelta,
) -> Set[str]:
    """
    Subject ids whose verification is at least `max_age` old.

    An entry is only returned once `now - verified_at >= max_age`; any
    freshness check with a TTL up to `max_age` already reports it stale.
    """
    return {
        subject_id
        for subject_id, verified_at in sessions.items()
        if now - verified_at >= max_age
    }


# =============================================================================
# STORE
# =============================================================================

class ElevatedAccessStore:
    """Per-subject "last verified at" timestamps."""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        sweep_interval: int = DEFAULT_SWEEP_INTERVAL,
        sweep_ceiling: TTLValue = MAX_ELEVATED_ACCESS_TTL,
    ):
        if sweep_interval < 1:
            raise PolicyConfigurationError("sweep_interval must be at least 1")
        self._clock = clock or utc_now
        self._sweep_interval = sweep_interval
        self._max_age = as_timedelta(sweep_ceiling)
        self._sessions: Dict[str, datetime] = {}
        self._writes_since_sweep = 0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record_verification(self, subject_id: str) -> datetime:
        """Start a full freshness window for the subject, replacing any prior one."""
        now = self._clock()
        with self._lock:
            self._sessions[subject_id] = now
            self._writes_since_sweep += 1
            if self._writes_since_sweep >= self._sweep_interval:
                self._sweep_locked(now)
        logger.debug(f"Elevated access verified for subject={subject_id}")
        return now

    def clear_verification(self, subject_id: str) -> None:
        with self._lock:
            self._sessions.pop(subject_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._writes_since_sweep = 0

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def verified_at(self, subject_id: str) -> Optional[datetime]:
        with self._lock:
            return self._sessions.get(subject_id)

    def _read(self, subject_id: str, ttl: TTLValue) -> Tuple[Optional[datetime], timedelta]:
        # The sweep ceiling grows to cover every TTL ever asked about, so a
        # sweep can never evict an entry some caller still considers fresh.
        ttl = as_timedelta(ttl)
        with self._lock:
            if ttl > self._max_age:
                self._max_age = ttl
            return self._sessions.get(subject_id), ttl

    def is_fresh(self, subject_id: str, ttl: TTLValue = DEFAULT_ELEVATED_ACCESS_TTL) -> bool:
        """True iff the subject verified less than `ttl` ago."""
        verified_at, ttl = self._read(subject_id, ttl)
        if verified_at is None:
            return False
        return self._clock() - verified_at < ttl

    def time_remaining(
        self,
        subject_id: str,
        ttl: TTLValue = DEFAULT_ELEVATED_ACCESS_TTL,
    ) -> timedelta:
        """Time left in the freshness window, floored at zero."""
        verified_at, ttl = self._read(subject_id, ttl)
        if verified_at is None:
            return timedelta(0)
        remaining = verified_at + ttl - self._clock()
        return max(remaining, timedelta(0))

    def valid_until(
        self,
        subject_id: str,
        ttl: TTLValue = DEFAULT_ELEVATED_ACCESS_TTL,
    ) -> Optional[datetime]:
        verified_at, ttl = self._read(subject_id, ttl)
        if verified_at is None:
            return None
        return verified_at + ttl

    def fresh_window(
        self,
        subject_id: str,
        ttl: TTLValue = DEFAULT_ELEVATED_ACCESS_TTL,
    ) -> Optional[Tuple[timedelta, datetime]]:
        """
        (time remaining, valid until) from a single read, or None when stale.

        Freshness and both values come from the same verified_at, so they
        cannot disagree if a sweep or clear runs concurrently.
        """
        verified_at, ttl = self._read(subject_id, ttl)
        if verified_at is None:
            return None
        valid_until = verified_at + ttl
        remaining = valid_until - self._clock()
        if remaining <= timedelta(0):
            return None
        return remaining, valid_until

    # -------------------------------------------------------------------------
    # Sweeping
    # -------------------------------------------------------------------------

    def sweep(self) -> int:
        """Evict expired entries now. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            return self._sweep_locked(now)

    def _sweep_locked(self, now: datetime) -> int:
        expired = sweep_expired(self._sessions, now, self._max_age)
        for subject_id in expired:
            del self._sessions[subject_id]
        self._writes_since_sweep = 0
        if expired:
            logger.debug(f"Swept {len(expired)} expired elevated access sessions")
        return len(expired)

    @property
    def sweep_ceiling(self) -> timedelta:
        return self._max_age

    @property
    def sweep_interval(self) -> int:
        return self._sweep_interval

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, subject_id: object) -> bool:
        with self._lock:
            return subject_id in self._sessions
