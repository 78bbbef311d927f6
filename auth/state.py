"""
auth/state.py -- Single-use, expiring correlation tokens for the OAuth handshake.

StateTracker replaces a process-wide state map: the application constructs
one in its lifespan, passes it to whatever needs it via app.state, and owns
the start/stop of its background reaper.

Concurrency:
  [ST1] The token map is the only shared mutable structure in the auth core.
        issue(), verify_and_consume() and reap() each run entirely under one
        threading.Lock. verify_and_consume() looks up and removes the entry
        in the same critical section, so for any token exactly one caller
        can succeed no matter how many threads race on it.

  [ST2] Token values come from secrets.token_urlsafe(32): 256 bits from the
        OS CSPRNG. They are never derived from a clock or counter.

  [ST3] The reaper is a daemon thread waiting on a threading.Event. stop()
        sets the event and joins, so tests and shutdown never leak it. An
        exception inside a sweep is logged and the next tick still runs.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.errors import InvalidOrExpiredState
from auth.models import CorrelationToken

logger = logging.getLogger("surfer.auth.state")

_TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateTracker:
    """Issue and verify-and-consume OAuth correlation tokens.

    Usage:
        tracker = StateTracker()
        tracker.start()
        token = tracker.issue()
        tracker.verify_and_consume(token.value)  # raises on reuse/expiry
        tracker.stop()
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=5),
        reap_interval: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.ttl = ttl
        self.reap_interval = reap_interval
        self._clock = clock
        self._states: dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._reaper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    # ------------------------------------------------------------------
    # Token operations
    # ------------------------------------------------------------------

    def issue(self) -> CorrelationToken:
        """Mint a new token valid for one verification within the TTL [ST2]."""
        value = secrets.token_urlsafe(_TOKEN_BYTES)
        expires_at = self._clock() + self.ttl
        with self._lock:
            self._states[value] = expires_at
        return CorrelationToken(value=value, expires_at=expires_at)

    def verify_and_consume(self, value: str | None) -> None:
        """Accept a token at most once, and only before its expiry.

        The entry is removed whether it is accepted or found expired, inside
        the same critical section as the lookup [ST1].

        Raises:
            InvalidOrExpiredState: token missing, unknown, already used, or expired.
        """
        if not value:
            raise InvalidOrExpiredState("Missing state parameter.")
        with self._lock:
            expires_at = self._states.pop(value, None)
            now = self._clock()
        if expires_at is None:
            logger.warning("Rejected unknown or already-used OAuth state")
            raise InvalidOrExpiredState()
        if now >= expires_at:
            logger.warning("Rejected expired OAuth state")
            raise InvalidOrExpiredState()

    def reap(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            expired = [value for value, expires_at in self._states.items() if now >= expires_at]
            for value in expired:
                del self._states[value]
        if expired:
            logger.info("Reaped %d expired OAuth state(s)", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Background reaper [ST3]
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the reaper thread. Calling start() twice is a no-op."""
        if self._reaper is not None and self._reaper.is_alive():
            return
        self._stop.clear()
        self._reaper = threading.Thread(target=self._reap_loop, name="oauth-state-reaper", daemon=True)
        self._reaper.start()
        logger.debug("OAuth state reaper started (interval=%s)", self.reap_interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the reaper to exit and wait for it."""
        self._stop.set()
        if self._reaper is not None:
            self._reaper.join(timeout)
            self._reaper = None
        logger.debug("OAuth state reaper stopped")

    @property
    def running(self) -> bool:
        return self._reaper is not None and self._reaper.is_alive()

    def _reap_loop(self) -> None:
        interval = self.reap_interval.total_seconds()
        while not self._stop.wait(interval):
            try:
                self.reap()
            except Exception:
                logger.exception("OAuth state reaper sweep failed; retrying next tick")
