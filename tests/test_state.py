"""
tests/test_state.py -- Unit tests for auth/state.py (StateTracker).

Covers:
  - issue() returns unguessable, distinct tokens with expiry = now + TTL
  - verify_and_consume() accepts exactly once within the TTL
  - expired, unknown, and missing tokens are rejected with InvalidOrExpiredState
  - N threads racing on one token: exactly one wins
  - reap() evicts only expired entries
  - the reaper thread evicts on its own, stops cleanly, and survives a failing sweep
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest

from auth.errors import InvalidOrExpiredState
from auth.state import StateTracker


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestIssue:
    def test_expiry_is_now_plus_ttl(self, clock) -> None:
        tracker = StateTracker(clock=clock)
        token = tracker.issue()
        assert token.expires_at == clock.now + timedelta(minutes=5)
        assert len(tracker) == 1

    def test_tokens_are_distinct_and_long(self) -> None:
        """256 bits of urlsafe base64 is 43 characters; 1000 draws never collide."""
        tracker = StateTracker()
        values = {tracker.issue().value for _ in range(1000)}
        assert len(values) == 1000
        assert all(len(v) >= 43 for v in values)

    def test_tokens_are_not_timestamps(self) -> None:
        tracker = StateTracker()
        assert not tracker.issue().value.isdigit()


class TestVerifyAndConsume:
    def test_accepts_exactly_once(self, clock) -> None:
        tracker = StateTracker(clock=clock)
        token = tracker.issue()
        tracker.verify_and_consume(token.value)
        with pytest.raises(InvalidOrExpiredState):
            tracker.verify_and_consume(token.value)
        assert len(tracker) == 0

    def test_accepts_just_before_expiry(self, clock) -> None:
        tracker = StateTracker(clock=clock)
        token = tracker.issue()
        clock.advance(minutes=4, seconds=59)
        tracker.verify_and_consume(token.value)

    def test_rejects_after_ttl_even_if_never_used(self, clock) -> None:
        tracker = StateTracker(clock=clock)
        token = tracker.issue()
        clock.advance(minutes=5, seconds=1)
        with pytest.raises(InvalidOrExpiredState):
            tracker.verify_and_consume(token.value)
        # The expired entry is gone, not left for the reaper.
        assert len(tracker) == 0

    def test_rejects_unknown_token(self) -> None:
        tracker = StateTracker()
        tracker.issue()
        with pytest.raises(InvalidOrExpiredState):
            tracker.verify_and_consume("not-a-token-we-issued")
        assert len(tracker) == 1

    @pytest.mark.parametrize("value", [None, ""])
    def test_rejects_missing_token(self, value) -> None:
        with pytest.raises(InvalidOrExpiredState):
            StateTracker().verify_and_consume(value)

    def test_concurrent_consumers_exactly_one_wins(self) -> None:
        tracker = StateTracker()
        token = tracker.issue()
        workers = 16
        barrier = threading.Barrier(workers)
        results: list[bool] = []

        def consume() -> None:
            barrier.wait()
            try:
                tracker.verify_and_consume(token.value)
                results.append(True)
            except InvalidOrExpiredState:
                results.append(False)

        threads = [threading.Thread(target=consume) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == workers - 1


class TestReap:
    def test_reap_evicts_only_expired(self, clock) -> None:
        tracker = StateTracker(clock=clock)
        old = tracker.issue()
        clock.advance(minutes=3)
        fresh = tracker.issue()
        clock.advance(minutes=3)

        assert tracker.reap() == 1
        assert len(tracker) == 1
        with pytest.raises(InvalidOrExpiredState):
            tracker.verify_and_consume(old.value)
        tracker.verify_and_consume(fresh.value)

    def test_reap_on_empty_tracker(self) -> None:
        assert StateTracker().reap() == 0


class TestReaperThread:
    def test_reaper_evicts_in_background(self, clock) -> None:
        tracker = StateTracker(clock=clock, reap_interval=timedelta(milliseconds=10))
        tracker.issue()
        clock.advance(minutes=6)
        tracker.start()
        try:
            assert _wait_for(lambda: len(tracker) == 0)
        finally:
            tracker.stop()

    def test_stop_ends_the_thread(self) -> None:
        tracker = StateTracker(reap_interval=timedelta(minutes=5))
        tracker.start()
        assert tracker.running
        tracker.stop()
        assert not tracker.running

    def test_start_twice_keeps_one_thread(self) -> None:
        tracker = StateTracker(reap_interval=timedelta(minutes=5))
        tracker.start()
        first = tracker._reaper
        tracker.start()
        try:
            assert tracker._reaper is first
        finally:
            tracker.stop()

    def test_failing_sweep_does_not_kill_reaper(self, clock) -> None:
        tracker = StateTracker(clock=clock, reap_interval=timedelta(milliseconds=10))
        real_reap = tracker.reap
        calls: list[int] = []

        def flaky_reap() -> int:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("sweep failed")
            return real_reap()

        tracker.reap = flaky_reap
        tracker.issue()
        clock.advance(minutes=6)
        tracker.start()
        try:
            assert _wait_for(lambda: len(calls) >= 2 and len(tracker) == 0)
            assert tracker.running
        finally:
            tracker.stop()
