"""Tests for read-after-write retries and status polling."""

from __future__ import annotations

import threading

import pytest

from taikun_reconciler.errors import Cancelled, NotFound, NotFoundAfterOp, Timeout, UnexpectedState
from taikun_reconciler.settings import Settings
from taikun_reconciler.waiter import CREATE, UPDATE, Timing, read_after_op, sleep, wait_for_status

NO_DELAY = Timing(poll_interval=0, poll_delay=0, read_retry_interval=0, read_retry_max_interval=0)


class FakeClock:
    """Monotonic clock that advances by ``step`` on every reading."""

    def __init__(self, step: float = 1.0) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class TestTiming:
    def test_defaults(self) -> None:
        t = Timing()
        assert (t.poll_interval, t.poll_delay) == (5.0, 2.0)
        assert t.read_deadline(CREATE) == 120.0
        assert t.read_deadline(UPDATE) == 60.0

    def test_from_settings(self) -> None:
        t = Timing.from_settings(Settings(poll_interval=1.5, toggle_timeout=30, provision_timeout=90))
        assert t.poll_interval == 1.5
        assert t.toggle_timeout == 30
        assert t.provision_timeout == 90
        assert t.read_after_create == 120.0


class TestSleep:
    def test_zero_does_not_block(self) -> None:
        sleep(0, threading.Event())

    def test_cancelled_event_raises(self) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            sleep(0, cancel)


class TestReadAfterOp:
    """Retry only while the entity is not yet visible."""

    def test_visible_after_two_misses(self) -> None:
        """Empty twice, then id 42."""
        results = [NotFoundAfterOp("not yet"), NotFoundAfterOp("not yet"), {"id": 42}]
        calls = []

        def read():
            calls.append(1)
            r = results.pop(0)
            if isinstance(r, Exception):
                raise r
            return r

        assert read_after_op(read, timing=NO_DELAY) == {"id": 42}
        assert len(calls) == 3

    def test_other_errors_are_fatal(self) -> None:
        calls = []

        def read():
            calls.append(1)
            raise NotFound("plain not found")

        with pytest.raises(NotFound):
            read_after_op(read, timing=NO_DELAY)
        assert len(calls) == 1

    def test_deadline(self) -> None:
        def read():
            raise NotFoundAfterOp("never")

        with pytest.raises(Timeout, match="newly created"):
            read_after_op(read, op=CREATE, timing=NO_DELAY, clock=FakeClock(step=50))

    def test_update_deadline_wording(self) -> None:
        def read():
            raise NotFoundAfterOp("never")

        with pytest.raises(Timeout, match="newly updated"):
            read_after_op(read, op=UPDATE, timing=NO_DELAY, clock=FakeClock(step=50))

    def test_cancel(self) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            read_after_op(lambda: 1, timing=NO_DELAY, cancel=cancel)


class TestWaitForStatus:
    """Poll until a target state; fail fast on anything unexpected."""

    def _states(self, *states):
        seq = list(states)
        polls = []

        def refresh():
            polls.append(1)
            state = seq.pop(0) if len(seq) > 1 else seq[0]
            return {"state": state}, state

        return refresh, polls

    def test_reaches_target(self) -> None:
        refresh, polls = self._states("Updating", "Updating", "Ready")
        result = wait_for_status(refresh, target={"Ready"}, pending={"Updating"}, timeout=10, timing=NO_DELAY)
        assert result == {"state": "Ready"}
        assert len(polls) == 3

    def test_already_at_target(self) -> None:
        refresh, polls = self._states("Ready")
        wait_for_status(refresh, target={"Ready"}, pending=set(), timeout=10, timing=NO_DELAY)
        assert len(polls) == 1

    def test_unexpected_state(self) -> None:
        refresh, _ = self._states("Updating", "Failure")
        with pytest.raises(UnexpectedState) as exc:
            wait_for_status(refresh, target={"Ready"}, pending={"Updating"}, timeout=10, timing=NO_DELAY)
        assert exc.value.state == "Failure"

    def test_timeout(self) -> None:
        refresh, _ = self._states("Updating")
        with pytest.raises(Timeout):
            wait_for_status(
                refresh, target={"Ready"}, pending={"Updating"}, timeout=5,
                timing=NO_DELAY, clock=FakeClock(step=2),
            )

    def test_boolean_states(self) -> None:
        refresh, _ = self._states(True, True, False)
        wait_for_status(refresh, target={False}, pending={True}, timeout=10, timing=NO_DELAY)

    def test_cancel_before_first_poll(self) -> None:
        refresh, polls = self._states("Updating")
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            wait_for_status(
                refresh, target={"Ready"}, pending={"Updating"}, timeout=10, timing=NO_DELAY, cancel=cancel
            )
        assert polls == []
