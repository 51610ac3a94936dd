"""Retry/wait kernel.

Two primitives:

- ``read_after_op`` retries a read that raises ``NotFoundAfterOp`` until the
  entity becomes visible or the per-operation deadline elapses (2 minutes
  after create, 1 minute after update). Any other error is fatal.
- ``wait_for_status`` polls a lifecycle state until it reaches a target,
  failing fast on a state outside ``pending | target``.

Both sleep through the cancellation event so a caller can abort them.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple, TypeVar

from taikun_reconciler.errors import Cancelled, NotFoundAfterOp, Timeout, UnexpectedState
from taikun_reconciler.log import log_event
from taikun_reconciler.settings import Settings

logger = logging.getLogger("taikun.wait")

T = TypeVar("T")

CREATE = "create"
UPDATE = "update"


@dataclass(frozen=True)
class Timing:
    """Cadence and deadlines of the wait kernel, in seconds."""

    poll_interval: float = 5.0
    poll_delay: float = 2.0
    read_retry_interval: float = 0.5
    read_retry_max_interval: float = 10.0
    read_after_create: float = 120.0
    read_after_update: float = 60.0
    toggle_timeout: float = 300.0
    provision_timeout: float = 2400.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "Timing":
        return cls(
            poll_interval=settings.poll_interval,
            poll_delay=settings.poll_delay,
            toggle_timeout=settings.toggle_timeout,
            provision_timeout=settings.provision_timeout,
        )

    def read_deadline(self, op: str) -> float:
        return self.read_after_update if op == UPDATE else self.read_after_create


def sleep(seconds: float, cancel: Optional[threading.Event] = None) -> None:
    """Sleep, raising Cancelled as soon as ``cancel`` is set."""
    if cancel is None:
        if seconds > 0:
            time.sleep(seconds)
        return
    if cancel.is_set() or (seconds > 0 and cancel.wait(seconds)):
        raise Cancelled("wait cancelled")


def read_after_op(
    read: Callable[[], T],
    *,
    op: str = CREATE,
    timing: Timing = Timing(),
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Retry ``read`` while it raises NotFoundAfterOp, within the op deadline."""
    deadline = clock() + timing.read_deadline(op)
    interval = timing.read_retry_interval
    attempt = 0
    while True:
        if cancel is not None and cancel.is_set():
            raise Cancelled(f"read after {op} cancelled")
        attempt += 1
        try:
            return read()
        except NotFoundAfterOp:
            remaining = deadline - clock()
            if remaining <= 0:
                noun = "updated" if op == UPDATE else "created"
                raise Timeout(f"timed out reading newly {noun} resource after {attempt} attempts") from None
            log_event(logger, "read_after_op_retry", logging.DEBUG, op=op, attempt=attempt)
            sleep(min(interval, remaining), cancel)
            interval = min(interval * 2, timing.read_retry_max_interval)


def wait_for_status(
    refresh: Callable[[], Tuple[Any, Any]],
    *,
    target: Iterable[Any],
    pending: Iterable[Any],
    timeout: float,
    timing: Timing = Timing(),
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    what: str = "state",
) -> Any:
    """Poll ``refresh()`` -> ``(result, state)`` until ``state`` is a target.

    The first poll runs after ``timing.poll_delay`` and then every
    ``timing.poll_interval``. A single matching observation ends the wait.
    """
    targets = set(target)
    allowed = set(pending)
    deadline = clock() + timeout
    sleep(timing.poll_delay, cancel)
    polls = 0
    while True:
        result, state = refresh()
        polls += 1
        log_event(logger, "poll", logging.DEBUG, what=what, state=state, polls=polls)
        if state in targets:
            return result
        if state not in allowed:
            raise UnexpectedState(
                f"{what} reached unexpected state {state!r} (expected {sorted(map(str, targets))})",
                state=state,
            )
        remaining = deadline - clock()
        if remaining <= 0:
            raise Timeout(f"timed out after {timeout:g}s waiting for {what} to reach {sorted(map(str, targets))}")
        sleep(min(timing.poll_interval, remaining), cancel)
