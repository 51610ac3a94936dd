"""Unlock, mutate, relock around updates to lockable entities.

The observed lock bit and the desired lock bit are handled independently:
a locked entity that stays locked but has other field changes goes through
unlock -> mutate -> lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from taikun_reconciler.errors import ConflictError, Timeout, TransportError
from taikun_reconciler.log import log_event
from taikun_reconciler.waiter import Timing, wait_for_status

logger = logging.getLogger("taikun.lock")


def mediate_lock(
    *,
    observed_locked: bool,
    desired_locked: bool,
    set_lock: Callable[[bool], None],
    mutate: Optional[Callable[[], None]] = None,
    read_locked: Optional[Callable[[], bool]] = None,
    timing: Timing = Timing(),
    cancel: Optional[threading.Event] = None,
    what: str = "entity",
) -> None:
    """Apply ``mutate`` under the lock discipline.

    Args:
        observed_locked: Lock bit currently reported by the platform.
        desired_locked: Lock bit the caller wants once the update is done.
        set_lock: Issues the lock-manager call for ``True``/``False``.
        mutate: Field changes to apply, or None for a lock-only change.
        read_locked: Re-reads the lock bit; when given, the unlock is
            confirmed before mutating.
    """
    if mutate is None:
        if observed_locked != desired_locked:
            log_event(logger, "lock_only", what=what, locked=desired_locked)
            set_lock(desired_locked)
        return

    if observed_locked:
        log_event(logger, "unlock", what=what)
        try:
            set_lock(False)
        except TransportError as e:
            raise ConflictError(f"{what} is locked and could not be unlocked: {e}", underlying=e) from e
        if read_locked is not None:
            try:
                wait_for_status(
                    lambda: (None, read_locked()),
                    target={False},
                    pending={True},
                    timeout=timing.toggle_timeout,
                    timing=timing,
                    cancel=cancel,
                    what=f"{what} lock",
                )
            except Timeout as e:
                raise ConflictError(f"{what} stayed locked after unlock", underlying=e) from e

    mutate()

    if desired_locked:
        log_event(logger, "relock", what=what)
        set_lock(True)
