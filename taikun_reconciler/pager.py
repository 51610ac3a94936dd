"""Offset pagination with total-count termination."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

from taikun_reconciler.errors import Cancelled, TransportError
from taikun_reconciler.log import log_event

logger = logging.getLogger("taikun.pager")

FetchPage = Callable[[int], Tuple[List[Any], int]]


def paginate(fetch: FetchPage, cancel: Optional[threading.Event] = None) -> List[Any]:
    """Accumulate every item of an offset-paged endpoint.

    ``fetch(offset)`` returns ``(items, total_count)``. The next offset is
    always the number of items accumulated so far, so short or long pages
    are tolerated. The loop ends once the accumulated count reaches the
    total announced by the latest page, including when that total shrinks
    below what has already been collected. Errors from ``fetch`` propagate
    and no partial result is returned.
    """
    accumulated: List[Any] = []
    calls = 0
    while True:
        if cancel is not None and cancel.is_set():
            raise Cancelled("pagination cancelled")
        offset = len(accumulated)
        items, total = fetch(offset)
        calls += 1
        accumulated.extend(items)
        if len(accumulated) >= total:
            break
        if not items:
            raise TransportError(
                f"pagination stalled at offset {offset}: empty page with totalCount={total}"
            )
    log_event(logger, "paginate", logging.DEBUG, calls=calls, items=len(accumulated))
    return accumulated
