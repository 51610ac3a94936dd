"""Utilities: retry/backoff and request-ID helpers."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Optional

import httpx

from taikun_reconciler.errors import Cancelled

RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


def generate_request_id() -> str:
    """Generate a short UUID4 hex string for X-Request-ID."""
    return uuid.uuid4().hex[:12]


def retry_with_backoff(
    fn,
    *,
    retries: int = 2,
    backoff_base: float = 0.5,
    retryable_statuses: frozenset = RETRYABLE_STATUS_CODES,
    sleep=time.sleep,
    cancel: Optional[threading.Event] = None,
):
    """Call fn() with exponential backoff on retryable HTTP status codes.

    fn must return an httpx.Response. Transport errors are retried too;
    the last one is raised if all retries are exhausted. With ``cancel`` set,
    the backoff waits on the event instead and raises Cancelled once it fires.
    """
    def pause(seconds: float) -> None:
        if cancel is None:
            sleep(seconds)
        elif cancel.wait(seconds):
            raise Cancelled("cancelled while backing off")

    last_exc: Optional[Exception] = None
    for attempt in range(retries + 1):
        try:
            resp = fn()
            if resp.status_code not in retryable_statuses:
                return resp
            if attempt < retries:
                pause(backoff_base * (2 ** attempt))
                continue
            return resp
        except httpx.TransportError as e:
            last_exc = e
            if attempt < retries:
                pause(backoff_base * (2 ** attempt))
                continue
            raise
    raise last_exc  # type: ignore[misc]
