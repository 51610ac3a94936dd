"""The per-process session threaded through every reconciler."""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional, Tuple

import httpx

from taikun_reconciler.client import Page, TaikunClient
from taikun_reconciler.errors import TransportError
from taikun_reconciler.ids import parse_id
from taikun_reconciler.pager import paginate
from taikun_reconciler.settings import Settings, load_settings
from taikun_reconciler.waiter import Timing


class Session:
    """Transport client, settings, wait cadence and cancellation signal.

    The token pair inside ``client.auth`` is the only shared mutable state;
    everything else here is read-only once built.
    """

    def __init__(
        self,
        client: TaikunClient,
        settings: Optional[Settings] = None,
        timing: Optional[Timing] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.client = client
        self.settings = settings or Settings()
        self.timing = timing or Timing.from_settings(self.settings)
        self.cancel = cancel or threading.Event()
        client.cancel = self.cancel
        self._org_lock = threading.Lock()
        self._default_org: Optional[int] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timing: Optional[Timing] = None,
    ) -> "Session":
        settings = settings or load_settings()
        settings.validate()
        return cls(TaikunClient.from_settings(settings, transport=transport), settings, timing)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def list_all(self, fetch: Callable[[int], Page]) -> List[Any]:
        """Drive a paged client method to completion."""
        return paginate(lambda offset: _as_tuple(fetch(offset)), cancel=self.cancel)

    def default_organization_id(self) -> int:
        """Organization of the authenticated user, looked up once per session."""
        with self._org_lock:
            if self._default_org is None:
                details = self.client.user_details()
                org_id = details.get("organizationId")
                if org_id is None:
                    raise TransportError("user details did not include an organizationId")
                self._default_org = int(org_id)
            return self._default_org

    def organization_id(self, desired: Optional[str]) -> int:
        if desired:
            return parse_id(desired, "organization_id")
        return self.default_organization_id()


def _as_tuple(page: Page) -> Tuple[List[Any], int]:
    return page.items, page.total
