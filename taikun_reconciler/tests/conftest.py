"""Shared fixtures: an in-memory fake platform behind httpx.MockTransport.

Routes are registered per ``(method, path)`` where ``path`` is the part
after ``/api/v1/``. A route is either a static JSON value or a callable
taking the recorded ``Call`` and returning a JSON value or an
``httpx.Response``. Every request is recorded in ``platform.calls``.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any, Callable, Dict, List, NamedTuple, Tuple, Union

import httpx
import pytest

from taikun_reconciler.client import TaikunClient
from taikun_reconciler.session import Session
from taikun_reconciler.settings import Settings
from taikun_reconciler.waiter import Timing

BASE_URL = "https://api.taikun.test"
API_PREFIX = "/api/v1/"

# Zero cadence with short deadlines so waits never sleep.
FAST = Timing(
    poll_interval=0,
    poll_delay=0,
    read_retry_interval=0,
    read_retry_max_interval=0,
    read_after_create=1.0,
    read_after_update=1.0,
    toggle_timeout=1.0,
    provision_timeout=1.0,
)


def _b64(data: Dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def make_jwt(exp: Any) -> str:
    return f"{_b64({'alg': 'HS256', 'typ': 'JWT'})}.{_b64({'exp': exp})}.signature"


class Call(NamedTuple):
    method: str
    path: str
    params: Dict[str, str]
    body: Any
    headers: Dict[str, str]


Route = Union[Any, Callable[[Call], Any]]


class FakePlatform:
    """Route table plus call log standing in for the Taikun API."""

    jwt = staticmethod(make_jwt)

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.calls: List[Call] = []
        self.token = make_jwt(time.time() + 3600)
        self.refresh_token = "refresh-1"
        self.on("POST", "auth/login", lambda call: {"token": self.token, "refreshToken": self.refresh_token})
        self.on("POST", "keycloak/login", lambda call: {"token": self.token, "refreshToken": self.refresh_token})
        self.on("GET", "users/details", {"data": {"organizationId": 1, "id": "me"}})

    # ── Registration ─────────────────────────────────────────────

    def on(self, method: str, path: str, route: Route) -> None:
        self.routes[(method, path)] = route

    def listing(self, path: str, rows: Union[List[Dict[str, Any]], Callable[[], List[Dict[str, Any]]]]) -> None:
        """Serve ``rows`` as a list endpoint honouring the ``Id`` and ``OrganizationId`` filters."""

        def handler(call: Call) -> Dict[str, Any]:
            current = rows() if callable(rows) else rows
            wanted = call.params.get("Id")
            if wanted is not None:
                current = [r for r in current if str(r.get("id")) == wanted]
            organization = call.params.get("OrganizationId")
            if organization is not None:
                current = [r for r in current if str(r.get("organizationId")) == organization]
            offset = int(call.params.get("Offset", 0))
            return {"data": current[offset:], "totalCount": len(current)}

        self.on("GET", path, handler)

    # ── Inspection ───────────────────────────────────────────────

    def api_calls(self, *, include_reads: bool = True) -> List[str]:
        """``"METHOD path"`` for every non-auth call, in order."""
        out = []
        for c in self.calls:
            if c.path in ("auth/login", "auth/refresh", "keycloak/login", "users/details"):
                continue
            if not include_reads and c.method == "GET":
                continue
            out.append(f"{c.method} {c.path}")
        return out

    def bodies(self, method: str, path: str) -> List[Any]:
        return [c.body for c in self.calls if c.method == method and c.path == path]

    # ── Transport ────────────────────────────────────────────────

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        body: Any = None
        if request.content:
            if request.headers.get("content-type", "").startswith("application/json"):
                body = json.loads(request.content)
            else:
                body = request.content
        call = Call(request.method, path, dict(request.url.params), body, {k.lower(): v for k, v in request.headers.items()})
        self.calls.append(call)

        if (request.method, path) not in self.routes:
            return httpx.Response(404, json={"message": f"no route for {request.method} {path}", "statusCode": 404})
        route = self.routes[(request.method, path)]
        result = route(call) if callable(route) else route
        if isinstance(result, httpx.Response):
            return result
        if result is None:
            return httpx.Response(200)
        return httpx.Response(200, json=result)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture(autouse=True)
def _reset_taikun_logger():
    """Undo any handler or level the CLI installed on the ``taikun`` logger."""
    yield
    root = logging.getLogger("taikun")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def client(platform: FakePlatform) -> TaikunClient:
    c = TaikunClient(BASE_URL, email="ops@example.com", password="pw", transport=platform.transport())
    yield c
    c.close()


@pytest.fixture
def session(client: TaikunClient) -> Session:
    return Session(client, Settings(email="ops@example.com", password="pw"), timing=FAST)
