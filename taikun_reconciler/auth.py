"""Session authentication: login, token caching, expiry detection, refresh.

The token pair lives on one ``AuthManager`` per session. A single mutex
serializes login and refresh, and header injection reads under the same
lock so no request goes out with a token that is mid-rotation.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from taikun_reconciler.errors import AuthError
from taikun_reconciler.log import log_event
from taikun_reconciler.utils import generate_request_id

logger = logging.getLogger("taikun.auth")

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _decode_segment(segment: str) -> bytes:
    if not _B64URL_RE.fullmatch(segment):
        raise ValueError("not base64url without padding")
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def token_expiry(token: str) -> Optional[float]:
    """Return the ``exp`` claim of a JWT, or None when it cannot be read."""
    if not isinstance(token, str):
        return None
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        payload = json.loads(_decode_segment(parts[1]))
    except (ValueError, binascii.Error, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return exp


def token_has_expired(token: str, now: Optional[float] = None) -> bool:
    """True iff the token is unparseable or its ``exp`` is not in the future."""
    exp = token_expiry(token)
    if exp is None:
        return True
    if now is None:
        now = time.time()
    return exp <= now


@dataclass(frozen=True)
class Credentials:
    """Login credentials plus backend selector."""

    email: str
    password: str
    federated: bool = False

    def __repr__(self) -> str:
        return f"Credentials(email={self.email!r}, password='***', federated={self.federated})"


class AuthManager:
    """Holds the token pair for one session and hands out auth headers."""

    def __init__(
        self,
        http: httpx.Client,
        credentials: Credentials,
        api_version: int = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._credentials = credentials
        self._api_version = api_version
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    # ── Public API ───────────────────────────────────────────────

    @property
    def has_token(self) -> bool:
        with self._lock:
            return self._token is not None

    def auth_headers(self) -> Dict[str, str]:
        """Return the Authorization header, logging in or refreshing first if needed."""
        with self._lock:
            if self._token is None:
                self._login()
            elif token_has_expired(self._token, self._clock()):
                self._refresh()
            return {"Authorization": f"Bearer {self._token}"}

    def set_tokens(self, token: Optional[str], refresh_token: Optional[str]) -> None:
        with self._lock:
            self._token = token
            self._refresh_token = refresh_token

    def clear(self) -> None:
        self.set_tokens(None, None)

    # ── Internal helpers ─────────────────────────────────────────

    def _login(self) -> None:
        if self._credentials.federated:
            path = f"/api/v{self._api_version}/keycloak/login"
            backend = "federated"
        else:
            path = f"/api/v{self._api_version}/auth/login"
            backend = "default"
        body = {"email": self._credentials.email, "password": self._credentials.password}
        data = self._call("login", path, body)
        self._store(data, "login")
        log_event(logger, "login", backend=backend, email=self._credentials.email)

    def _refresh(self) -> None:
        if not self._refresh_token:
            raise AuthError("access token expired and no refresh token is held")
        path = f"/api/v{self._api_version}/auth/refresh"
        body = {"token": self._token, "refreshToken": self._refresh_token}
        data = self._call("refresh", path, body)
        self._store(data, "refresh")
        log_event(logger, "refresh")

    def _call(self, action: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self._http.post(path, json=body, headers={"X-Request-ID": generate_request_id()})
        except httpx.HTTPError as e:
            raise AuthError(f"{action} failed: {e}", underlying=e) from e
        if resp.status_code >= 400:
            message = _error_message(resp)
            log_event(logger, f"{action}_failed", logging.WARNING, status=resp.status_code)
            raise AuthError(f"{action} failed: [{resp.status_code}] {message}")
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError(f"{action} returned a non-JSON body", underlying=e) from e
        if not isinstance(data, dict):
            raise AuthError(f"{action} returned an unexpected body")
        return data

    def _store(self, data: Dict[str, Any], action: str) -> None:
        token = data.get("token")
        refresh_token = data.get("refreshToken")
        if not token or not refresh_token:
            raise AuthError(f"{action} response did not contain a token pair")
        self._token = token
        self._refresh_token = refresh_token


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("title") or body)
    return str(body)
