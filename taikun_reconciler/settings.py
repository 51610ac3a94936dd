"""Centralized settings for the Taikun reconciler.

Reads environment variables with sensible defaults. Never exposes secrets
in repr or serialization.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from taikun_reconciler.errors import ValidationError


def _float_env(key: str, default: float) -> float:
    """Parse a float env var with fallback."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _int_env(key: str, default: int) -> int:
    """Parse an int env var with fallback."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _first_env(*keys: str) -> str:
    for key in keys:
        val = os.environ.get(key)
        if val:
            return val
    return ""


@dataclass(frozen=True)
class Settings:
    """Immutable client configuration. Safe to log, secrets are masked."""

    # ── Platform ───────────────────────────────────────────────────
    api_host: str = "api.taikun.cloud"
    api_scheme: str = "https"
    api_version: int = 1

    # ── Credentials ────────────────────────────────────────────────
    email: str = ""
    password: str = ""
    keycloak_email: str = ""
    keycloak_password: str = ""

    # ── Transport ──────────────────────────────────────────────────
    http_timeout: float = 60.0
    http_retries: int = 0

    # ── Logging ────────────────────────────────────────────────────
    log_format: str = "text"
    log_level: str = "WARNING"

    # ── Wait kernel ────────────────────────────────────────────────
    poll_interval: float = 5.0
    poll_delay: float = 2.0
    toggle_timeout: float = 300.0
    provision_timeout: float = 2400.0

    @property
    def base_url(self) -> str:
        return f"{self.api_scheme}://{self.api_host}"

    @property
    def use_keycloak(self) -> bool:
        return bool(self.keycloak_email)

    @property
    def login_email(self) -> str:
        return self.keycloak_email if self.use_keycloak else self.email

    @property
    def login_password(self) -> str:
        return self.keycloak_password if self.use_keycloak else self.password

    def validate(self) -> None:
        """Raise ValidationError when the credential set is unusable."""
        default_set = bool(self.email or self.password)
        federated_set = bool(self.keycloak_email or self.keycloak_password)
        if default_set and federated_set:
            raise ValidationError(
                "set either EMAIL/PASSWORD or TAIKUN_KEYCLOAK_EMAIL/TAIKUN_KEYCLOAK_PASSWORD, not both",
                "credentials",
            )
        if not self.login_email or not self.login_password:
            raise ValidationError("EMAIL and PASSWORD must be set", "credentials")
        if self.api_scheme not in ("http", "https"):
            raise ValidationError(f"unsupported scheme {self.api_scheme!r}", "api_scheme")

    def __repr__(self) -> str:
        return (
            f"Settings(api_host={self.api_host!r}, api_version={self.api_version}, "
            f"email={self.login_email!r}, password={'***' if self.login_password else ''!r}, "
            f"keycloak={self.use_keycloak}, http_timeout={self.http_timeout}, "
            f"http_retries={self.http_retries}, log_format={self.log_format!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict with passwords masked."""
        return {
            "api_host": self.api_host,
            "api_scheme": self.api_scheme,
            "api_version": self.api_version,
            "email": self.email or "not set",
            "password": "configured" if self.password else "not set",
            "keycloak_email": self.keycloak_email or "not set",
            "keycloak_password": "configured" if self.keycloak_password else "not set",
            "http_timeout": self.http_timeout,
            "http_retries": self.http_retries,
            "log_format": self.log_format,
            "log_level": self.log_level,
            "poll_interval": self.poll_interval,
            "poll_delay": self.poll_delay,
            "toggle_timeout": self.toggle_timeout,
            "provision_timeout": self.provision_timeout,
        }

    def with_overrides(self, **overrides: Any) -> "Settings":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings(**overrides: Any) -> Settings:
    """Load settings from environment with optional overrides.

    Args:
        **overrides: Field overrides; ``None`` values are ignored.

    Returns:
        Settings instance
    """
    settings = Settings(
        api_host=os.environ.get("TAIKUN_API_HOST", "api.taikun.cloud"),
        api_scheme=os.environ.get("TAIKUN_API_SCHEME", "https"),
        api_version=_int_env("TAIKUN_API_VERSION", 1),
        email=_first_env("TAIKUN_EMAIL", "EMAIL"),
        password=_first_env("TAIKUN_PASSWORD", "PASSWORD"),
        keycloak_email=os.environ.get("TAIKUN_KEYCLOAK_EMAIL", ""),
        keycloak_password=os.environ.get("TAIKUN_KEYCLOAK_PASSWORD", ""),
        http_timeout=_float_env("TAIKUN_HTTP_TIMEOUT", 60.0),
        http_retries=_int_env("TAIKUN_HTTP_RETRIES", 0),
        log_format=os.environ.get("TAIKUN_LOG_FORMAT", "text"),
        log_level=os.environ.get("TAIKUN_LOG_LEVEL", "WARNING"),
        poll_interval=_float_env("TAIKUN_POLL_INTERVAL", 5.0),
        poll_delay=_float_env("TAIKUN_POLL_DELAY", 2.0),
        toggle_timeout=_float_env("TAIKUN_TOGGLE_TIMEOUT", 300.0),
        provision_timeout=_float_env("TAIKUN_PROVISION_TIMEOUT", 2400.0),
    )
    if overrides:
        settings = settings.with_overrides(**overrides)
    return settings


def env_default(key: str, current: Optional[str]) -> Optional[str]:
    """Return ``current`` unless it is unset, then the environment value."""
    if current:
        return current
    return os.environ.get(key) or current
