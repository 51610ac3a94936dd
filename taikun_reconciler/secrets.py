"""Redaction utilities for log lines, error bodies and observed output.

Deterministic and non-mutating. Never stores or prints the actual secret,
only marks that redaction occurred.
"""

from __future__ import annotations

import json
import re
from typing import Any, List

# ── Constants ────────────────────────────────────────────────────

SENSITIVE_KEYWORDS = [
    "token", "secret", "password", "passphrase", "bearer",
    "authorization", "access_key", "private_key", "config_file_content",
    "kubeconfig_content",
]

REDACTED = "***REDACTED***"

# Max payload size for safe_log_json (8 KB)
_MAX_LOG_BYTES = 8192

_MAX_STRING_LEN = 240

_MAX_DEPTH = 10

# ── Patterns ─────────────────────────────────────────────────────

_BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
_JWT_RE = re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]*")


def _normalize(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def is_sensitive_key(key: str) -> bool:
    """Match camelCase or snake_case keys against SENSITIVE_KEYWORDS."""
    lower = _normalize(key)
    return any(kw in lower for kw in SENSITIVE_KEYWORDS)


# ── Public API ───────────────────────────────────────────────────


def redact_text(text: str) -> str:
    """Replace bearer tokens and bare JWTs in a string."""
    if not text:
        return text
    result = _BEARER_RE.sub(r"\1" + REDACTED, text)
    result = _JWT_RE.sub(REDACTED, result)
    return result


def redact_dict(obj: Any, *, truncate: bool = True, _depth: int = 0) -> Any:
    """Recursively redact sensitive values from a data structure.

    - Keys matching SENSITIVE_KEYWORDS have their values replaced
    - Long strings are truncated when ``truncate`` is set
    - Never mutates the input object
    """
    if _depth > _MAX_DEPTH:
        return "[max_depth_exceeded]"

    if isinstance(obj, dict):
        result = {}
        for k, v in obj.items():
            if isinstance(k, str) and is_sensitive_key(k) and v not in (None, ""):
                result[k] = REDACTED
            else:
                result[k] = redact_dict(v, truncate=truncate, _depth=_depth + 1)
        return result

    if isinstance(obj, list):
        return [redact_dict(item, truncate=truncate, _depth=_depth + 1) for item in obj]

    if isinstance(obj, str):
        obj = redact_text(obj)
        if truncate and len(obj) > _MAX_STRING_LEN:
            return obj[:60] + "..." + obj[-60:]
        return obj

    return obj


def safe_log_json(event: dict) -> dict:
    """Redact an event dict and keep it under 8 KB once serialized."""
    redacted = redact_dict(event)
    serialized = json.dumps(redacted, separators=(",", ":"), default=str)
    if len(serialized) <= _MAX_LOG_BYTES:
        return redacted
    return _truncate_to_fit(redacted)


def _truncate_to_fit(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _truncate_to_fit(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_truncate_to_fit(item) for item in obj]
    if isinstance(obj, str) and len(obj) > 100:
        return obj[:40] + "...[truncated]..." + obj[-40:]
    return obj


def assert_no_secrets(obj: Any, *, _path: str = "") -> None:
    """Raise ValueError if any value looks like a leaked secret.

    Never prints the secret itself, only the key path.
    """
    if isinstance(obj, dict):
        for k, v in obj.items():
            key_path = f"{_path}.{k}" if _path else k
            if isinstance(k, str) and is_sensitive_key(k):
                if isinstance(v, str) and v != REDACTED and len(v) > 3:
                    raise ValueError(f"secret_leak_detected: {key_path}")
            assert_no_secrets(v, _path=key_path)
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            assert_no_secrets(item, _path=f"{_path}[{i}]")
    elif isinstance(obj, str):
        if _BEARER_RE.search(obj) or _JWT_RE.search(obj):
            raise ValueError(f"secret_leak_detected: {_path} (bearer token)")


def sensitive_paths(obj: Any, _path: str = "") -> List[str]:
    """Dotted paths of every sensitive key present in ``obj``."""
    found: List[str] = []
    if isinstance(obj, dict):
        for k, v in obj.items():
            key_path = f"{_path}.{k}" if _path else k
            if isinstance(k, str) and is_sensitive_key(k):
                found.append(key_path)
            found.extend(sensitive_paths(v, key_path))
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            found.extend(sensitive_paths(item, f"{_path}[{i}]"))
    return found
