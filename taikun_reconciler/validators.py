"""Static grammars checked before any platform call.

Each check returns the value unchanged or raises ``ValueError``; the model
layer wraps them in pydantic validators so failures carry an attribute path.
"""

from __future__ import annotations

import datetime
import ipaddress
import re
from typing import Iterable, List, Optional

# Docker image reference: optional registry host[:port]/, then path components.
DOCKER_REPO_RE = re.compile(
    r"^([a-zA-Z]([-\da-zA-Z]*[\da-zA-Z])?(\.[a-zA-Z]([-\da-zA-Z]*[\da-zA-Z])?)*(:\d{1,5})?/)?"
    r"([a-z\d]+((\.|(_{1,2}|-+))[a-z\d]+)*)(/([a-z\d]+((\.|(_{1,2}|-+))[a-z\d]+)*))*/?$"
)
DOCKER_TAG_RE = re.compile(r"^[a-z0-9_][a-z0-9_.-]*$")
DOCKER_TAG_MAX = 128
INGRESS_HOST_RE = re.compile(
    r"^(\*|([a-zA-Z]([-\da-zA-Z]*[\da-zA-Z])?))(\.[a-zA-Z]([-\da-zA-Z]*[\da-zA-Z])?)+$"
)
RETENTION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$")
POSIX_LOGIN_RE = re.compile(r"^[a-z_][a-z0-9_-]*[$]?$")
RESERVED_LOGINS = frozenset({"ubuntu"})
PROJECT_NAME_RE = re.compile(r"^[a-zA-Z0-9-]+$")
ORGANIZATION_NAME_RE = re.compile(r"^[a-z0-9-_.]+$")
NODE_LABEL_RE = re.compile(r"^[a-zA-Z0-9-_.]+$")
HTTP_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")
INT_STRING_RE = re.compile(r"-?[0-9]+")

_CRON_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day of month", 1, 31),
    ("month", 1, 12),
    ("day of week", 0, 7),
)
_CRON_ATOM_RE = re.compile(r"^(\*|\d+(-\d+)?)(/\d+)?$")


def check_docker_repo(value: str) -> str:
    if not DOCKER_REPO_RE.fullmatch(value):
        raise ValueError(f"not a valid docker repository: {value!r}")
    return value


def check_docker_tag(value: str) -> str:
    if len(value) > DOCKER_TAG_MAX or not DOCKER_TAG_RE.fullmatch(value):
        raise ValueError(f"not a valid docker tag: {value!r}")
    return value


def check_ingress_host(value: str) -> str:
    if not INGRESS_HOST_RE.fullmatch(value):
        raise ValueError(f"not a valid ingress host: {value!r}")
    return value


def check_retention_period(value: str) -> str:
    """``(<d>h)?(<d>m)?(<d>s)?`` with at least one nonzero component."""
    m = RETENTION_RE.fullmatch(value or "")
    if not m or not any(part and int(part) > 0 for part in m.groups()):
        raise ValueError(f"expected a duration like 720h or 1h30m, got {value!r}")
    return value


def check_posix_login(value: str) -> str:
    if not POSIX_LOGIN_RE.fullmatch(value):
        raise ValueError(f"not a valid POSIX login name: {value!r}")
    if value in RESERVED_LOGINS:
        raise ValueError(f"login name {value!r} is reserved")
    return value


def check_cron(value: str) -> str:
    """Standard five-field cron expression."""
    fields = (value or "").split()
    if len(fields) != len(_CRON_FIELDS):
        raise ValueError(f"expected a 5-field cron expression, got {value!r}")
    for text, (name, low, high) in zip(fields, _CRON_FIELDS):
        for atom in text.split(","):
            m = _CRON_ATOM_RE.fullmatch(atom)
            if not m:
                raise ValueError(f"invalid cron {name} field: {text!r}")
            if m.group(1) != "*":
                bounds = [int(b) for b in m.group(1).split("-")]
                if any(b < low or b > high for b in bounds) or bounds != sorted(bounds):
                    raise ValueError(f"cron {name} out of range: {text!r}")
            if m.group(3) and int(m.group(3)[1:]) == 0:
                raise ValueError(f"cron {name} step must be positive: {text!r}")
    return value


def check_date(value: str) -> str:
    """``dd/mm/yyyy`` naming a real calendar date."""
    if not DATE_RE.fullmatch(value or ""):
        raise ValueError(f"expected a date in the format dd/mm/yyyy, got {value!r}")
    try:
        datetime.datetime.strptime(value, "%d/%m/%Y")
    except ValueError:
        raise ValueError(f"expected a date in the format dd/mm/yyyy, got {value!r}") from None
    return value


def check_cidr(value: str) -> str:
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        raise ValueError(f"not a valid CIDR: {value!r}") from None
    if "/" not in value:
        raise ValueError(f"not a valid CIDR: {value!r}")
    return value


def check_http_url(value: str) -> str:
    if not HTTP_URL_RE.fullmatch(value or ""):
        raise ValueError(f"expected an http(s) URL, got {value!r}")
    return value


def check_match(value: str, pattern: "re.Pattern[str]", what: str) -> str:
    if not pattern.fullmatch(value):
        raise ValueError(f"{what} must match {pattern.pattern}, got {value!r}")
    return value


def check_int_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    text = str(value)
    if not INT_STRING_RE.fullmatch(text):
        raise ValueError(f"expected an int inside a string, got {value!r}")
    return text


def check_unique(values: Iterable[str], what: str) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value in seen:
            raise ValueError(f"duplicate {what}: {value!r}")
        seen.append(value)
    return seen
