"""Value translations between the caller's form and the platform's form."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from taikun_reconciler.errors import ValidationError

MEBIBYTES_PER_GIBIBYTE = 1024
BYTES_PER_GIBIBYTE = 1073741824


# ── Sizes ────────────────────────────────────────────────────────

def gibi_to_mebi(gib: int) -> int:
    return gib * MEBIBYTES_PER_GIBIBYTE


def mebi_to_gibi(mib: int) -> int:
    return int(mib) // MEBIBYTES_PER_GIBIBYTE


def gibi_to_bytes(gib: int) -> int:
    return gib * BYTES_PER_GIBIBYTE


def bytes_to_gibi(size: int) -> int:
    return int(size) // BYTES_PER_GIBIBYTE


# ── Dates ────────────────────────────────────────────────────────

def date_to_rfc3339(date: str) -> str:
    """``dd/mm/yyyy`` -> ``yyyy-mm-ddT00:00:00Z``"""
    return f"{date[6:10]}-{date[3:5]}-{date[0:2]}T00:00:00Z"


def rfc3339_to_date(value: Optional[str]) -> Optional[str]:
    """``yyyy-mm-dd...`` -> ``dd/mm/yyyy``; empty stays empty."""
    if not value:
        return value
    return f"{value[8:10]}/{value[5:7]}/{value[0:4]}"


# ── Enums ────────────────────────────────────────────────────────

def _lookup(table: Dict[str, int], value: str, field: str) -> int:
    try:
        return table[value]
    except KeyError:
        raise ValidationError(
            f"expected one of {sorted(table)}, got {value!r}", field
        ) from None


def _reverse(table: Dict[str, int], code: int, default: Optional[str] = None) -> Optional[str]:
    for name, value in table.items():
        if value == code:
            return name
    return default


PROMETHEUS_TYPES = {"Count": 100, "Sum": 200}
SHOWBACK_KINDS = {"General": 100, "External": 200}
USER_ROLES = {"User": 400, "Manager": 200}
SLACK_TYPES = {"Alert": 100, "General": 200}
ALERTING_REMINDERS = {"HalfHour": 100, "Hourly": 200, "Daily": 300, "None": -1}
ALERTING_INTEGRATIONS = {"Opsgenie": 100, "Pagerduty": 200, "Splunk": 300, "MicrosoftTeams": 400}
KUBECONFIG_ROLES = {"cluster-admin": 1, "admin": 2, "edit": 3, "view": 4}
SERVER_ROLES = {"bastion": 100, "kubemaster": 200, "kubeworker": 300}

AWS_REGIONS = {
    "us-east-1": 1,
    "us-east-2": 2,
    "us-west-1": 3,
    "us-west-2": 4,
    "eu-north-1": 5,
    "eu-west-1": 6,
    "eu-west-2": 7,
    "eu-west-3": 8,
    "eu-central-1": 9,
    "eu-south-1": 10,
    "ap-east-1": 11,
    "ap-northeast-1": 12,
    "ap-northeast-2": 13,
    "ap-northeast-3": 14,
    "ap-south-1": 15,
    "ap-southeast-1": 16,
    "ap-southeast-2": 17,
    "sa-east-1": 18,
    "us-gov-east-1": 19,
    "us-gov-west-1": 20,
    "cn-north-1": 21,
    "cn-northwest-1": 22,
    "ca-central-1": 23,
    "me-south-1": 24,
    "af-south-1": 25,
}


def prometheus_type(value: str) -> int:
    return _lookup(PROMETHEUS_TYPES, value, "type")


def prometheus_type_name(code) -> Optional[str]:
    if isinstance(code, str) and code in PROMETHEUS_TYPES:
        return code
    return _reverse(PROMETHEUS_TYPES, code)


def showback_kind(value: str) -> int:
    return _lookup(SHOWBACK_KINDS, value, "kind")


def showback_kind_name(code) -> Optional[str]:
    if isinstance(code, str) and code in SHOWBACK_KINDS:
        return code
    return _reverse(SHOWBACK_KINDS, code)


def user_role(value: str) -> int:
    return _lookup(USER_ROLES, value, "role")


def user_role_name(code) -> Optional[str]:
    if isinstance(code, str) and code in USER_ROLES:
        return code
    return _reverse(USER_ROLES, code)


def slack_type(value: str) -> int:
    return _lookup(SLACK_TYPES, value, "type")


def slack_type_name(code) -> Optional[str]:
    if isinstance(code, str) and code in SLACK_TYPES:
        return code
    return _reverse(SLACK_TYPES, code)


def alerting_reminder(value: str) -> int:
    return _lookup(ALERTING_REMINDERS, value, "reminder")


def alerting_reminder_name(code) -> Optional[str]:
    if isinstance(code, str) and code in ALERTING_REMINDERS:
        return code
    return _reverse(ALERTING_REMINDERS, code, "None")


def alerting_integration(value: str) -> int:
    return _lookup(ALERTING_INTEGRATIONS, value, "integration.type")


def alerting_integration_name(code) -> Optional[str]:
    if isinstance(code, str) and code in ALERTING_INTEGRATIONS:
        return code
    return _reverse(ALERTING_INTEGRATIONS, code)


def kubeconfig_role(value: str) -> int:
    return _lookup(KUBECONFIG_ROLES, value, "role")


def kubeconfig_role_name(code) -> Optional[str]:
    return _reverse(KUBECONFIG_ROLES, code)


def server_role(value: str) -> int:
    return _lookup(SERVER_ROLES, value, "role")


def server_role_name(code) -> Optional[str]:
    """The platform reports roles either as codes or as ``Kubeworker``-style names."""
    if isinstance(code, str) and code.lower() in SERVER_ROLES:
        return code.lower()
    return _reverse(SERVER_ROLES, code)


def aws_region(value: str) -> int:
    return _lookup(AWS_REGIONS, value, "region")


def aws_region_name(code) -> Optional[str]:
    if isinstance(code, str) and code in AWS_REGIONS:
        return code
    return _reverse(AWS_REGIONS, code)


# ── Lock ─────────────────────────────────────────────────────────

def lock_mode(locked: bool) -> str:
    return "lock" if locked else "unlock"


# ── Load balancer ────────────────────────────────────────────────

LOAD_BALANCERS = ("None", "Octavia", "Taikun")


def parse_load_balancer(solution: str) -> Tuple[bool, bool]:
    """Return ``(octavia_enabled, taikun_lb_enabled)``."""
    if solution == "Octavia":
        return True, False
    if solution == "Taikun":
        return False, True
    return False, False


def load_balancer_name(octavia_enabled: bool, taikun_lb_enabled: bool) -> str:
    if octavia_enabled:
        return "Octavia"
    if taikun_lb_enabled:
        return "Taikun"
    return "None"


# ── Security groups ──────────────────────────────────────────────

PROTOCOLS = ("TCP", "UDP", "ICMP")


def security_group_protocol(value: Optional[str]) -> str:
    """Case-insensitive protocol name; anything unrecognised falls back to UDP."""
    upper = (value or "").upper()
    if upper in PROTOCOLS:
        return upper
    return "UDP"


# ── Continents ───────────────────────────────────────────────────

CONTINENTS = {"Europe": "eu", "Asia": "as", "America": "us"}


def continent_code(name: str) -> str:
    try:
        return CONTINENTS[name]
    except KeyError:
        raise ValidationError(f"expected one of {sorted(CONTINENTS)}, got {name!r}", "continent") from None


def continent_name(code: Optional[str]) -> Optional[str]:
    for name, short in CONTINENTS.items():
        if short == code or name == code:
            return name
    return code
