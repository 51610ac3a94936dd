"""Repo-wide test fixtures.

Snapshots and restores the platform, credential and cloud-default
environment variables between tests so no test leaks its configuration.
"""

from __future__ import annotations

import os

import pytest

_SENSITIVE_ENV_VARS = [
    "TAIKUN_API_HOST",
    "TAIKUN_API_SCHEME",
    "TAIKUN_API_VERSION",
    "TAIKUN_EMAIL",
    "TAIKUN_PASSWORD",
    "EMAIL",
    "PASSWORD",
    "TAIKUN_KEYCLOAK_EMAIL",
    "TAIKUN_KEYCLOAK_PASSWORD",
    "TAIKUN_HTTP_TIMEOUT",
    "TAIKUN_HTTP_RETRIES",
    "TAIKUN_LOG_FORMAT",
    "TAIKUN_LOG_LEVEL",
    "TAIKUN_POLL_INTERVAL",
    "TAIKUN_POLL_DELAY",
    "TAIKUN_TOGGLE_TIMEOUT",
    "TAIKUN_PROVISION_TIMEOUT",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_DEFAULT_REGION",
    "ARM_CLIENT_ID",
    "ARM_CLIENT_SECRET",
    "ARM_SUBSCRIPTION_ID",
    "ARM_TENANT_ID",
    "OS_AUTH_URL",
    "OS_USERNAME",
    "OS_PASSWORD",
    "OS_USER_DOMAIN_NAME",
    "OS_PROJECT_NAME",
    "OS_INTERFACE",
    "OS_REGION_NAME",
    "PROXMOX_API_HOST",
    "PROXMOX_CLIENT_ID",
    "PROXMOX_CLIENT_SECRET",
    "PROXMOX_STORAGE",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "VSPHERE_API_URL",
    "VSPHERE_USERNAME",
    "VSPHERE_PASSWORD",
]


@pytest.fixture(autouse=True)
def _restore_env():
    """Snapshot sensitive env vars before each test and restore after."""
    snapshot = {}
    for var in _SENSITIVE_ENV_VARS:
        val = os.environ.get(var)
        if val is not None:
            snapshot[var] = val

    yield

    # Restore: remove any that were added, reset any that changed
    for var in _SENSITIVE_ENV_VARS:
        if var in snapshot:
            os.environ[var] = snapshot[var]
        else:
            os.environ.pop(var, None)
