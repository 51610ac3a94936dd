"""taikun-reconcile doctor: configuration and dependency health checks."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib import metadata
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from taikun_reconciler import __version__
from taikun_reconciler.errors import ReconcileError, ValidationError
from taikun_reconciler.session import Session
from taikun_reconciler.settings import Settings, load_settings

console = Console()

_STATUS_STYLE = {
    "PASS": "[green]PASS[/green]",
    "FAIL": "[red bold]FAIL[/red bold]",
    "WARN": "[yellow]WARN[/yellow]",
}

# Exit codes. Fatal findings are configuration errors; warnings use a code
# no reconcile error uses.
EXIT_HEALTHY = 0
EXIT_WARNINGS = 10
EXIT_FATAL = 1

# Distribution names, as installed.
REQUIRED_PACKAGES = ("httpx", "pydantic", "email-validator", "typer", "rich", "PyYAML")


@dataclass
class Check:
    """Result of a single check."""

    name: str
    status: str  # PASS, FAIL, WARN
    detail: str


def check_python_version(minimum: tuple = (3, 9)) -> Check:
    current = ".".join(str(p) for p in sys.version_info[:3])
    ok = tuple(sys.version_info[:2]) >= minimum
    return Check("Python version", "PASS" if ok else "FAIL", f"{current} (need >={'.'.join(map(str, minimum))})")


def check_package(name: str) -> Check:
    try:
        return Check(f"Package: {name}", "PASS", metadata.version(name))
    except metadata.PackageNotFoundError:
        return Check(f"Package: {name}", "FAIL", "Not installed")


def check_credentials(settings: Settings) -> Check:
    try:
        settings.validate()
    except ValidationError as e:
        return Check("Credentials", "FAIL", e.message)
    backend = "federated" if settings.use_keycloak else "default"
    return Check("Credentials", "PASS", f"{settings.login_email} ({backend})")


def check_endpoint(settings: Settings) -> Check:
    if settings.api_scheme == "http":
        return Check("API endpoint", "WARN", f"{settings.base_url} (plain http)")
    return Check("API endpoint", "PASS", f"{settings.base_url} v{settings.api_version}")


def check_wait_cadence(settings: Settings) -> Check:
    if settings.poll_interval <= 0 or settings.toggle_timeout <= 0 or settings.provision_timeout <= 0:
        return Check("Wait cadence", "WARN", "non-positive poll interval or deadline")
    return Check(
        "Wait cadence",
        "PASS",
        f"poll {settings.poll_interval:g}s, toggle {settings.toggle_timeout:g}s, "
        f"provision {settings.provision_timeout:g}s",
    )


def check_login(settings: Settings) -> Check:
    try:
        with Session.from_settings(settings) as session:
            org = session.default_organization_id()
    except ReconcileError as e:
        return Check("Login", "FAIL", f"{e.kind}: {e.message}")
    return Check("Login", "PASS", f"organization {org}")


def run_all_checks(settings: Settings, login: bool = False) -> List[Check]:
    checks = [check_python_version()]
    checks.extend(check_package(name) for name in REQUIRED_PACKAGES)
    checks.append(check_endpoint(settings))
    checks.append(check_wait_cadence(settings))
    credentials = check_credentials(settings)
    checks.append(credentials)
    if login and credentials.status == "PASS":
        checks.append(check_login(settings))
    return checks


def run(login: bool = False, verbose: bool = False) -> int:
    """Run all checks.

    Returns:
        0 = healthy, 2 = warnings only, 3 = fatal issues.
    """
    console.print(Panel(f"[bold]Taikun Reconciler Doctor[/bold] v{__version__}", border_style="blue"))
    settings = load_settings()
    checks = run_all_checks(settings, login=login)

    table = Table(show_header=True, header_style="bold", pad_edge=True)
    table.add_column("Check", style="cyan", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    table.add_column("Detail", min_width=30)

    has_failure = False
    has_warning = False
    for c in checks:
        table.add_row(c.name, _STATUS_STYLE.get(c.status, c.status), c.detail)
        if c.status == "FAIL":
            has_failure = True
        elif c.status == "WARN":
            has_warning = True

    console.print(table)
    if verbose:
        console.print(settings.to_dict())

    if has_failure:
        console.print("\n[red bold]Fatal issues detected.[/red bold] Fix the FAIL items above before proceeding.")
        return EXIT_FATAL
    if has_warning:
        console.print("\n[yellow bold]Warnings detected.[/yellow bold]")
        return EXIT_WARNINGS
    console.print("\n[green bold]All checks passed.[/green bold]")
    return EXIT_HEALTHY
