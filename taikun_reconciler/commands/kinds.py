"""taikun-reconcile kinds: list reconcilable entity kinds."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from taikun_reconciler.reconcilers import REGISTRY

console = Console()


def run() -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Kind", style="cyan")
    table.add_column("Lockable", justify="center")
    table.add_column("Organization scoped", justify="center")
    for kind in sorted(REGISTRY):
        cls = REGISTRY[kind]
        table.add_row(kind, "yes" if cls.lockable else "no", "yes" if cls.scoped else "no")
    console.print(table)
