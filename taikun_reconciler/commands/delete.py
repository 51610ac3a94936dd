"""taikun-reconcile delete: remove one entity."""

from __future__ import annotations

from rich.console import Console

from taikun_reconciler.commands import open_session
from taikun_reconciler.reconcilers import reconciler_for

console = Console(stderr=True)


def run(kind: str, id: str, verbose: bool = False) -> None:
    with open_session(verbose) as session:
        reconciler_for(kind, session).delete(id)
    console.print(f"[green]Deleted[/green] {kind} {id}")
