"""taikun-reconcile apply: run an intents file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from taikun_reconciler.commands import open_session
from taikun_reconciler.errors import ValidationError
from taikun_reconciler.intents import Outcome, cancel_all, execute_many, exit_code, load_intents
from taikun_reconciler.io import read_document, write_json

console = Console(stderr=True)


def run(file: str, parallel: int = 1, out: Optional[str] = None, verbose: bool = False) -> int:
    """Execute the intents in ``file``.

    Returns:
        The batch exit code: 0 when every intent succeeded.
    """
    path = Path(file)
    if not path.exists():
        raise ValidationError(f"intents file not found: {file}", "file")
    intents = load_intents(read_document(path))

    session = open_session(verbose)
    try:
        outcomes = execute_many(session, intents, parallel=parallel)
    except KeyboardInterrupt:
        cancel_all(session)
        raise
    finally:
        session.close()

    _print_summary(outcomes)
    payload = [o.to_dict() for o in outcomes]
    if out:
        write_json(out, payload)
        console.print(f"Outcomes written to {out}")
    else:
        print(json.dumps(payload, indent=2, default=str))
    return exit_code(outcomes)


def _print_summary(outcomes: List[Outcome]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Operation")
    table.add_column("Kind", style="cyan")
    table.add_column("Id")
    table.add_column("Result")
    for i, o in enumerate(outcomes):
        result = "[green]ok[/green]" if o.ok else f"[red]{o.error['kind']}[/red] {o.error['message']}"
        table.add_row(str(i), o.operation, o.kind, o.id or "", result)
    console.print(table)
