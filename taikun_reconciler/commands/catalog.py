"""taikun-reconcile flavors / images."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

from rich.console import Console
from rich.table import Table

from taikun_reconciler.commands import open_session
from taikun_reconciler.reconcilers.catalog import list_flavors, list_images

console = Console()


def run_flavors(
    cloud_credential_id: str,
    cloud_type: str,
    min_cpu: int,
    max_cpu: int,
    min_ram: int,
    max_ram: int,
    as_json: bool = False,
) -> None:
    with open_session() as session:
        rows = list_flavors(session, cloud_credential_id, cloud_type, min_cpu, max_cpu, min_ram, max_ram)
    _emit(rows, ("name", "cpu", "ram"), as_json)


def run_images(cloud_credential_id: str, cloud_type: str, as_json: bool = False, **filters: Any) -> None:
    with open_session() as session:
        rows = list_images(session, cloud_credential_id, cloud_type, **filters)
    _emit(rows, ("id", "name"), as_json)


def _emit(rows: List[Dict[str, Any]], columns: Sequence[str], as_json: bool) -> None:
    if as_json:
        print(json.dumps(rows, indent=2))
        return
    table = Table(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column.upper() if column in ("cpu", "id") else column.capitalize())
    for row in rows:
        table.add_row(*(str(row.get(c, "")) for c in columns))
    console.print(table)
    console.print(f"[dim]{len(rows)} rows[/dim]")
