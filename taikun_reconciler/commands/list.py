"""taikun-reconcile list: print the observed state of every entity of a kind."""

from __future__ import annotations

import json
from typing import Optional

from taikun_reconciler.commands import open_session
from taikun_reconciler.reconcilers import reconciler_for


def run(kind: str, organization_id: Optional[str] = None, verbose: bool = False) -> None:
    with open_session(verbose) as session:
        records = reconciler_for(kind, session).list(organization_id)
    print(json.dumps([record.public_dict() for record in records], indent=2, default=str))
