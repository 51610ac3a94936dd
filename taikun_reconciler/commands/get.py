"""taikun-reconcile get: print one entity's observed state."""

from __future__ import annotations

import json

from taikun_reconciler.commands import open_session
from taikun_reconciler.reconcilers import reconciler_for


def run(kind: str, id: str, verbose: bool = False) -> None:
    with open_session(verbose) as session:
        record = reconciler_for(kind, session).read(id)
    print(json.dumps(record.public_dict(), indent=2, default=str))
