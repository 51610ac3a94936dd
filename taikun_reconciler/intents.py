"""Intents and outcomes.

An intent asks for one operation on one entity; executing it yields an
outcome that carries either the observed record or the error. Batches run
on a thread pool with outcomes returned in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from taikun_reconciler.errors import ReconcileError, ValidationError
from taikun_reconciler.log import log_event
from taikun_reconciler.reconcilers import reconciler_for
from taikun_reconciler.session import Session

logger = logging.getLogger("taikun.reconcile")

OPERATIONS = ("create", "read", "update", "delete")

# Highest precedence first.
EXIT_PRECEDENCE = (3, 4, 2, 1)


@dataclass
class Intent:
    """One requested operation.

    Attributes:
        operation: create, read, update or delete
        kind: entity kind name
        id: entity id; required for everything but create
        desired: desired attributes for create and update
        rotate_secrets: resend secrets on update even when nothing else changed
    """
    operation: str
    kind: str
    id: Optional[str] = None
    desired: Optional[Dict[str, Any]] = None
    rotate_secrets: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> "Intent":
        where = f"intents.{index}"
        if not isinstance(data, Mapping):
            raise ValidationError("expected a mapping", where)
        operation = data.get("operation")
        if operation not in OPERATIONS:
            raise ValidationError(f"expected one of {list(OPERATIONS)}, got {operation!r}", f"{where}.operation")
        kind = data.get("kind")
        if not kind:
            raise ValidationError("kind is required", f"{where}.kind")
        id = data.get("id")
        if operation != "create" and id in (None, ""):
            raise ValidationError(f"{operation} needs an id", f"{where}.id")
        desired = data.get("desired")
        if operation in ("create", "update") and not isinstance(desired, Mapping):
            raise ValidationError(f"{operation} needs a desired mapping", f"{where}.desired")
        rotate_secrets = data.get("rotate_secrets", False)
        if not isinstance(rotate_secrets, bool):
            raise ValidationError("expected true or false", f"{where}.rotate_secrets")
        return cls(
            operation=operation,
            kind=str(kind),
            id=None if id is None else str(id),
            desired=dict(desired) if isinstance(desired, Mapping) else None,
            rotate_secrets=rotate_secrets,
        )


@dataclass
class Outcome:
    """Result of one intent: the observed record on success, the error otherwise."""
    kind: str
    operation: str
    id: Optional[str] = None
    observed: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "operation": self.operation, "id": self.id}
        if self.error is not None:
            out["error"] = self.error
        else:
            out["observed"] = self.observed
        return out


def load_intents(document: Any) -> List[Intent]:
    """Parse an ``intents:`` document, or a bare list of intents."""
    if isinstance(document, Mapping):
        document = document.get("intents")
    if not isinstance(document, list):
        raise ValidationError("expected a list under 'intents'", "intents")
    return [Intent.from_dict(item, i) for i, item in enumerate(document)]


def _error(exc: ReconcileError) -> Dict[str, Any]:
    out: Dict[str, Any] = {"kind": exc.kind, "message": exc.message}
    status = getattr(exc, "status_code", None)
    if status is not None:
        out["status_code"] = status
    path = getattr(exc, "path", None)
    if path:
        out["path"] = path
    return out


def execute(session: Session, intent: Intent) -> Outcome:
    """Run one intent; reconciler errors become the failure outcome."""
    outcome = Outcome(kind=intent.kind, operation=intent.operation, id=intent.id)
    try:
        reconciler = reconciler_for(intent.kind, session)
        if intent.operation == "create":
            record = reconciler.create(reconciler.parse(intent.desired or {}))
        elif intent.operation == "update":
            record = reconciler.update(
                intent.id, reconciler.parse(intent.desired or {}), rotate_secrets=intent.rotate_secrets,
            )
        elif intent.operation == "read":
            record = reconciler.read(intent.id)
        else:
            reconciler.delete(intent.id)
            record = None
    except ReconcileError as e:
        log_event(
            logger, "intent_failed", logging.WARNING,
            kind=intent.kind, operation=intent.operation, id=intent.id, error=e.kind,
        )
        outcome.error = _error(e)
        outcome.exit_code = e.exit_code
        return outcome

    if record is not None:
        outcome.id = record.id
        outcome.observed = record.public_dict()
    log_event(logger, "intent_done", kind=intent.kind, operation=intent.operation, id=outcome.id)
    return outcome


def execute_many(session: Session, intents: Iterable[Intent], parallel: int = 1) -> List[Outcome]:
    """Run intents concurrently; outcomes come back in input order."""
    intents = list(intents)
    if parallel <= 1 or len(intents) <= 1:
        return [execute(session, intent) for intent in intents]
    with ThreadPoolExecutor(max_workers=parallel, thread_name_prefix="intent") as pool:
        return list(pool.map(lambda intent: execute(session, intent), intents))


def exit_code(outcomes: Iterable[Outcome]) -> int:
    """Batch exit code: auth > timeout > platform > caller; 0 when all succeeded."""
    codes = {o.exit_code for o in outcomes if not o.ok}
    if not codes:
        return 0
    for code in EXIT_PRECEDENCE:
        if code in codes:
            return code
    return max(codes)


def cancel_all(session: Session) -> None:
    """Signal every in-flight intent sharing ``session`` to stop waiting."""
    session.cancel.set()


__all__ = [
    "Intent",
    "Outcome",
    "cancel_all",
    "execute",
    "execute_many",
    "exit_code",
    "load_intents",
]
