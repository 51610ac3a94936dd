"""The Create / Read / Update / Delete contract every entity kind implements.

Subclasses supply the platform-specific pieces:

- ``_list(offset, id, organization_id)``   one page of the kind's list endpoint
- ``_observe(raw)``          platform row -> observed record
- ``_create(desired)``       issue the create call(s), return the new id
- ``_update(id, desired, observed, changed)``   apply field changes
- ``_set_lock(id, locked)``  lock-manager call (lockable kinds only)
- ``_delete(id)``            issue the delete call

Everything else (read-after-write retries, lock mediation, immutable-field
checks, not-found tolerance on delete) lives here.
"""

from __future__ import annotations

import logging
from typing import (
    Any, Callable, ClassVar, Dict, FrozenSet, Generic, List, Mapping, Optional, Sequence, Set, Type, TypeVar,
)

from taikun_reconciler.client import Page
from taikun_reconciler.errors import NotFound, NotFoundAfterOp, TransportError, ValidationError
from taikun_reconciler.ids import parse_id
from taikun_reconciler.locking import mediate_lock
from taikun_reconciler.log import log_event
from taikun_reconciler.models.base import Entity, Record
from taikun_reconciler.session import Session
from taikun_reconciler.waiter import CREATE, UPDATE, read_after_op

logger = logging.getLogger("taikun.reconcile")

M = TypeVar("M", bound=Entity)


class Reconciler(Generic[M]):
    kind: ClassVar[str] = ""
    model: ClassVar[Type[Entity]] = Entity
    lockable: ClassVar[bool] = False
    # Kinds that live inside an organization get its id defaulted.
    scoped: ClassVar[bool] = True

    def __init__(self, session: Session) -> None:
        self.session = session
        self.client = session.client

    # ── Contract ─────────────────────────────────────────────────

    def parse(self, data: Mapping[str, Any]) -> M:
        """Caller-supplied mapping -> desired record."""
        return self.model.desired(data)

    def create(self, desired: M) -> M:
        desired = self._prepare(desired)
        log_event(logger, "create", kind=self.kind, name=getattr(desired, "name", None))
        new_id = self._create(desired)
        log_event(logger, "created", kind=self.kind, id=new_id)
        if self.lockable and desired.lock:
            self._set_lock(new_id, True)
        return self._read_after(new_id, desired, CREATE)

    def read(self, id: str, prior: Optional[M] = None) -> M:
        """Observed state of ``id``; NotFound when the platform has no such entity."""
        raw = self._fetch(id)
        observed = self._observe(raw)
        return self._carry_over(observed, prior)

    def update(self, id: str, desired: M, *, rotate_secrets: bool = False) -> M:
        """Converge ``id`` on ``desired``.

        Secrets are never read back, so they are only resent alongside another
        change, or when ``rotate_secrets`` asks for it.
        """
        desired = self._prepare(desired)
        observed = self.read(id, desired)
        changed = self.changed_fields(desired, observed)
        if changed or rotate_secrets:
            changed |= self.secrets_to_send(desired)
        frozen = changed & self.immutable_fields(desired)
        if frozen:
            path = sorted(frozen)[0]
            raise ValidationError(f"{self.kind} attribute cannot be changed in place", path)
        log_event(logger, "update", kind=self.kind, id=id, changed=sorted(changed))

        mutate = None
        if changed:
            def mutate() -> None:
                self._update(id, desired, observed, changed)

        if self.lockable:
            mediate_lock(
                observed_locked=bool(observed.lock),
                desired_locked=bool(desired.lock),
                set_lock=lambda locked: self._set_lock(id, locked),
                mutate=mutate,
                read_locked=lambda: bool(self.read(id, desired).lock),
                timing=self.session.timing,
                cancel=self.session.cancel,
                what=f"{self.kind} {id}",
            )
        elif mutate is not None:
            mutate()
        return self._read_after(id, desired, UPDATE)

    def list(self, organization_id: Optional[str] = None) -> List[M]:
        """Observed state of every entity of this kind, optionally within one organization."""
        org = self._organization_filter(organization_id)
        rows = [raw for raw in self._list_rows(org) if org is None or raw.get("organizationId", org) == org]
        log_event(logger, "list", kind=self.kind, organization_id=org, count=len(rows))
        return [self._observe(raw) for raw in rows]

    def delete(self, id: str) -> None:
        """Delete ``id``; an entity that is already gone counts as deleted."""
        try:
            if self.lockable:
                observed = self.read(id)
                if observed.lock:
                    log_event(logger, "unlock_before_delete", kind=self.kind, id=id)
                    self._set_lock(id, False)
            self._delete(id)
        except NotFound:
            log_event(logger, "delete_not_found", kind=self.kind, id=id)
            return
        log_event(logger, "deleted", kind=self.kind, id=id)

    # ── Change detection ─────────────────────────────────────────

    def changed_fields(self, desired: M, observed: M) -> Set[str]:
        ignore = {"lock"} | set(desired.SECRETS)
        if not self.scoped:
            ignore.add("organization_id")
        want = desired.comparable()
        have = observed.comparable()
        return {k for k in want if k not in ignore and want[k] != have.get(k)}

    def secrets_to_send(self, desired: M) -> Set[str]:
        immutable = self.immutable_fields(desired)
        return {key for key in desired.SECRETS if getattr(desired, key, None) and key not in immutable}

    def immutable_fields(self, desired: M) -> FrozenSet[str]:
        return type(desired).IMMUTABLE

    # ── Helpers for subclasses ───────────────────────────────────

    def _prepare(self, desired: M) -> M:
        """Fill defaults the platform needs before a mutation."""
        if self.scoped and "organization_id" in type(desired).model_fields and not desired.organization_id:
            org = self.session.default_organization_id()
            desired = desired.model_copy(update={"organization_id": str(org)})
        return desired

    def _fetch(self, id: str) -> Dict[str, Any]:
        entity_id = self._parse_id(id)
        rows = self.session.list_all(lambda offset: self._list(offset, entity_id))
        if not rows:
            raise NotFound(f"{self.kind} {id} not found")
        if len(rows) > 1:
            raise TransportError(f"{self.kind} {id}: expected one result, got {len(rows)}")
        return rows[0]

    def _parse_id(self, id: str) -> Any:
        return parse_id(id)

    @staticmethod
    def _organization_filter(organization_id: Optional[str]) -> Optional[int]:
        if organization_id in (None, ""):
            return None
        return parse_id(organization_id, "organization_id")

    def _list_rows(self, organization_id: Optional[int]) -> List[Dict[str, Any]]:
        return self.session.list_all(lambda offset: self._list(offset, None, organization_id))

    def _read_after(self, id: str, desired: M, op: str) -> M:
        def attempt() -> M:
            try:
                return self.read(id, desired)
            except NotFoundAfterOp:
                raise
            except NotFound as e:
                raise NotFoundAfterOp(f"{self.kind} {id} not visible yet", underlying=e) from e

        return read_after_op(attempt, op=op, timing=self.session.timing, cancel=self.session.cancel)

    def _carry_over(self, observed: M, prior: Optional[M]) -> M:
        """Secrets and write-only attributes are never returned; keep the caller's values."""
        carried = observed.SECRETS | observed.WRITE_ONLY
        if prior is None or not carried:
            return observed
        update = {
            key: getattr(prior, key)
            for key in carried
            if getattr(observed, key, None) is None and getattr(prior, key, None) is not None
        }
        return observed.model_copy(update=update) if update else observed

    # ── Kind-specific hooks ──────────────────────────────────────

    def _list(self, offset: int, id: Any, organization_id: Optional[int] = None) -> Page:
        raise NotImplementedError

    def _observe(self, raw: Dict[str, Any]) -> M:
        raise NotImplementedError

    def _create(self, desired: M) -> str:
        raise NotImplementedError

    def _update(self, id: str, desired: M, observed: M, changed: Set[str]) -> None:
        raise ValidationError(f"{self.kind} cannot be updated in place", sorted(changed)[0] if changed else "")

    def _set_lock(self, id: str, locked: bool) -> None:
        raise NotImplementedError

    def _delete(self, id: str) -> None:
        raise NotImplementedError


def sync_children(
    desired: Sequence[Record],
    observed: Sequence[Record],
    *,
    create: Callable[[Record], None],
    delete: Callable[[Record], None],
    what: str,
) -> None:
    """Converge a child list that has no in-place update call.

    Observed children without an identical desired counterpart are deleted;
    desired children without an identical observed one are created.
    """
    have = [(child.comparable(), child) for child in observed]
    want = [child.comparable() for child in desired]
    for shape, child in have:
        if shape not in want:
            log_event(logger, "delete_child", what=what, id=child.id)
            delete(child)
    kept = [shape for shape, _ in have if shape in want]
    for shape, child in zip(want, desired):
        if shape in kept:
            kept.remove(shape)
            continue
        log_event(logger, "create_child", what=what)
        create(child)
