"""Set-difference reconciliation of N-to-M bindings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence

from taikun_reconciler.log import log_event

logger = logging.getLogger("taikun.bindings")


@dataclass(frozen=True)
class BindingDelta:
    to_add: List[Any] = field(default_factory=list)
    to_remove: List[Any] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.to_add and not self.to_remove


def _unique(values: Iterable[Hashable]) -> List[Hashable]:
    seen = set()
    out = []
    for value in values:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out


def diff_members(desired: Iterable[Hashable], observed: Iterable[Hashable]) -> BindingDelta:
    """``to_add = desired - observed``, ``to_remove = observed - desired``.

    Order follows the input so the issued calls are deterministic.
    """
    desired_list = _unique(desired)
    observed_list = _unique(observed)
    desired_set = set(desired_list)
    observed_set = set(observed_list)
    return BindingDelta(
        to_add=[m for m in desired_list if m not in observed_set],
        to_remove=[m for m in observed_list if m not in desired_set],
    )


def reconcile_bindings(
    *,
    desired: Iterable[Hashable],
    observed: Mapping[Hashable, Any],
    bind: Callable[[List[Any]], None],
    unbind: Callable[[List[Any]], None],
    what: str = "binding",
) -> BindingDelta:
    """Converge a set-valued relation to ``desired``.

    ``observed`` maps each bound member to the key its unbind call needs:
    the binding's own id where the platform unbinds by binding id, or the
    member itself otherwise. Removals are issued before additions; the two
    phases are not atomic.
    """
    delta = diff_members(desired, observed.keys())
    if delta.to_remove:
        log_event(logger, "unbind", what=what, members=delta.to_remove)
        unbind([observed[m] for m in delta.to_remove])
    if delta.to_add:
        log_event(logger, "bind", what=what, members=delta.to_add)
        bind(delta.to_add)
    return delta


def replace_labels(
    desired: Sequence[Mapping[str, Any]],
    observed: Optional[Sequence[Mapping[str, Any]]],
) -> Dict[str, List[Dict[str, Any]]]:
    """Labels are replaced wholesale: add every desired label, delete every old one by id."""
    return {
        "labelsToAdd": [{"label": l["label"], "value": l["value"]} for l in desired],
        "labelsToDelete": [{"id": l["id"]} for l in (observed or []) if l.get("id") is not None],
    }
