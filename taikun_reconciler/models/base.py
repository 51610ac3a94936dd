"""Shared record machinery for desired and observed entity state."""

from __future__ import annotations

from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, field_validator

from taikun_reconciler.errors import ValidationError
from taikun_reconciler.secrets import REDACTED
from taikun_reconciler.validators import check_int_string

R = TypeVar("R", bound="Record")

AUDIT_FIELDS = frozenset({"created_by", "last_modified", "last_modified_by"})


def parse_model(cls: Type[R], data: Mapping[str, Any]) -> R:
    """Validate ``data`` into ``cls``; failures carry the dotted attribute path."""
    try:
        return cls.model_validate(dict(data))
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        path = ".".join(str(p) for p in first["loc"])
        message = first["msg"]
        if e.error_count() > 1:
            message = f"{message} (and {e.error_count() - 1} more)"
        raise ValidationError(message, path, underlying=e) from None


class Record(BaseModel):
    """A typed attribute record.

    ``COMPUTED`` names attributes filled from observed platform state that
    a caller may not set; ``NESTED`` names list attributes holding child
    records so the check recurses into them.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    COMPUTED: ClassVar[FrozenSet[str]] = frozenset()
    NESTED: ClassVar[Dict[str, Type["Record"]]] = {}
    SECRETS: ClassVar[FrozenSet[str]] = frozenset()
    # Accepted on create, never reported back by the platform.
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset()

    @classmethod
    def reject_computed(cls, data: Mapping[str, Any], path: str = "") -> None:
        for key, value in data.items():
            here = f"{path}.{key}" if path else key
            if key in cls.COMPUTED and value is not None:
                raise ValidationError("attribute is computed and cannot be set", here)
            child = cls.NESTED.get(key)
            if child is not None and isinstance(value, list):
                for i, item in enumerate(value):
                    if isinstance(item, Mapping):
                        child.reject_computed(item, f"{here}.{i}")

    @classmethod
    def desired(cls: Type[R], data: Mapping[str, Any]) -> R:
        """Parse caller-supplied state, refusing computed attributes."""
        if not isinstance(data, Mapping):
            raise ValidationError(f"expected a mapping, got {type(data).__name__}", "desired")
        cls.reject_computed(data)
        return parse_model(cls, data)

    @classmethod
    def observed(cls: Type[R], data: Mapping[str, Any]) -> R:
        """Build a record from translated platform state without re-validating it."""
        values = {k: v for k, v in data.items() if k in cls.model_fields}
        for key, child in cls.NESTED.items():
            if values.get(key) is not None:
                values[key] = [
                    item if isinstance(item, Record) else child.observed(item) for item in values[key]
                ]
        return cls.model_construct(**values)

    def comparable(self) -> Dict[str, Any]:
        """Caller-settable attributes only, recursing into child records."""
        data = self.model_dump(exclude=set(self.COMPUTED) | set(self.NESTED))
        for key in self.NESTED:
            if key in type(self).model_fields and key not in self.COMPUTED:
                data[key] = [item.comparable() for item in (getattr(self, key) or [])]
        return data

    def public_dict(self) -> Dict[str, Any]:
        """Serialized form with secret attributes masked."""
        data = self.model_dump()
        return self._mask(data)

    def _mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for key in self.SECRETS:
            if data.get(key):
                data[key] = REDACTED
        for key, child in self.NESTED.items():
            items = getattr(self, key, None)
            if items and child.SECRETS:
                data[key] = [item._mask(item.model_dump()) for item in items]
        return data


class Entity(Record):
    """Envelope shared by every top-level entity."""

    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id", "organization_name"}) | AUDIT_FIELDS
    # Attribute changes that the platform cannot apply in place.
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset()

    id: Optional[str] = None
    organization_id: Optional[str] = None
    organization_name: Optional[str] = None
    created_by: Optional[str] = None
    last_modified: Optional[str] = None
    last_modified_by: Optional[str] = None

    @field_validator("organization_id", mode="before")
    @classmethod
    def _org_id_is_int(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return check_int_string(str(v))


class Lockable(Entity):
    lock: bool = False


def audit_fields(raw: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    """Pull the audit attributes from a platform row."""
    return {
        "created_by": raw.get("createdBy"),
        "last_modified": raw.get("lastModified"),
        "last_modified_by": raw.get("lastModifiedBy"),
    }


def str_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)
