from __future__ import annotations

from typing import ClassVar, FrozenSet, Literal, Optional

from pydantic import Field, field_validator, model_validator

from taikun_reconciler import validators
from taikun_reconciler.models.base import Entity

UNLIMITED_VALIDITY = -1


class Kubeconfig(Entity):
    """A kubeconfig issued for one project. Not updatable; ``content`` is downloaded."""

    COMPUTED: ClassVar[FrozenSet[str]] = Entity.COMPUTED | {"content", "project_name"}
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"content"})
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"role", "validity_period"})
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({
        "name", "project_id", "access_scope", "role", "namespace", "user_id",
        "validity_period", "organization_id",
    })

    name: str = Field(min_length=1)
    project_id: str
    access_scope: Literal["personal", "managers", "all"] = "personal"
    role: Literal["cluster-admin", "admin", "edit", "view"]
    namespace: Optional[str] = None
    user_id: Optional[str] = None
    # Minutes; -1 means the kubeconfig never expires.
    validity_period: int = UNLIMITED_VALIDITY
    content: Optional[str] = None
    project_name: Optional[str] = None

    @field_validator("project_id", mode="before")
    @classmethod
    def _project(cls, v):
        return validators.check_int_string(str(v))

    @field_validator("validity_period")
    @classmethod
    def _validity(cls, v: int) -> int:
        if v < UNLIMITED_VALIDITY:
            raise ValueError("validity_period must be -1 (unlimited) or a number of minutes")
        return v

    @model_validator(mode="after")
    def _personal_has_user(self) -> "Kubeconfig":
        if self.user_id and self.access_scope != "personal":
            raise ValueError("user_id is only meaningful for a personal kubeconfig")
        return self
