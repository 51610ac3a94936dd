"""Organizations, users and project membership."""

from __future__ import annotations

from typing import ClassVar, FrozenSet, Literal, Optional

from pydantic import EmailStr, Field, field_validator

from taikun_reconciler import validators
from taikun_reconciler.models.base import Entity


class Organization(Entity):
    COMPUTED: ClassVar[FrozenSet[str]] = Entity.COMPUTED | {
        "created_at", "is_read_only", "partner_id", "partner_name", "projects", "servers",
    }

    name: str = Field(min_length=3, max_length=30)
    full_name: str = Field(min_length=1)
    discount_rate: float = Field(100, ge=0, le=100)
    address: Optional[str] = None
    billing_email: Optional[EmailStr] = None
    city: Optional[str] = None
    country: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    vat_number: Optional[str] = None
    managers_can_change_subscription: bool = True
    lock: bool = False
    created_at: Optional[str] = None
    is_read_only: Optional[bool] = None
    partner_id: Optional[str] = None
    partner_name: Optional[str] = None
    projects: Optional[int] = None
    servers: Optional[int] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validators.check_match(v, validators.ORGANIZATION_NAME_RE, "name")


class User(Entity):
    COMPUTED: ClassVar[FrozenSet[str]] = Entity.COMPUTED | {
        "email_confirmed", "email_notification_enabled", "is_csm", "is_owner",
    }
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({"organization_id"})

    user_name: str = Field(min_length=3, max_length=30)
    email: EmailStr
    display_name: Optional[str] = None
    role: Literal["User", "Manager"] = "User"
    user_disabled: bool = False
    approved_by_partner: bool = True
    email_confirmed: Optional[bool] = None
    email_notification_enabled: Optional[bool] = None
    is_csm: Optional[bool] = None
    is_owner: Optional[bool] = None


class ProjectUserAttachment(Entity):
    """Membership of a user in a project, id ``project/user``."""

    COMPUTED: ClassVar[FrozenSet[str]] = Entity.COMPUTED | {"project_name", "user_name"}
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({"project_id", "user_id", "organization_id"})

    project_id: str
    user_id: str = Field(min_length=1)
    project_name: Optional[str] = None
    user_name: Optional[str] = None

    @field_validator("project_id", mode="before")
    @classmethod
    def _project(cls, v):
        return validators.check_int_string(str(v))
