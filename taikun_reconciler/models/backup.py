"""S3 backup credentials and per-project backup policies."""

from __future__ import annotations

from typing import ClassVar, FrozenSet, List, Optional

from pydantic import Field, field_validator, model_validator

from taikun_reconciler import validators
from taikun_reconciler.models.base import Entity, Lockable

DEFAULT_RETENTION = "720h"


class BackupCredential(Lockable):
    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {"is_default"}
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"s3_secret_access_key"})
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({"organization_id", "s3_endpoint", "s3_region"})

    name: str = Field(min_length=3, max_length=30)
    # Filled from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY when unset.
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    s3_endpoint: str
    s3_region: str = Field(min_length=1)
    is_default: Optional[bool] = None

    @field_validator("s3_endpoint")
    @classmethod
    def _endpoint(cls, v: str) -> str:
        return validators.check_http_url(v)


class BackupPolicy(Entity):
    """A Velero schedule on one project, id ``project/name``. Not updatable."""

    COMPUTED: ClassVar[FrozenSet[str]] = Entity.COMPUTED | {"phase"}
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({
        "project_id", "name", "cron_period", "retention_period",
        "included_namespaces", "excluded_namespaces", "organization_id",
    })

    project_id: str
    name: str = Field(min_length=3, max_length=30)
    cron_period: str
    retention_period: str = DEFAULT_RETENTION
    included_namespaces: List[str] = Field(default_factory=list)
    excluded_namespaces: List[str] = Field(default_factory=list)
    phase: Optional[str] = None

    @field_validator("project_id", mode="before")
    @classmethod
    def _project(cls, v):
        return validators.check_int_string(str(v))

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validators.check_match(v, validators.PROJECT_NAME_RE, "name")

    @field_validator("cron_period")
    @classmethod
    def _cron(cls, v: str) -> str:
        return validators.check_cron(v)

    @field_validator("retention_period")
    @classmethod
    def _retention(cls, v: str) -> str:
        return validators.check_retention_period(v)

    @model_validator(mode="after")
    def _one_namespace_list(self) -> "BackupPolicy":
        if bool(self.included_namespaces) == bool(self.excluded_namespaces):
            raise ValueError("exactly one of included_namespaces or excluded_namespaces must be set")
        return self
