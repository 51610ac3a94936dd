"""Billing (operation) credentials and rules, showback credentials and rules."""

from __future__ import annotations

from typing import ClassVar, Dict, FrozenSet, List, Literal, Optional, Type

from pydantic import Field, field_validator, model_validator

from taikun_reconciler import validators
from taikun_reconciler.models.base import Entity, Lockable, Record


class RuleLabel(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id"})

    id: Optional[str] = None
    label: str = Field(min_length=1)
    value: str = Field(min_length=1)


class _PrometheusCredential(Lockable):
    """Shared shape of the two Prometheus-backed credential kinds."""

    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"prometheus_password"})
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({
        "name", "organization_id", "prometheus_url", "prometheus_username", "prometheus_password",
    })

    name: str = Field(min_length=3, max_length=30)
    prometheus_url: str
    prometheus_username: str = Field(min_length=1)
    prometheus_password: Optional[str] = None

    @field_validator("prometheus_url")
    @classmethod
    def _url(cls, v: str) -> str:
        return validators.check_http_url(v)


class BillingCredential(_PrometheusCredential):
    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {"is_default"}

    is_default: Optional[bool] = None


class ShowbackCredential(_PrometheusCredential):
    pass


class BillingRule(Entity):
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"labels": RuleLabel}

    name: str = Field(min_length=3, max_length=30)
    metric_name: str = Field(min_length=1)
    price: float = Field(ge=0)
    type: Literal["Count", "Sum"]
    billing_credential_id: str
    labels: List[RuleLabel] = Field(default_factory=list)

    @field_validator("billing_credential_id", mode="before")
    @classmethod
    def _credential(cls, v):
        return validators.check_int_string(str(v))


class OrganizationBillingRuleAttachment(Entity):
    """Binding of a billing rule to an organization, id ``org/rule``."""

    COMPUTED: ClassVar[FrozenSet[str]] = Entity.COMPUTED | {"billing_rule_name"}
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({"organization_id", "billing_rule_id", "discount_rate"})

    billing_rule_id: str
    billing_rule_name: Optional[str] = None
    discount_rate: float = Field(100, ge=0, le=100)

    @field_validator("billing_rule_id", mode="before")
    @classmethod
    def _rule(cls, v):
        return validators.check_int_string(str(v))


class ShowbackRule(Entity):
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"labels": RuleLabel}
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({"organization_id", "showback_credential_id"})

    name: str = Field(min_length=3, max_length=30)
    metric_name: str = Field(min_length=1)
    kind: Literal["General", "External"]
    type: Literal["Count", "Sum"]
    price: float = Field(ge=0)
    project_alert_limit: int = Field(0, ge=0)
    global_alert_limit: int = Field(0, ge=0)
    showback_credential_id: Optional[str] = None
    labels: List[RuleLabel] = Field(default_factory=list)

    @field_validator("showback_credential_id", mode="before")
    @classmethod
    def _credential(cls, v):
        return validators.check_int_string(None if v in (None, "") else str(v))

    @model_validator(mode="after")
    def _credential_matches_kind(self) -> "ShowbackRule":
        if self.kind == "External" and not self.showback_credential_id:
            raise ValueError("showback_credential_id is required when kind is External")
        if self.kind == "General" and self.showback_credential_id:
            raise ValueError("showback_credential_id must not be set when kind is General")
        return self
