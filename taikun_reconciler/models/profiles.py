"""Access, alerting, Kubernetes, policy and standalone profiles."""

from __future__ import annotations

from typing import ClassVar, Dict, FrozenSet, List, Literal, Optional, Type

from pydantic import EmailStr, Field, field_validator

from taikun_reconciler import convert, validators
from taikun_reconciler.models.base import Lockable, Record


# ── Access profile ───────────────────────────────────────────────

class SshUser(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id"})

    id: Optional[str] = None
    name: str
    public_key: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _posix(cls, v: str) -> str:
        return validators.check_posix_login(v)


class AccessProfile(Lockable):
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"ssh_users": SshUser}

    name: str = Field(min_length=3, max_length=30)
    http_proxy: Optional[str] = None
    dns_servers: List[str] = Field(default_factory=list)
    ntp_servers: List[str] = Field(default_factory=list)
    ssh_users: List[SshUser] = Field(default_factory=list)

    @field_validator("ssh_users")
    @classmethod
    def _unique_ssh_users(cls, v: List[SshUser]) -> List[SshUser]:
        validators.check_unique([u.name for u in v], "ssh user name")
        return v


# ── Alerting profile ─────────────────────────────────────────────

AlertingIntegrationType = Literal["Opsgenie", "Pagerduty", "Splunk", "MicrosoftTeams"]


class AlertingIntegration(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id"})
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"token"})

    id: Optional[str] = None
    type: AlertingIntegrationType
    url: str
    token: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        return validators.check_http_url(v)


class AlertingProfile(Lockable):
    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {"slack_configuration_name"}
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"integrations": AlertingIntegration}

    name: str = Field(min_length=1)
    reminder: Literal["HalfHour", "Hourly", "Daily", "None"]
    slack_configuration_id: Optional[str] = None
    slack_configuration_name: Optional[str] = None
    emails: List[EmailStr] = Field(default_factory=list)
    integrations: List[AlertingIntegration] = Field(default_factory=list)

    @field_validator("slack_configuration_id", mode="before")
    @classmethod
    def _slack_id(cls, v):
        return validators.check_int_string(None if v in (None, "") else str(v))


# ── Kubernetes profile ───────────────────────────────────────────

class KubernetesProfile(Lockable):
    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {"cni"}
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({
        "name", "organization_id", "load_balancing_solution", "bastion_proxy",
        "schedule_on_master", "unique_cluster_name", "nvidia_gpu_operator",
    })

    name: str = Field(min_length=1)
    load_balancing_solution: Literal["None", "Octavia", "Taikun"] = "Octavia"
    bastion_proxy: bool = False
    schedule_on_master: bool = False
    unique_cluster_name: bool = True
    nvidia_gpu_operator: bool = False
    cni: Optional[str] = None


# ── Policy (OPA) profile ─────────────────────────────────────────

class PolicyProfile(Lockable):
    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {"is_default"}

    name: str = Field(min_length=3, max_length=30)
    forbid_node_port: bool = False
    forbid_http_ingress: bool = False
    require_probe: bool = False
    unique_ingress: bool = False
    unique_service_selector: bool = False
    allowed_repos: List[str] = Field(default_factory=list)
    forbidden_tags: List[str] = Field(default_factory=list)
    ingress_whitelist: List[str] = Field(default_factory=list)
    is_default: Optional[bool] = None

    @field_validator("allowed_repos")
    @classmethod
    def _repos(cls, v: List[str]) -> List[str]:
        return sorted(validators.check_docker_repo(r) for r in v)

    @field_validator("forbidden_tags")
    @classmethod
    def _tags(cls, v: List[str]) -> List[str]:
        return sorted(validators.check_docker_tag(t) for t in v)

    @field_validator("ingress_whitelist")
    @classmethod
    def _hosts(cls, v: List[str]) -> List[str]:
        return sorted(validators.check_ingress_host(h) for h in v)


# ── Standalone profile ───────────────────────────────────────────

class SecurityGroup(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id"})

    id: Optional[str] = None
    name: str = Field(min_length=3, max_length=30)
    cidr: str
    ip_protocol: str = "UDP"
    from_port: Optional[int] = Field(None, ge=0, le=65535)
    to_port: Optional[int] = Field(None, ge=0, le=65535)

    @field_validator("cidr")
    @classmethod
    def _cidr(cls, v: str) -> str:
        return validators.check_cidr(v)

    @field_validator("ip_protocol", mode="before")
    @classmethod
    def _protocol(cls, v) -> str:
        return convert.security_group_protocol(v)


class StandaloneProfile(Lockable):
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"security_groups": SecurityGroup}
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({"public_key", "organization_id"})

    name: str = Field(min_length=3, max_length=30)
    public_key: str = Field(min_length=1)
    security_groups: List[SecurityGroup] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validators.check_match(v, validators.PROJECT_NAME_RE, "name")

    @field_validator("security_groups")
    @classmethod
    def _unique_groups(cls, v: List[SecurityGroup]) -> List[SecurityGroup]:
        validators.check_unique([g.name for g in v], "security group name")
        return v
