"""Projects: a Kubernetes server set and a standalone VM fleet under one envelope."""

from __future__ import annotations

from typing import ClassVar, Dict, FrozenSet, List, Optional, Tuple, Type

from pydantic import Field, field_validator, model_validator

from taikun_reconciler import validators
from taikun_reconciler.models.base import AUDIT_FIELDS, Lockable, Record

MIN_SERVER_DISK_GIB = 30
QUOTA_FIELDS = (
    "quota_cpu_units",
    "quota_ram_size",
    "quota_disk_size",
    "quota_vm_cpu_units",
    "quota_vm_ram_size",
    "quota_vm_volume_size",
)


class NodeLabel(Record):
    key: str = Field(min_length=1, max_length=63)
    value: str = Field(min_length=1, max_length=63)

    @field_validator("key", "value")
    @classmethod
    def _grammar(cls, v: str) -> str:
        return validators.check_match(v, validators.NODE_LABEL_RE, "node label")


class Server(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id", "ip", "status"}) | AUDIT_FIELDS
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"kubernetes_node_label": NodeLabel}

    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=30)
    flavor: str = Field(min_length=1)
    disk_size: int = Field(MIN_SERVER_DISK_GIB, ge=MIN_SERVER_DISK_GIB)
    kubernetes_node_label: List[NodeLabel] = Field(default_factory=list)
    ip: Optional[str] = None
    status: Optional[str] = None
    created_by: Optional[str] = None
    last_modified: Optional[str] = None
    last_modified_by: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validators.check_match(v, validators.PROJECT_NAME_RE, "server name")

    def shape(self) -> tuple:
        """The attributes that cannot change in place."""
        labels = tuple(sorted((l.key, l.value) for l in self.kubernetes_node_label))
        return self.flavor, self.disk_size, labels


class Disk(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id"})
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"device_name"})

    id: Optional[str] = None
    name: str = Field(min_length=1)
    size: int = Field(ge=1)
    volume_type: Optional[str] = None
    device_name: Optional[str] = None


class Tag(Record):
    key: str = Field(min_length=1)
    value: str = Field(min_length=1)


class Vm(Record):
    COMPUTED: ClassVar[FrozenSet[str]] = frozenset({"id", "ip", "access_ip", "status", "image_name"}) | AUDIT_FIELDS
    NESTED: ClassVar[Dict[str, Type[Record]]] = {"disk": Disk, "tag": Tag}
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"username"})

    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=52)
    flavor: str = Field(min_length=1)
    image_id: str = Field(min_length=1)
    standalone_profile_id: str
    volume_size: int = Field(ge=1)
    volume_type: Optional[str] = None
    public_ip: bool = False
    cloud_init: Optional[str] = None
    username: Optional[str] = None
    disk: List[Disk] = Field(default_factory=list)
    tag: List[Tag] = Field(default_factory=list)
    ip: Optional[str] = None
    access_ip: Optional[str] = None
    status: Optional[str] = None
    image_name: Optional[str] = None
    created_by: Optional[str] = None
    last_modified: Optional[str] = None
    last_modified_by: Optional[str] = None

    @field_validator("standalone_profile_id", mode="before")
    @classmethod
    def _profile(cls, v):
        return validators.check_int_string(str(v))

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validators.check_match(v, validators.PROJECT_NAME_RE, "vm name")

    def shape(self) -> tuple:
        disks = tuple(sorted((d.name, d.size, d.volume_type or "") for d in self.disk))
        tags = tuple(sorted((t.key, t.value) for t in self.tag))
        return (
            self.flavor, self.image_id, self.standalone_profile_id, self.volume_size,
            self.volume_type or "", self.public_ip, self.cloud_init or "", disks, tags,
        )


class Project(Lockable):
    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {
        "access_ip", "quota_id", "status", "alerting_profile_name",
    }
    NESTED: ClassVar[Dict[str, Type[Record]]] = {
        "server_bastion": Server,
        "server_kubemaster": Server,
        "server_kubeworker": Server,
        "vm": Vm,
    }
    IMMUTABLE: ClassVar[FrozenSet[str]] = frozenset({
        "name", "cloud_credential_id", "access_profile_id", "kubernetes_profile_id",
        "kubernetes_version", "organization_id", "taikun_lb_flavor",
        "router_id_start_range", "router_id_end_range",
    })
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"taikun_lb_flavor", "router_id_start_range", "router_id_end_range"})

    name: str = Field(min_length=3, max_length=30)
    cloud_credential_id: str
    access_profile_id: Optional[str] = None
    alerting_profile_id: Optional[str] = None
    kubernetes_profile_id: Optional[str] = None
    backup_credential_id: Optional[str] = None
    policy_profile_id: Optional[str] = None
    auto_upgrade: bool = False
    monitoring: bool = False
    expiration_date: Optional[str] = None
    delete_on_expiration: bool = False
    kubernetes_version: Optional[str] = None
    flavors: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    quota_cpu_units: Optional[int] = Field(None, ge=0)
    quota_ram_size: Optional[int] = Field(None, ge=0)
    quota_disk_size: Optional[int] = Field(None, ge=0)
    quota_vm_cpu_units: Optional[int] = Field(None, ge=0)
    quota_vm_ram_size: Optional[int] = Field(None, ge=0)
    quota_vm_volume_size: Optional[int] = Field(None, ge=0)
    taikun_lb_flavor: Optional[str] = None
    router_id_start_range: Optional[int] = Field(None, ge=1, le=255)
    router_id_end_range: Optional[int] = Field(None, ge=1, le=255)
    server_bastion: List[Server] = Field(default_factory=list)
    server_kubemaster: List[Server] = Field(default_factory=list)
    server_kubeworker: List[Server] = Field(default_factory=list)
    vm: List[Vm] = Field(default_factory=list)
    access_ip: Optional[str] = None
    quota_id: Optional[str] = None
    status: Optional[str] = None
    alerting_profile_name: Optional[str] = None

    @field_validator(
        "cloud_credential_id", "access_profile_id", "alerting_profile_id",
        "kubernetes_profile_id", "backup_credential_id", "policy_profile_id",
        mode="before",
    )
    @classmethod
    def _ids(cls, v):
        return validators.check_int_string(None if v in (None, "") else str(v))

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validators.check_match(v, validators.PROJECT_NAME_RE, "name")

    @field_validator("expiration_date")
    @classmethod
    def _date(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validators.check_date(v)

    @field_validator("flavors", "images")
    @classmethod
    def _set_like(cls, v: List[str]) -> List[str]:
        return validators.check_unique(v, "entry")

    @model_validator(mode="after")
    def _topology(self) -> "Project":
        servers = self.server_bastion or self.server_kubemaster or self.server_kubeworker
        if servers:
            if len(self.server_bastion) != 1:
                raise ValueError("server_bastion must hold exactly one server")
            if len(self.server_kubemaster) % 2 != 1:
                raise ValueError("server_kubemaster must hold an odd number of servers")
        if any(s.kubernetes_node_label for s in self.server_bastion):
            raise ValueError("a bastion cannot carry kubernetes node labels")
        validators.check_unique(
            [s.name for s in self.server_bastion + self.server_kubemaster + self.server_kubeworker],
            "server name",
        )
        validators.check_unique([v.name for v in self.vm], "vm name")
        lb = (self.taikun_lb_flavor, self.router_id_start_range, self.router_id_end_range)
        if any(x is not None for x in lb) and not all(x is not None for x in lb):
            raise ValueError("taikun_lb_flavor, router_id_start_range and router_id_end_range go together")
        if self.router_id_start_range is not None and self.router_id_end_range is not None:
            if self.router_id_start_range >= self.router_id_end_range:
                raise ValueError("router_id_start_range must be below router_id_end_range")
        if self.delete_on_expiration and not self.expiration_date:
            raise ValueError("delete_on_expiration requires expiration_date")
        return self

    @property
    def servers(self) -> List[Server]:
        return self.server_bastion + self.server_kubemaster + self.server_kubeworker

    def servers_by_group(self) -> List[Tuple[str, List[Server]]]:
        """Server lists in planting order: bastion, masters, workers."""
        return [
            ("server_bastion", self.server_bastion),
            ("server_kubemaster", self.server_kubemaster),
            ("server_kubeworker", self.server_kubeworker),
        ]

    def quota_is_set(self) -> bool:
        return any(getattr(self, f) is not None for f in QUOTA_FIELDS)
