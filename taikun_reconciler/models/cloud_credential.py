"""Cloud credentials: one envelope, six provider variants tagged by ``cloud_type``.

Provider fields left unset by the caller are filled from the usual
provider environment variables (``AWS_*``, ``ARM_*``, ``OS_*``,
``GOOGLE_APPLICATION_CREDENTIALS``, ``PROXMOX_*``, ``VSPHERE_*``) before the
create call.
"""

from __future__ import annotations

from typing import Annotated, ClassVar, Dict, FrozenSet, List, Literal, Optional, Type, Union

from pydantic import Field, field_validator

from taikun_reconciler import validators
from taikun_reconciler.errors import ValidationError
from taikun_reconciler.models.base import Lockable, Record

Continent = Literal["Europe", "Asia", "America"]


class CloudCredentialBase(Lockable):
    """Envelope shared by every provider."""

    COMPUTED: ClassVar[FrozenSet[str]] = Lockable.COMPUTED | {"is_default"}
    # Env var per provider field, read when the field is left unset.
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {}
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset()
    # Fields the provider update endpoint accepts; any other change is immutable.
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name"})

    cloud_type: str
    name: str = Field(min_length=3, max_length=30)
    is_default: Optional[bool] = None

    @classmethod
    def immutable_fields(cls) -> FrozenSet[str]:
        return frozenset(cls.model_fields) - cls.COMPUTED - cls.UPDATABLE - {"lock", "cloud_type"}


class AwsCredential(CloudCredentialBase):
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"secret_access_key"})
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"access_key_id"})
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {
        "access_key_id": "AWS_ACCESS_KEY_ID",
        "secret_access_key": "AWS_SECRET_ACCESS_KEY",
        "region": "AWS_DEFAULT_REGION",
    }
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset({"access_key_id", "secret_access_key", "region"})
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name", "access_key_id", "secret_access_key"})

    cloud_type: Literal["aws"] = "aws"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    availability_zone: str = Field(min_length=1)


class AzureCredential(CloudCredentialBase):
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"client_secret"})
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"client_id", "subscription_id"})
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {
        "client_id": "ARM_CLIENT_ID",
        "client_secret": "ARM_CLIENT_SECRET",
        "subscription_id": "ARM_SUBSCRIPTION_ID",
        "tenant_id": "ARM_TENANT_ID",
    }
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset({"client_id", "client_secret", "subscription_id", "tenant_id"})
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name", "client_id", "client_secret"})

    cloud_type: Literal["azure"] = "azure"
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    subscription_id: Optional[str] = None
    tenant_id: Optional[str] = None
    location: str = Field(min_length=1)
    availability_zone: Optional[str] = None


class GcpCredential(CloudCredentialBase):
    COMPUTED: ClassVar[FrozenSet[str]] = CloudCredentialBase.COMPUTED | {"zones", "billing_account_name"}
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"config_file", "import_project", "az_count"})
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {"config_file": "GOOGLE_APPLICATION_CREDENTIALS"}
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset({"config_file"})
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset()

    cloud_type: Literal["gcp"] = "gcp"
    config_file: Optional[str] = None
    region: str = Field(min_length=1)
    az_count: int = Field(1, ge=1, le=3)
    import_project: bool = False
    billing_account_id: Optional[str] = None
    folder_id: Optional[str] = None
    zones: Optional[List[str]] = None
    billing_account_name: Optional[str] = None

    @classmethod
    def check_project_source(cls, cred: "GcpCredential") -> None:
        if not cred.import_project and not (cred.billing_account_id and cred.folder_id):
            raise ValidationError(
                "billing_account_id and folder_id are required unless import_project is set", "billing_account_id"
            )


class OpenStackCredential(CloudCredentialBase):
    COMPUTED: ClassVar[FrozenSet[str]] = CloudCredentialBase.COMPUTED | {"project_id"}
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"password"})
    WRITE_ONLY: ClassVar[FrozenSet[str]] = frozenset({"url"})
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {
        "user": "OS_USERNAME",
        "password": "OS_PASSWORD",
        "url": "OS_AUTH_URL",
        "project_name": "OS_PROJECT_NAME",
        "domain": "OS_USER_DOMAIN_NAME",
        "region": "OS_REGION_NAME",
        "public_network_name": "OS_INTERFACE",
    }
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset({
        "user", "password", "url", "project_name", "domain", "region", "public_network_name",
    })
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name", "user", "password"})

    cloud_type: Literal["openstack"] = "openstack"
    user: Optional[str] = None
    password: Optional[str] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    project_name: Optional[str] = None
    region: Optional[str] = None
    public_network_name: Optional[str] = None
    availability_zone: Optional[str] = None
    volume_type_name: Optional[str] = None
    imported_network_subnet_id: Optional[str] = None
    project_id: Optional[str] = None


class Network(Record):
    """Address plan of a public or private hypervisor network."""

    name: Optional[str] = None
    gateway: str
    ip_address: str
    net_mask: int = Field(ge=0, le=32)
    begin_allocation_range: str
    end_allocation_range: str


class _HypervisorCredential(CloudCredentialBase):
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name", "hypervisors"})

    continent: Continent = "Europe"
    vm_template_name: str = Field(min_length=1)
    hypervisors: List[str] = Field(min_length=1)
    public_network: Network
    private_network: Network

    @field_validator("hypervisors")
    @classmethod
    def _unique(cls, v: List[str]) -> List[str]:
        return validators.check_unique(v, "hypervisor")


class ProxmoxCredential(_HypervisorCredential):
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"client_secret"})
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {
        "api_host": "PROXMOX_API_HOST",
        "client_id": "PROXMOX_CLIENT_ID",
        "client_secret": "PROXMOX_CLIENT_SECRET",
        "storage": "PROXMOX_STORAGE",
    }
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset({"api_host", "client_id", "client_secret", "storage"})
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name", "client_id", "client_secret", "hypervisors"})

    cloud_type: Literal["proxmox"] = "proxmox"
    api_host: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    storage: Optional[str] = None


class VsphereCredential(_HypervisorCredential):
    SECRETS: ClassVar[FrozenSet[str]] = frozenset({"password"})
    ENV_DEFAULTS: ClassVar[Dict[str, str]] = {
        "username": "VSPHERE_USERNAME",
        "password": "VSPHERE_PASSWORD",
        "api_host": "VSPHERE_API_URL",
    }
    REQUIRED: ClassVar[FrozenSet[str]] = frozenset({"username", "password", "api_host"})
    UPDATABLE: ClassVar[FrozenSet[str]] = frozenset({"name", "username", "password", "hypervisors"})

    cloud_type: Literal["vsphere"] = "vsphere"
    api_host: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    datacenter: str = Field(min_length=1)
    resource_pool: str = Field(min_length=1)
    data_store: str = Field(min_length=1)
    drs_enabled: bool = False


CloudCredential = Annotated[
    Union[AwsCredential, AzureCredential, GcpCredential, OpenStackCredential, ProxmoxCredential, VsphereCredential],
    Field(discriminator="cloud_type"),
]

VARIANTS: Dict[str, Type[CloudCredentialBase]] = {
    "aws": AwsCredential,
    "azure": AzureCredential,
    "gcp": GcpCredential,
    "openstack": OpenStackCredential,
    "proxmox": ProxmoxCredential,
    "vsphere": VsphereCredential,
}

# Path segment of each provider's endpoints.
PROVIDER_PATHS: Dict[str, str] = {
    "aws": "aws",
    "azure": "azure",
    "gcp": "google",
    "openstack": "openstack",
    "proxmox": "proxmox",
    "vsphere": "vsphere",
}


def variant_for(cloud_type: Optional[str]) -> Type[CloudCredentialBase]:
    try:
        return VARIANTS[str(cloud_type)]
    except KeyError:
        raise ValidationError(f"expected one of {sorted(VARIANTS)}, got {cloud_type!r}", "cloud_type") from None
