"""Cloud credentials, dispatched on the ``cloud_type`` tag.

Each provider has its own list/create/update endpoints (``/aws``,
``/azure``, ``/google``, ``/openstack``, ``/proxmox``, ``/vsphere``); lock
and delete are shared. A credential read without a known type is looked
up on every provider in turn.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Set

from taikun_reconciler import convert, io
from taikun_reconciler.errors import NotFound, TransportError, ValidationError
from taikun_reconciler.ids import parse_id
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.models.cloud_credential import (
    PROVIDER_PATHS,
    VARIANTS,
    AwsCredential,
    AzureCredential,
    CloudCredentialBase,
    GcpCredential,
    Network,
    OpenStackCredential,
    ProxmoxCredential,
    VsphereCredential,
    variant_for,
)
from taikun_reconciler.reconcilers.base import Reconciler
from taikun_reconciler.settings import env_default


def _envelope(cloud_type: str, raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "cloud_type": cloud_type,
        "id": str_id(raw.get("id")),
        "name": raw.get("name"),
        "is_default": raw.get("isDefault"),
        "lock": bool(raw.get("isLocked")),
        "organization_id": str_id(raw.get("organizationId")),
        "organization_name": raw.get("organizationName"),
        **audit_fields(raw),
    }


def _networks(rows: Optional[List[Dict[str, Any]]], name_key: str) -> Dict[str, Network]:
    out = {}
    for row in rows or []:
        side = "private_network" if row.get("isPrivate") else "public_network"
        out[side] = Network.observed({
            "name": row.get(name_key),
            "gateway": row.get("gateway"),
            "ip_address": row.get("ipAddress"),
            "net_mask": row.get("netMask"),
            "begin_allocation_range": row.get("beginAllocationRange"),
            "end_allocation_range": row.get("endAllocationRange"),
        })
    return out


def _network_body(network: Network, name_key: str) -> Dict[str, Any]:
    return {
        name_key: network.name,
        "gateway": network.gateway,
        "ipAddress": network.ip_address,
        "netMask": network.net_mask,
        "beginAllocationRange": network.begin_allocation_range,
        "endAllocationRange": network.end_allocation_range,
    }


def _hypervisors(raw: Dict[str, Any]) -> List[str]:
    return [h.get("name") if isinstance(h, Mapping) else h for h in raw.get("hypervisors") or []]


class CloudCredentialReconciler(Reconciler[CloudCredentialBase]):
    kind = "cloud_credential"
    model = CloudCredentialBase
    lockable = True

    def parse(self, data: Mapping[str, Any]) -> CloudCredentialBase:
        if not isinstance(data, Mapping):
            return CloudCredentialBase.desired(data)
        return variant_for(data.get("cloud_type")).desired(data)

    def immutable_fields(self, desired: CloudCredentialBase) -> FrozenSet[str]:
        return type(desired).immutable_fields()

    def _prepare(self, desired: CloudCredentialBase) -> CloudCredentialBase:
        desired = super()._prepare(desired)
        defaults = {
            field: env_default(variable, getattr(desired, field))
            for field, variable in desired.ENV_DEFAULTS.items()
        }
        desired = desired.model_copy(update=defaults)
        for field in sorted(desired.REQUIRED):
            if not getattr(desired, field):
                variable = desired.ENV_DEFAULTS.get(field)
                hint = f" (or set {variable})" if variable else ""
                raise ValidationError(f"attribute is required{hint}", field)
        if isinstance(desired, GcpCredential):
            GcpCredential.check_project_source(desired)
        return desired

    # ── Read ─────────────────────────────────────────────────────

    def read(self, id: str, prior: Optional[CloudCredentialBase] = None) -> CloudCredentialBase:
        credential_id = parse_id(id)
        cloud_types = [prior.cloud_type] if prior is not None else list(VARIANTS)
        for cloud_type in cloud_types:
            path = PROVIDER_PATHS[cloud_type]
            rows = self.session.list_all(
                lambda offset, path=path: self.client.list_cloud_credentials(path, offset, id=credential_id)
            )
            if len(rows) > 1:
                raise TransportError(f"{self.kind} {id}: expected one result, got {len(rows)}")
            if rows:
                observed = self._observers[cloud_type](self, rows[0])
                return self._carry_over(observed, prior)
        raise NotFound(f"{self.kind} {id} not found")

    def list(self, organization_id: Optional[str] = None) -> List[CloudCredentialBase]:
        """Every provider's credentials, AWS first, in provider order."""
        org = self._organization_filter(organization_id)
        observed: List[CloudCredentialBase] = []
        for cloud_type in VARIANTS:
            path = PROVIDER_PATHS[cloud_type]
            rows = self.session.list_all(
                lambda offset, path=path: self.client.list_cloud_credentials(path, offset, organization_id=org)
            )
            observed.extend(self._observers[cloud_type](self, raw) for raw in rows)
        return observed

    def _observe_aws(self, raw: Dict[str, Any]) -> AwsCredential:
        return AwsCredential.observed({
            **_envelope("aws", raw),
            "region": convert.aws_region_name(raw.get("region")),
            "availability_zone": raw.get("availabilityZone"),
        })

    def _observe_azure(self, raw: Dict[str, Any]) -> AzureCredential:
        return AzureCredential.observed({
            **_envelope("azure", raw),
            "tenant_id": raw.get("tenantId"),
            "location": raw.get("location"),
            "availability_zone": raw.get("availabilityZone"),
        })

    def _observe_gcp(self, raw: Dict[str, Any]) -> GcpCredential:
        return GcpCredential.observed({
            **_envelope("gcp", raw),
            "region": raw.get("region"),
            "billing_account_id": raw.get("billingAccountId"),
            "billing_account_name": raw.get("billingAccountName"),
            "folder_id": raw.get("folderId"),
            "zones": list(raw.get("zones") or []),
            "az_count": None,
            "import_project": None,
        })

    def _observe_openstack(self, raw: Dict[str, Any]) -> OpenStackCredential:
        return OpenStackCredential.observed({
            **_envelope("openstack", raw),
            "user": raw.get("user"),
            "project_name": raw.get("project"),
            "project_id": raw.get("tenantId"),
            "public_network_name": raw.get("publicNetwork"),
            "availability_zone": raw.get("availabilityZone") or None,
            "domain": raw.get("domain"),
            "region": raw.get("region"),
            "volume_type_name": raw.get("volumeType") or None,
            "imported_network_subnet_id": raw.get("internalSubnetId") or None,
        })

    def _observe_proxmox(self, raw: Dict[str, Any]) -> ProxmoxCredential:
        return ProxmoxCredential.observed({
            **_envelope("proxmox", raw),
            "continent": convert.continent_name(raw.get("continentName")),
            "api_host": raw.get("url"),
            "client_id": raw.get("tokenId"),
            "storage": raw.get("storage"),
            "vm_template_name": raw.get("vmTemplateName"),
            "hypervisors": _hypervisors(raw),
            **_networks(raw.get("proxmoxNetworks"), "bridge"),
        })

    def _observe_vsphere(self, raw: Dict[str, Any]) -> VsphereCredential:
        return VsphereCredential.observed({
            **_envelope("vsphere", raw),
            "continent": convert.continent_name(raw.get("continentName")),
            "api_host": raw.get("url"),
            "username": raw.get("username"),
            "datacenter": raw.get("datacenterName"),
            "resource_pool": raw.get("resourcePool"),
            "data_store": raw.get("datastore"),
            "drs_enabled": bool(raw.get("drsEnabled")),
            "vm_template_name": raw.get("vmTemplateName"),
            "hypervisors": _hypervisors(raw),
            **_networks(raw.get("vsphereNetworks"), "name"),
        })

    _observers: Dict[str, Callable[["CloudCredentialReconciler", Dict[str, Any]], CloudCredentialBase]] = {
        "aws": _observe_aws,
        "azure": _observe_azure,
        "gcp": _observe_gcp,
        "openstack": _observe_openstack,
        "proxmox": _observe_proxmox,
        "vsphere": _observe_vsphere,
    }

    # ── Create ───────────────────────────────────────────────────

    def _create(self, desired: CloudCredentialBase) -> str:
        path = PROVIDER_PATHS[desired.cloud_type]
        if isinstance(desired, GcpCredential):
            return self._create_gcp(path, desired)
        return self.client.create_cloud_credential(path, self._create_body(desired))

    def _create_gcp(self, path: str, desired: GcpCredential) -> str:
        fields = {
            "name": desired.name,
            "region": desired.region,
            "azCount": desired.az_count,
            "importProject": str(desired.import_project).lower(),
            "organizationId": desired.organization_id,
        }
        if not desired.import_project:
            fields["billingAccountId"] = desired.billing_account_id
            fields["folderId"] = desired.folder_id
        try:
            content = io.read_bytes(desired.config_file)
        except OSError as e:
            raise ValidationError(f"cannot read config file: {e}", "config_file", underlying=e) from e
        return self.client.create_cloud_credential_multipart(
            path, fields, os.path.basename(desired.config_file), content
        )

    def _create_body(self, desired: CloudCredentialBase) -> Dict[str, Any]:
        org = int(desired.organization_id)
        if isinstance(desired, AwsCredential):
            return {
                "name": desired.name,
                "awsAccessKeyId": desired.access_key_id,
                "awsSecretAccessKey": desired.secret_access_key,
                "awsAvailabilityZone": desired.availability_zone,
                "awsRegion": convert.aws_region(desired.region),
                "organizationId": org,
            }
        if isinstance(desired, AzureCredential):
            return {
                "name": desired.name,
                "azureTenantId": desired.tenant_id,
                "azureClientId": desired.client_id,
                "azureClientSecret": desired.client_secret,
                "azureSubscriptionId": desired.subscription_id,
                "azureLocation": desired.location,
                "azureAvailabilityZone": desired.availability_zone,
                "organizationId": org,
            }
        if isinstance(desired, OpenStackCredential):
            return {
                "name": desired.name,
                "openStackUser": desired.user,
                "openStackPassword": desired.password,
                "openStackUrl": desired.url,
                "openStackProject": desired.project_name,
                "openStackPublicNetwork": desired.public_network_name,
                "openStackDomain": desired.domain,
                "openStackRegion": desired.region,
                "openStackAvailabilityZone": desired.availability_zone,
                "openStackVolumeType": desired.volume_type_name,
                "openStackImportNetwork": desired.imported_network_subnet_id is not None,
                "openStackInternalSubnetId": desired.imported_network_subnet_id,
                "organizationId": org,
            }
        if isinstance(desired, ProxmoxCredential):
            return {
                "name": desired.name,
                "url": desired.api_host,
                "tokenId": desired.client_id,
                "tokenSecret": desired.client_secret,
                "storage": desired.storage,
                "vmTemplateName": desired.vm_template_name,
                "hypervisors": list(desired.hypervisors),
                "continent": convert.continent_code(desired.continent),
                "publicNetwork": _network_body(desired.public_network, "bridge"),
                "privateNetwork": _network_body(desired.private_network, "bridge"),
                "organizationId": org,
            }
        if isinstance(desired, VsphereCredential):
            return {
                "name": desired.name,
                "url": desired.api_host,
                "username": desired.username,
                "password": desired.password,
                "datacenterName": desired.datacenter,
                "datacenterId": self._vsphere_datacenter_id(desired),
                "resourcePoolName": desired.resource_pool,
                "datastoreName": desired.data_store,
                "drsEnabled": desired.drs_enabled,
                "vmTemplateName": desired.vm_template_name,
                "hypervisors": list(desired.hypervisors),
                "continent": convert.continent_code(desired.continent),
                "publicNetwork": _network_body(desired.public_network, "name"),
                "privateNetwork": _network_body(desired.private_network, "name"),
                "organizationId": org,
            }
        raise ValidationError(f"unsupported cloud type {desired.cloud_type!r}", "cloud_type")

    def _vsphere_datacenter_id(self, desired: VsphereCredential) -> str:
        rows = self.client.list_vsphere_datacenters({
            "url": desired.api_host,
            "username": desired.username,
            "password": desired.password,
            "datacenterName": desired.datacenter,
        })
        for row in rows:
            if row.get("name") == desired.datacenter:
                return row.get("datacenter")
        raise ValidationError(f"datacenter {desired.datacenter!r} not found on {desired.api_host}", "datacenter")

    # ── Update ───────────────────────────────────────────────────

    def _update(self, id: str, desired: CloudCredentialBase, observed: CloudCredentialBase, changed: Set[str]) -> None:
        credential_id = parse_id(id)
        path = PROVIDER_PATHS[desired.cloud_type]
        if changed - {"hypervisors"}:
            self.client.update_cloud_credential(path, {"id": credential_id, **self._update_body(desired)})
        if "hypervisors" in changed:
            self.client.update_cloud_hypervisors(path, credential_id, list(desired.hypervisors))

    def _update_body(self, desired: CloudCredentialBase) -> Dict[str, Any]:
        if isinstance(desired, AwsCredential):
            return {
                "name": desired.name,
                "awsAccessKeyId": desired.access_key_id,
                "awsSecretAccessKey": desired.secret_access_key,
            }
        if isinstance(desired, AzureCredential):
            return {
                "name": desired.name,
                "azureClientId": desired.client_id,
                "azureClientSecret": desired.client_secret,
            }
        if isinstance(desired, OpenStackCredential):
            return {
                "name": desired.name,
                "openStackUser": desired.user,
                "openStackPassword": desired.password,
            }
        if isinstance(desired, ProxmoxCredential):
            return {
                "name": desired.name,
                "tokenId": desired.client_id,
                "tokenSecret": desired.client_secret,
            }
        if isinstance(desired, VsphereCredential):
            return {
                "name": desired.name,
                "username": desired.username,
                "password": desired.password,
            }
        raise ValidationError(f"{desired.cloud_type} credentials cannot be updated in place", "name")

    # ── Lock and delete ──────────────────────────────────────────

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_cloud_credential(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_cloud_credential(parse_id(id))
