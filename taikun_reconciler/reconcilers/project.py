"""Project orchestrator.

A project is a shell (profiles, credential, lifetime, services) plus a
Kubernetes server set and a standalone VM fleet. Creation plants servers
and VMs, commits them and waits for the project to settle; updates walk a
fixed sequence of steps inside the lock mediator; service switches
(backup, policy) disable the old target and wait for the sub-flag to drop
before enabling the new one.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from taikun_reconciler import convert
from taikun_reconciler.bindings import reconcile_bindings
from taikun_reconciler.errors import NotFound, ValidationError
from taikun_reconciler.ids import parse_id
from taikun_reconciler.log import log_event
from taikun_reconciler.models.base import Record, audit_fields, str_id
from taikun_reconciler.models.project import QUOTA_FIELDS, Project, Server, Vm
from taikun_reconciler.reconcilers.base import Reconciler
from taikun_reconciler.waiter import wait_for_status

logger = logging.getLogger("taikun.reconcile")

READY = "Ready"
PROVISIONING = ("Updating", "Pending")
DELETING = ("Deleting", "PendingDelete")
PURGING = ("PendingPurge", "Purging")
MONITORING = ("EnableMonitoring", "DisableMonitoring")
BACKUP = ("EnableBackup", "DisableBackup")
GATEKEEPER = ("EnableGatekeeper", "DisableGatekeeper")

AUTOSCALER_LABEL = "taikun.cloud/autoscaling-group"

SERVER_GROUPS = ("server_bastion", "server_kubemaster", "server_kubeworker")
SERVER_ROLE_OF = {"server_bastion": "bastion", "server_kubemaster": "kubemaster", "server_kubeworker": "kubeworker"}

# Server row attribute holding the flavor, per platform cloud type.
FLAVOR_KEYS = {
    "aws": "awsInstanceType",
    "azure": "azureVmSize",
    "openstack": "openstackFlavor",
    "google": "googleMachineType",
    "proxmox": "proxmoxFlavor",
    "vsphere": "vsphereFlavor",
}

# Left unset, these take whatever the platform assigns.
PLATFORM_DEFAULTED: FrozenSet[str] = frozenset(
    {"access_profile_id", "kubernetes_profile_id", "kubernetes_version"} | set(QUOTA_FIELDS)
)


def _nonzero_id(value: Any) -> Optional[str]:
    return str(value) if value else None


def _server_flavor(raw: Dict[str, Any]) -> Optional[str]:
    key = FLAVOR_KEYS.get(str(raw.get("cloudType") or "").lower())
    if key is not None:
        return raw.get(key)
    return next((raw[k] for k in FLAVOR_KEYS.values() if raw.get(k)), None)


def _is_google(cloud_type: Any) -> bool:
    return str(cloud_type or "").lower() in ("google", "gcp")


def _normalized(record: Record) -> Dict[str, Any]:
    """Comparable form without write-only attributes, recursing into children."""
    data = {k: v for k, v in record.comparable().items() if k not in record.WRITE_ONLY}
    for key, child in record.NESTED.items():
        if key in data:
            items = getattr(record, key) or []
            data[key] = sorted((_normalized(item) for item in items), key=repr)
    return data


class ProjectReconciler(Reconciler[Project]):
    kind = "project"
    model = Project
    lockable = True

    # ── Read ─────────────────────────────────────────────────────

    def _details(self, project_id: int) -> Dict[str, Any]:
        return self.client.project_details(project_id)

    def _status(self, project_id: int) -> Tuple[Dict[str, Any], Optional[str]]:
        project = self._details(project_id)["project"]
        return project, project.get("projectStatus")

    def _fetch(self, id: str) -> Dict[str, Any]:
        project_id = parse_id(id)
        details = self._details(project_id)
        project = details["project"]
        rows = self.session.list_all(lambda offset: self.client.list_projects(offset, id=project_id))
        if len(rows) != 1:
            raise NotFound(f"project {id} not found")
        quota_id = project.get("quotaId")
        quotas = self.session.list_all(lambda offset: self.client.list_project_quotas(offset, id=quota_id))
        if len(quotas) != 1:
            raise NotFound(f"quota {quota_id} of project {id} not found")
        return {
            "project": project,
            "row": rows[0],
            "servers": list(details.get("data") or []),
            "vms": self.client.list_vms(project_id),
            "flavors": self.session.list_all(lambda offset: self.client.list_project_flavors(project_id, offset)),
            "images": self.session.list_all(lambda offset: self.client.list_project_images(project_id, offset)),
            "quota": quotas[0],
        }

    def list(self, organization_id: Optional[str] = None) -> List[Project]:
        org = self._organization_filter(organization_id)
        rows = self.session.list_all(lambda offset: self.client.list_projects(offset, organization_id=org))
        return [self.read(str_id(row.get("id"))) for row in rows]

    def _observe(self, raw: Dict[str, Any]) -> Project:
        project, row, quota = raw["project"], raw["row"], raw["quota"]
        google = _is_google(project.get("cloudType"))
        groups: Dict[str, List[Server]] = {group: [] for group in SERVER_GROUPS}
        for server in raw["servers"]:
            labels = [
                {"key": label.get("key"), "value": label.get("value")}
                for label in server.get("kubernetesNodeLabels") or []
            ]
            if any(label["key"] == AUTOSCALER_LABEL for label in labels):
                continue
            role = convert.server_role_name(server.get("role"))
            group = f"server_{role}" if role else None
            if group not in groups:
                continue
            groups[group].append(Server.observed({
                "id": str_id(server.get("id")),
                "name": server.get("name"),
                "flavor": _server_flavor(server),
                "disk_size": convert.bytes_to_gibi(server.get("diskSize") or 0),
                "kubernetes_node_label": labels,
                "ip": server.get("ipAddress"),
                "status": server.get("status"),
                **audit_fields(server),
            }))

        return Project.observed({
            "id": str_id(project.get("projectId")),
            "name": project.get("projectName"),
            "organization_id": str_id(project.get("organizationId")),
            "organization_name": row.get("organizationName"),
            "cloud_credential_id": str_id(project.get("cloudId")),
            "access_profile_id": _nonzero_id(project.get("accessProfileId")),
            "kubernetes_profile_id": _nonzero_id(project.get("kubernetesProfileId")),
            "alerting_profile_id": _nonzero_id(project.get("alertingProfileId")),
            "alerting_profile_name": project.get("alertingProfileName"),
            "backup_credential_id": (
                _nonzero_id(project.get("s3CredentialId")) if project.get("isBackupEnabled") else None
            ),
            "policy_profile_id": _nonzero_id(project.get("opaProfileId")) if project.get("isOpaEnabled") else None,
            "monitoring": bool(project.get("isMonitoringEnabled")),
            "auto_upgrade": bool(row.get("isAutoUpgrade")),
            "expiration_date": convert.rfc3339_to_date(project.get("expiredAt")),
            "delete_on_expiration": bool(row.get("deleteOnExpiration")),
            "kubernetes_version": project.get("kubernetesCurrentVersion"),
            "lock": bool(project.get("isLocked")),
            "access_ip": project.get("accessIp"),
            "quota_id": str_id(project.get("quotaId")),
            "status": project.get("projectStatus"),
            "flavors": sorted(f.get("name") for f in raw["flavors"]),
            "images": sorted(i.get("name") if google else i.get("imageId") for i in raw["images"]),
            "quota_cpu_units": quota.get("serverCpu"),
            "quota_ram_size": convert.bytes_to_gibi(quota.get("serverRam") or 0),
            "quota_disk_size": convert.bytes_to_gibi(quota.get("serverDiskSize") or 0),
            "quota_vm_cpu_units": quota.get("vmCpu"),
            "quota_vm_ram_size": convert.bytes_to_gibi(quota.get("vmRam") or 0),
            "quota_vm_volume_size": quota.get("vmVolumeSize"),
            "taikun_lb_flavor": None,
            "router_id_start_range": None,
            "router_id_end_range": None,
            "vm": [self._observe_vm(vm) for vm in raw["vms"]],
            **groups,
            **audit_fields(row),
        })

    def _observe_vm(self, raw: Dict[str, Any]) -> Vm:
        profile = raw.get("profile") or {}
        return Vm.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("name"),
            "flavor": raw.get("targetFlavor"),
            "image_id": raw.get("imageId"),
            "image_name": raw.get("imageName"),
            "standalone_profile_id": str_id(profile.get("id")),
            "volume_size": raw.get("volumeSize"),
            "volume_type": raw.get("volumeType") or None,
            "public_ip": bool(raw.get("publicIpEnabled")),
            "cloud_init": raw.get("cloudInit") or None,
            "username": None,
            "ip": raw.get("ipAddress"),
            "access_ip": raw.get("publicIp"),
            "status": raw.get("status"),
            "tag": [{"key": t.get("key"), "value": t.get("value")} for t in raw.get("standAloneMetaDatas") or []],
            "disk": [
                {
                    "id": str_id(d.get("id")),
                    "name": d.get("name"),
                    "size": d.get("currentSize"),
                    "volume_type": d.get("volumeType") or None,
                    "device_name": None,
                }
                for d in raw.get("disks") or []
            ],
            **audit_fields(raw),
        })

    def changed_fields(self, desired: Project, observed: Project) -> Set[str]:
        changed = super().changed_fields(desired, observed)
        changed -= {f for f in PLATFORM_DEFAULTED if getattr(desired, f) is None}
        for key in ("flavors", "images"):
            if key in changed and sorted(getattr(desired, key)) == sorted(getattr(observed, key) or []):
                changed.discard(key)
        for key in SERVER_GROUPS + ("vm",):
            if key in changed:
                want = sorted((_normalized(r) for r in getattr(desired, key)), key=repr)
                have = sorted((_normalized(r) for r in getattr(observed, key) or []), key=repr)
                if want == have:
                    changed.discard(key)
        return changed

    # ── Create ───────────────────────────────────────────────────

    def _create_body(self, desired: Project) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": desired.name,
            "isKubernetes": True,
            "cloudCredentialId": parse_id(desired.cloud_credential_id, "cloud_credential_id"),
            "organizationId": int(desired.organization_id),
            "flavors": list(desired.flavors),
            "isMonitoringEnabled": desired.monitoring,
            "isAutoUpgrade": desired.auto_upgrade,
            "deleteOnExpiration": desired.delete_on_expiration,
            "expiredAt": convert.date_to_rfc3339(desired.expiration_date) if desired.expiration_date else None,
        }
        if desired.access_profile_id:
            body["accessProfileId"] = int(desired.access_profile_id)
        if desired.alerting_profile_id:
            body["alertingProfileId"] = int(desired.alerting_profile_id)
        if desired.kubernetes_profile_id:
            body["kubernetesProfileId"] = int(desired.kubernetes_profile_id)
        if desired.kubernetes_version:
            body["kubernetesVersion"] = desired.kubernetes_version
        if desired.backup_credential_id:
            body["isBackupEnabled"] = True
            body["s3CredentialId"] = int(desired.backup_credential_id)
        if desired.policy_profile_id:
            body["opaProfileId"] = int(desired.policy_profile_id)
        if desired.taikun_lb_flavor:
            body["taikunLBFlavor"] = desired.taikun_lb_flavor
            body["routerIdStartRange"] = desired.router_id_start_range
            body["routerIdEndRange"] = desired.router_id_end_range
        return body

    def _create(self, desired: Project) -> str:
        project_id = parse_id(self.client.create_project(self._create_body(desired)))
        log_event(logger, "project_shell", id=project_id)
        if desired.quota_is_set():
            self._edit_quota(project_id, desired)
        if desired.images:
            self.client.bind_images(project_id, list(desired.images))
        if desired.servers:
            self._plant_servers(project_id, desired.servers_by_group())
            self.client.commit_project(project_id)
            self._wait_ready(project_id, PROVISIONING, self.session.timing.provision_timeout)
        if desired.vm:
            for vm in desired.vm:
                self.client.create_vm(self._vm_body(project_id, vm))
            self.client.commit_vms(project_id)
            self._wait_ready(project_id, PROVISIONING, self.session.timing.provision_timeout)
        self._wait_ready(project_id, PROVISIONING, self.session.timing.provision_timeout)
        return str(project_id)

    # ── Update ───────────────────────────────────────────────────

    def _update(self, id: str, desired: Project, observed: Project, changed: Set[str]) -> None:
        project_id = parse_id(id)
        self._check_server_shapes(desired, observed)

        if "alerting_profile_id" in changed:
            self.client.detach_alerting_profile(project_id)
            if desired.alerting_profile_id:
                self.client.attach_alerting_profile(project_id, int(desired.alerting_profile_id))

        if changed & {"expiration_date", "delete_on_expiration"}:
            expire_at = convert.date_to_rfc3339(desired.expiration_date) if desired.expiration_date else None
            self.client.extend_project_lifetime(project_id, expire_at, desired.delete_on_expiration)

        if "flavors" in changed:
            bound = self.session.list_all(lambda offset: self.client.list_project_flavors(project_id, offset))
            reconcile_bindings(
                desired=desired.flavors,
                observed={row.get("name"): row.get("id") for row in bound},
                bind=lambda names: self.client.bind_flavors(project_id, names),
                unbind=self.client.unbind_flavors,
                what=f"project {project_id} flavors",
            )

        if "images" in changed:
            self._edit_images(project_id, desired)

        if changed & set(QUOTA_FIELDS):
            self._edit_quota(project_id, desired, observed.quota_id)

        if "auto_upgrade" in changed:
            self.client.toggle_auto_upgrade(project_id, desired.auto_upgrade)

        if changed & set(SERVER_GROUPS):
            self._sync_servers(project_id, desired, observed)

        if "vm" in changed:
            self._sync_vms(project_id, desired, observed)

        if "monitoring" in changed:
            self.client.toggle_monitoring(project_id)
            self._wait_ready(project_id, MONITORING)

        if "backup_credential_id" in changed:
            self._switch_service(
                project_id,
                flag="isBackupEnabled",
                current=observed.backup_credential_id,
                wanted=desired.backup_credential_id,
                disable=lambda: self.client.disable_backup(project_id, int(observed.backup_credential_id)),
                enable=lambda target: self.client.enable_backup(project_id, target),
                pending=BACKUP,
            )

        if "policy_profile_id" in changed:
            self._switch_service(
                project_id,
                flag="isOpaEnabled",
                current=observed.policy_profile_id,
                wanted=desired.policy_profile_id,
                disable=lambda: self.client.disable_gatekeeper(project_id),
                enable=lambda target: self.client.enable_gatekeeper(project_id, target),
                pending=GATEKEEPER,
            )

    def _edit_images(self, project_id: int, desired: Project) -> None:
        google = _is_google(self._details(project_id)["project"].get("cloudType"))
        bound = self.session.list_all(lambda offset: self.client.list_project_images(project_id, offset))
        reconcile_bindings(
            desired=desired.images,
            observed={(row.get("name") if google else row.get("imageId")): row.get("id") for row in bound},
            bind=lambda images: self.client.bind_images(project_id, images),
            unbind=self.client.unbind_images,
            what=f"project {project_id} images",
        )

    def _edit_quota(self, project_id: int, desired: Project, quota_id: Optional[str] = None) -> None:
        if quota_id is None:
            quota_id = self._details(project_id)["project"].get("quotaId")
        body: Dict[str, Any] = {"quotaId": int(quota_id)}
        if desired.quota_cpu_units is not None:
            body["serverCpu"] = desired.quota_cpu_units
        if desired.quota_ram_size is not None:
            body["serverRam"] = convert.gibi_to_bytes(desired.quota_ram_size)
        if desired.quota_disk_size is not None:
            body["serverDiskSize"] = convert.gibi_to_bytes(desired.quota_disk_size)
        if desired.quota_vm_cpu_units is not None:
            body["vmCpu"] = desired.quota_vm_cpu_units
        if desired.quota_vm_ram_size is not None:
            body["vmRam"] = convert.gibi_to_bytes(desired.quota_vm_ram_size)
        if desired.quota_vm_volume_size is not None:
            # Volume quota is taken in GiB as is.
            body["vmVolumeSize"] = desired.quota_vm_volume_size
        self.client.update_project_quota(body)

    def _switch_service(self, project_id, *, flag, current, wanted, disable, enable, pending) -> None:
        """Disable the current target, wait for ``flag`` to drop, then enable the new one."""
        if current:
            log_event(logger, "service_disable", project=project_id, flag=flag, target=current)
            disable()
        if wanted:
            if current:
                wait_for_status(
                    lambda: (None, bool(self._details(project_id)["project"].get(flag))),
                    target={False},
                    pending={True},
                    timeout=self.session.timing.toggle_timeout,
                    timing=self.session.timing,
                    cancel=self.session.cancel,
                    what=f"project {project_id} {flag}",
                )
            log_event(logger, "service_enable", project=project_id, flag=flag, target=wanted)
            enable(int(wanted))
        self._wait_ready(project_id, pending)

    # ── Servers ──────────────────────────────────────────────────

    def _check_server_shapes(self, desired: Project, observed: Project) -> None:
        for group in SERVER_GROUPS:
            have = {s.name: s for s in getattr(observed, group) or []}
            for i, server in enumerate(getattr(desired, group)):
                current = have.get(server.name)
                if current is not None and current.shape() != server.shape():
                    raise ValidationError(
                        "flavor, disk size and labels of an existing server cannot change; rename it to replace it",
                        f"{group}.{i}",
                    )

    def _server_body(self, project_id: int, group: str, server: Server) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "count": 1,
            "projectId": project_id,
            "name": server.name,
            "flavor": server.flavor,
            "diskSize": convert.gibi_to_bytes(server.disk_size),
            "role": convert.server_role(SERVER_ROLE_OF[group]),
        }
        if group != "server_bastion":
            body["kubernetesNodeLabels"] = [{"key": l.key, "value": l.value} for l in server.kubernetes_node_label]
        return body

    def _plant_servers(self, project_id: int, groups: Iterable[Tuple[str, List[Server]]]) -> None:
        for group, servers in groups:
            for server in servers:
                log_event(logger, "plant_server", project=project_id, role=SERVER_ROLE_OF[group], name=server.name)
                self.client.create_server(self._server_body(project_id, group, server))

    def _sync_servers(self, project_id: int, desired: Project, observed: Project) -> None:
        had_bastion = bool(observed.server_bastion)
        wants_bastion = bool(desired.server_bastion)
        if wants_bastion and not had_bastion:
            self._plant_servers(project_id, desired.servers_by_group())
            self.client.commit_project(project_id)
            self._wait_ready(project_id, PROVISIONING, self.session.timing.provision_timeout)
            return
        if had_bastion and not wants_bastion:
            ids = [int(s.id) for s in observed.servers if s.id]
            if ids:
                self.client.delete_servers(project_id, ids)
                self._wait_ready(project_id, PURGING, self.session.timing.provision_timeout)
            return
        if {s.name for s in desired.server_bastion} != {s.name for s in observed.server_bastion}:
            raise ValidationError("the bastion cannot be replaced while kubernetes servers exist", "server_bastion")

        to_delete: List[int] = []
        to_add: List[Tuple[str, List[Server]]] = []
        for group in ("server_kubemaster", "server_kubeworker"):
            want = {s.name for s in getattr(desired, group)}
            have = getattr(observed, group) or []
            to_delete += [int(s.id) for s in have if s.name not in want and s.id]
            have_names = {s.name for s in have}
            to_add.append((group, [s for s in getattr(desired, group) if s.name not in have_names]))

        if to_delete:
            log_event(logger, "delete_servers", project=project_id, ids=to_delete)
            self.client.delete_servers(project_id, to_delete)
            self._wait_ready(project_id, DELETING, self.session.timing.provision_timeout)
        if any(servers for _, servers in to_add):
            self._plant_servers(project_id, to_add)
            self.client.commit_project(project_id)
            self._wait_ready(project_id, PROVISIONING, self.session.timing.provision_timeout)

    # ── Standalone VMs ───────────────────────────────────────────

    def _vm_body(self, project_id: int, vm: Vm) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "count": 1,
            "projectId": project_id,
            "name": vm.name,
            "flavorName": vm.flavor,
            "image": vm.image_id,
            "standAloneProfileId": int(vm.standalone_profile_id),
            "volumeSize": vm.volume_size,
            "publicIpEnabled": vm.public_ip,
            "standAloneMetaDatas": [{"key": t.key, "value": t.value} for t in vm.tag],
            "standAloneVmDisks": [
                {"name": d.name, "size": d.size, "volumeType": d.volume_type, "deviceName": d.device_name}
                for d in vm.disk
            ],
        }
        if vm.cloud_init:
            body["cloudInit"] = vm.cloud_init
        if vm.username:
            body["username"] = vm.username
        if vm.volume_type:
            body["volumeType"] = vm.volume_type
        return body

    def _sync_vms(self, project_id: int, desired: Project, observed: Project) -> None:
        """VMs are matched by name; a VM whose shape changed is deleted and created again."""
        have = {vm.name: vm for vm in observed.vm or []}
        want = {vm.name: vm for vm in desired.vm}
        stale = [
            vm for name, vm in have.items()
            if name not in want or want[name].shape() != vm.shape()
        ]
        fresh = [
            vm for name, vm in want.items()
            if name not in have or have[name].shape() != vm.shape()
        ]
        if stale:
            ids = [int(vm.id) for vm in stale if vm.id]
            log_event(logger, "delete_vms", project=project_id, ids=ids)
            self.client.delete_vms(project_id, ids)
        for vm in fresh:
            log_event(logger, "create_vm", project=project_id, name=vm.name)
            self.client.create_vm(self._vm_body(project_id, vm))
        if stale or fresh:
            self.client.commit_vms(project_id)
            self._wait_ready(project_id, PROVISIONING + DELETING, self.session.timing.provision_timeout)

    # ── Lock and delete ──────────────────────────────────────────

    def _wait_ready(self, project_id: int, pending: Iterable[str], timeout: Optional[float] = None) -> None:
        wait_for_status(
            lambda: self._status(project_id),
            target={READY},
            pending=set(pending),
            timeout=self.session.timing.toggle_timeout if timeout is None else timeout,
            timing=self.session.timing,
            cancel=self.session.cancel,
            what=f"project {project_id}",
        )

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_project(parse_id(id), convert.lock_mode(locked))

    def delete(self, id: str) -> None:
        """Purge servers and VMs, then delete the shell; a missing project counts as deleted."""
        project_id = parse_id(id)
        try:
            observed = self.read(id)
            if observed.lock:
                log_event(logger, "unlock_before_delete", kind=self.kind, id=id)
                self._set_lock(id, False)
            server_ids = [int(s.id) for s in observed.servers if s.id]
            if server_ids:
                self.client.delete_servers(project_id, server_ids)
                self._wait_ready(project_id, PURGING, self.session.timing.provision_timeout)
            vm_ids = [int(vm.id) for vm in observed.vm or [] if vm.id]
            if vm_ids:
                self.client.delete_vms(project_id, vm_ids)
                self._wait_ready(project_id, PURGING, self.session.timing.provision_timeout)
            self.client.delete_project(project_id)
        except NotFound:
            log_event(logger, "delete_not_found", kind=self.kind, id=id)
            return
        log_event(logger, "deleted", kind=self.kind, id=id)
