"""S3 backup credentials and project backup policies."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from taikun_reconciler import convert
from taikun_reconciler.client import Page
from taikun_reconciler.errors import NotFound, ValidationError
from taikun_reconciler.ids import format_composite_id, parse_composite_id, parse_id
from taikun_reconciler.models.backup import BackupCredential, BackupPolicy
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.reconcilers.base import Reconciler
from taikun_reconciler.settings import env_default


class BackupCredentialReconciler(Reconciler[BackupCredential]):
    kind = "backup_credential"
    model = BackupCredential
    lockable = True

    def _prepare(self, desired: BackupCredential) -> BackupCredential:
        desired = super()._prepare(desired)
        desired = desired.model_copy(update={
            "s3_access_key_id": env_default("AWS_ACCESS_KEY_ID", desired.s3_access_key_id),
            "s3_secret_access_key": env_default("AWS_SECRET_ACCESS_KEY", desired.s3_secret_access_key),
        })
        for field in ("s3_access_key_id", "s3_secret_access_key"):
            if not getattr(desired, field):
                raise ValidationError("attribute is required (or set it through the environment)", field)
        return desired

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_backup_credentials(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> BackupCredential:
        return BackupCredential.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("s3Name"),
            "s3_access_key_id": raw.get("s3AccessKeyId"),
            "s3_endpoint": raw.get("s3Endpoint"),
            "s3_region": raw.get("s3Region"),
            "is_default": raw.get("isDefault"),
            "lock": bool(raw.get("isLocked")),
            "organization_id": str_id(raw.get("organizationId")),
            "organization_name": raw.get("organizationName"),
            **audit_fields(raw),
        })

    def _create(self, desired: BackupCredential) -> str:
        return self.client.create_backup_credential({
            "s3Name": desired.name,
            "s3AccessKeyId": desired.s3_access_key_id,
            "s3SecretKey": desired.s3_secret_access_key,
            "s3Region": desired.s3_region,
            "s3Endpoint": desired.s3_endpoint,
            "organizationId": int(desired.organization_id),
        })

    def _update(self, id: str, desired: BackupCredential, observed: BackupCredential, changed: Set[str]) -> None:
        self.client.update_backup_credential({
            "id": parse_id(id),
            "s3Name": desired.name,
            "s3AccessKeyId": desired.s3_access_key_id,
            "s3SecretKey": desired.s3_secret_access_key,
        })

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_backup_credential(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_backup_credential(parse_id(id))


class BackupPolicyReconciler(Reconciler[BackupPolicy]):
    """Backup schedules are addressed as ``<project>/<name>``."""

    kind = "backup_policy"
    model = BackupPolicy
    scoped = False

    def _fetch(self, id: str) -> Dict[str, Any]:
        project_id, name = parse_composite_id(id, child_is_name=True)
        schedules = self.session.list_all(lambda offset: self.client.list_backup_schedules(project_id, offset))
        for schedule in schedules:
            if schedule.get("metadataName") == name:
                return {**schedule, "projectId": project_id}
        raise NotFound(f"backup policy {name} not found in project {project_id}")

    def _list_rows(self, organization_id: Optional[int]) -> List[Dict[str, Any]]:
        """Schedules of every project visible to the caller."""
        rows: List[Dict[str, Any]] = []
        projects = self.session.list_all(lambda offset: self.client.list_projects(offset, organization_id=organization_id))
        for project in projects:
            project_id = project.get("id")
            schedules = self.session.list_all(lambda offset: self.client.list_backup_schedules(project_id, offset))
            rows.extend({**schedule, "projectId": project_id} for schedule in schedules)
        return rows

    def _observe(self, raw: Dict[str, Any]) -> BackupPolicy:
        return BackupPolicy.observed({
            "id": format_composite_id(raw["projectId"], raw.get("metadataName")),
            "project_id": str_id(raw["projectId"]),
            "name": raw.get("metadataName"),
            "cron_period": raw.get("schedule"),
            "retention_period": raw.get("ttl"),
            "included_namespaces": list(raw.get("includedNamespaces") or []),
            "excluded_namespaces": list(raw.get("excludedNamespaces") or []),
            "phase": raw.get("phase"),
        })

    def _create(self, desired: BackupPolicy) -> str:
        project_id = parse_id(desired.project_id, "project_id")
        self.client.create_backup_schedule({
            "projectId": project_id,
            "name": desired.name,
            "cronPeriod": desired.cron_period,
            "retentionPeriod": desired.retention_period,
            "includeNamespaces": list(desired.included_namespaces),
            "excludeNamespaces": list(desired.excluded_namespaces),
        })
        return format_composite_id(project_id, desired.name)

    def _delete(self, id: str) -> None:
        project_id, name = parse_composite_id(id, child_is_name=True)
        self.client.delete_backup_schedule(project_id, name)
