from __future__ import annotations

from typing import Any, Dict, Optional

from taikun_reconciler import convert
from taikun_reconciler.client import Page
from taikun_reconciler.ids import parse_id
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.models.kubeconfig import Kubeconfig
from taikun_reconciler.reconcilers.base import Reconciler


def access_scope(raw: Dict[str, Any]) -> str:
    if raw.get("isAccessibleForAll"):
        return "all"
    if raw.get("isAccessibleForManager"):
        return "managers"
    return "personal"


class KubeconfigReconciler(Reconciler[Kubeconfig]):
    """Create, read and delete; the file body is downloaded on every read."""

    kind = "kubeconfig"
    model = Kubeconfig
    scoped = False

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_kubeconfigs(offset, id=id)

    def _observe(self, raw: Dict[str, Any]) -> Kubeconfig:
        project_id, kubeconfig_id = raw.get("projectId"), raw.get("id")
        return Kubeconfig.observed({
            "id": str_id(kubeconfig_id),
            "name": raw.get("displayName"),
            "project_id": str_id(project_id),
            "project_name": raw.get("projectName"),
            "access_scope": access_scope(raw),
            "namespace": raw.get("namespace") or None,
            "user_id": raw.get("userId") or None,
            "role": convert.kubeconfig_role_name(raw.get("kubeConfigRoleId")),
            "validity_period": None,
            "content": self.client.download_kubeconfig(project_id, kubeconfig_id),
            **audit_fields(raw),
        })

    def _create(self, desired: Kubeconfig) -> str:
        body: Dict[str, Any] = {
            "name": desired.name,
            "projectId": parse_id(desired.project_id, "project_id"),
            "isAccessibleForAll": desired.access_scope == "all",
            "isAccessibleForManager": desired.access_scope == "managers",
            "kubeConfigRoleId": convert.kubeconfig_role(desired.role),
            "ttl": desired.validity_period,
        }
        if desired.user_id:
            body["userId"] = desired.user_id
        if desired.namespace:
            body["namespace"] = desired.namespace
        return self.client.create_kubeconfig(body)

    def _delete(self, id: str) -> None:
        self.client.delete_kubeconfig(parse_id(id))
