"""TaikunClient: typed call surface over the platform REST API.

Every method maps to one endpoint. List endpoints return a ``Page``
(items plus the platform's announced total) and are meant to be driven by
``taikun_reconciler.pager.paginate``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import httpx

from taikun_reconciler.auth import AuthManager, Credentials
from taikun_reconciler.errors import AuthError, NotFound, TransportError
from taikun_reconciler.log import log_event
from taikun_reconciler.secrets import redact_dict
from taikun_reconciler.settings import Settings
from taikun_reconciler.utils import generate_request_id, retry_with_backoff

logger = logging.getLogger("taikun.http")


class Page(NamedTuple):
    items: List[Dict[str, Any]]
    total: int


def _pascal(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in name.split("_"))


def _query(**params: Any) -> Dict[str, Any]:
    """Snake-case keyword filters to the platform's PascalCase query params."""
    out: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        out[_pascal(key)] = value
    return out


class TaikunClient:
    """Synchronous client for the Taikun API.

    Usage::

        from taikun_reconciler.client import TaikunClient

        c = TaikunClient(base_url="https://api.taikun.cloud", email="...", password="...")
        page = c.list_access_profiles(id=42)
        print(page.items)
    """

    def __init__(
        self,
        base_url: str = "https://api.taikun.cloud",
        auth: Optional[AuthManager] = None,
        *,
        email: str = "",
        password: str = "",
        federated: bool = False,
        api_version: int = 1,
        timeout: float = 60.0,
        retries: int = 0,
        transport: Optional[httpx.BaseTransport] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout
        self._retries = retries
        # Retry backoff returns early once this fires.
        self.cancel = cancel
        self._client = httpx.Client(base_url=self._base_url, timeout=self._timeout, transport=transport)
        self._auth = auth or AuthManager(
            self._client, Credentials(email, password, federated), api_version=api_version
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "TaikunClient":
        return cls(
            settings.base_url,
            email=settings.login_email,
            password=settings.login_password,
            federated=settings.use_keycloak,
            api_version=settings.api_version,
            timeout=settings.http_timeout,
            retries=settings.http_retries,
            transport=transport,
        )

    @property
    def auth(self) -> AuthManager:
        return self._auth

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TaikunClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ── Internal helpers ─────────────────────────────────────────

    def _path(self, suffix: str) -> str:
        return f"/api/v{self._api_version}/{suffix}"

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        headers.update(self._auth.auth_headers())
        headers["X-Request-ID"] = generate_request_id()
        return headers

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        request_id = resp.headers.get("x-request-id")
        try:
            body = resp.json()
        except ValueError:
            body = resp.text

        if isinstance(body, dict):
            message = body.get("message") or body.get("title") or body.get("detail") or str(body)
        else:
            message = str(body) or resp.reason_phrase

        safe_body = redact_dict(body)
        if resp.status_code == 401:
            raise AuthError(f"[401] {message}")
        if resp.status_code == 404:
            raise NotFound(str(message), resp.status_code, safe_body, request_id)
        raise TransportError(str(message), resp.status_code, safe_body, request_id)

    def _request(
        self,
        method: str,
        suffix: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        files: Any = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        path = self._path(suffix)
        headers = self._headers()

        def do():
            return self._client.request(
                method, path, params=params, json=json, files=files, data=data, headers=headers
            )

        t0 = time.monotonic()
        try:
            if self._retries > 0:
                resp = retry_with_backoff(do, retries=self._retries, cancel=self.cancel)
            else:
                resp = do()
        except httpx.HTTPError as e:
            log_event(logger, "http_error", logging.WARNING, method=method, path=path, error=str(e))
            raise TransportError(f"{method} {path} failed: {e}", underlying=e) from e
        log_event(
            logger,
            "http",
            logging.DEBUG,
            request_id=headers["X-Request-ID"],
            method=method,
            path=path,
            status=resp.status_code,
            elapsed_ms=int((time.monotonic() - t0) * 1000),
        )
        self._raise_for_status(resp)
        return resp

    def _json(self, method: str, suffix: str, **kwargs: Any) -> Any:
        resp = self._request(method, suffix, **kwargs)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def _get(self, suffix: str, **params: Any) -> Any:
        return self._json("GET", suffix, params=_query(**params))

    def _post(self, suffix: str, body: Any = None, **params: Any) -> Any:
        return self._json("POST", suffix, json=body, params=_query(**params) or None)

    def _put(self, suffix: str, body: Any = None) -> Any:
        return self._json("PUT", suffix, json=body)

    def _delete(self, suffix: str) -> Any:
        return self._json("DELETE", suffix)

    def _page(self, suffix: str, offset: int = 0, **params: Any) -> Page:
        payload = self._get(suffix, offset=offset, **params)
        if isinstance(payload, list):
            return Page(payload, len(payload))
        if not isinstance(payload, dict):
            raise TransportError(f"GET {suffix}: unexpected list payload")
        items = payload.get("data") or []
        total = payload.get("totalCount")
        if total is None:
            total = len(items)
        return Page(list(items), int(total))

    @staticmethod
    def _id_of(payload: Any) -> str:
        if isinstance(payload, dict) and payload.get("id") is not None:
            return str(payload["id"])
        if isinstance(payload, (int, str)) and str(payload).strip():
            return str(payload)
        raise TransportError("create response did not contain an id")

    # ── Session ──────────────────────────────────────────────────

    def user_details(self) -> Dict[str, Any]:
        """GET /users/details"""
        payload = self._get("users/details")
        return (payload or {}).get("data") or {}

    # ── Access profiles ──────────────────────────────────────────

    def list_access_profiles(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /accessprofiles/list"""
        return self._page("accessprofiles/list", offset, id=id, organization_id=organization_id)

    def create_access_profile(self, body: Dict[str, Any]) -> str:
        """POST /accessprofiles/create"""
        return self._id_of(self._post("accessprofiles/create", body))

    def update_access_profile(self, profile_id: int, body: Dict[str, Any]) -> None:
        """PUT /accessprofiles/update/{id}"""
        self._put(f"accessprofiles/update/{profile_id}", body)

    def lock_access_profile(self, profile_id: int, mode: str) -> None:
        """POST /accessprofiles/lockmanager"""
        self._post("accessprofiles/lockmanager", {"id": profile_id, "mode": mode})

    def delete_access_profile(self, profile_id: int) -> None:
        """DELETE /accessprofiles/{id}"""
        self._delete(f"accessprofiles/{profile_id}")

    def list_ssh_users(self, profile_id: int) -> List[Dict[str, Any]]:
        """GET /sshusers/list/{accessProfileId}"""
        return list(self._get(f"sshusers/list/{profile_id}") or [])

    def create_ssh_user(self, body: Dict[str, Any]) -> str:
        """POST /sshusers/create"""
        return self._id_of(self._post("sshusers/create", body))

    def delete_ssh_user(self, ssh_user_id: int) -> None:
        """POST /sshusers/delete"""
        self._post("sshusers/delete", {"id": ssh_user_id})

    # ── Alerting profiles ────────────────────────────────────────

    def list_alerting_profiles(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /alertingprofiles/list"""
        return self._page("alertingprofiles/list", offset, id=id, organization_id=organization_id)

    def create_alerting_profile(self, body: Dict[str, Any]) -> str:
        """POST /alertingprofiles/create"""
        return self._id_of(self._post("alertingprofiles/create", body))

    def update_alerting_profile(self, body: Dict[str, Any]) -> None:
        """PUT /alertingprofiles/edit"""
        self._put("alertingprofiles/edit", body)

    def assign_alerting_emails(self, profile_id: int, emails: Iterable[str]) -> None:
        """PUT /alertingprofiles/assignemails/{id}"""
        self._put(f"alertingprofiles/assignemails/{profile_id}", [{"email": e} for e in emails])

    def lock_alerting_profile(self, profile_id: int, mode: str) -> None:
        """POST /alertingprofiles/lockmanager"""
        self._post("alertingprofiles/lockmanager", {"id": profile_id, "mode": mode})

    def delete_alerting_profile(self, profile_id: int) -> None:
        """POST /alertingprofiles/delete"""
        self._post("alertingprofiles/delete", {"id": profile_id})

    def list_alerting_integrations(self, profile_id: int) -> List[Dict[str, Any]]:
        """GET /alertingintegrations/{alertingProfileId}"""
        return list(self._get(f"alertingintegrations/{profile_id}") or [])

    def create_alerting_integration(self, body: Dict[str, Any]) -> str:
        """POST /alertingintegrations/create"""
        return self._id_of(self._post("alertingintegrations/create", body))

    def delete_alerting_integration(self, integration_id: int) -> None:
        """DELETE /alertingintegrations/{id}"""
        self._delete(f"alertingintegrations/{integration_id}")

    def attach_alerting_profile(self, project_id: int, profile_id: int) -> None:
        """POST /alertingprofiles/attach"""
        self._post("alertingprofiles/attach", {"projectId": project_id, "alertingProfileId": profile_id})

    def detach_alerting_profile(self, project_id: int) -> None:
        """POST /alertingprofiles/detach"""
        self._post("alertingprofiles/detach", {"projectId": project_id})

    # ── Kubernetes profiles ──────────────────────────────────────

    def list_kubernetes_profiles(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /kubernetesprofiles/list"""
        return self._page("kubernetesprofiles/list", offset, id=id, organization_id=organization_id)

    def create_kubernetes_profile(self, body: Dict[str, Any]) -> str:
        """POST /kubernetesprofiles/create"""
        return self._id_of(self._post("kubernetesprofiles/create", body))

    def lock_kubernetes_profile(self, profile_id: int, mode: str) -> None:
        """POST /kubernetesprofiles/lockmanager"""
        self._post("kubernetesprofiles/lockmanager", {"id": profile_id, "mode": mode})

    def delete_kubernetes_profile(self, profile_id: int) -> None:
        """DELETE /kubernetesprofiles/{id}"""
        self._delete(f"kubernetesprofiles/{profile_id}")

    # ── Policy (OPA) profiles ────────────────────────────────────

    def list_policy_profiles(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /opaprofiles/list"""
        return self._page("opaprofiles/list", offset, id=id, organization_id=organization_id)

    def create_policy_profile(self, body: Dict[str, Any]) -> str:
        """POST /opaprofiles/create"""
        return self._id_of(self._post("opaprofiles/create", body))

    def update_policy_profile(self, body: Dict[str, Any]) -> None:
        """PUT /opaprofiles/update"""
        self._put("opaprofiles/update", body)

    def lock_policy_profile(self, profile_id: int, mode: str) -> None:
        """POST /opaprofiles/lockmanager"""
        self._post("opaprofiles/lockmanager", {"id": profile_id, "mode": mode})

    def delete_policy_profile(self, profile_id: int) -> None:
        """DELETE /opaprofiles/{id}"""
        self._delete(f"opaprofiles/{profile_id}")

    def enable_gatekeeper(self, project_id: int, profile_id: int) -> None:
        """POST /opaprofiles/enablegatekeeper"""
        self._post("opaprofiles/enablegatekeeper", {"projectId": project_id, "opaProfileId": profile_id})

    def disable_gatekeeper(self, project_id: int) -> None:
        """POST /opaprofiles/disablegatekeeper"""
        self._post("opaprofiles/disablegatekeeper", {"projectId": project_id})

    # ── Standalone profiles ──────────────────────────────────────

    def list_standalone_profiles(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /standaloneprofile/list"""
        return self._page("standaloneprofile/list", offset, id=id, organization_id=organization_id)

    def create_standalone_profile(self, body: Dict[str, Any]) -> str:
        """POST /standaloneprofile/create"""
        return self._id_of(self._post("standaloneprofile/create", body))

    def update_standalone_profile(self, body: Dict[str, Any]) -> None:
        """PUT /standaloneprofile/edit"""
        self._put("standaloneprofile/edit", body)

    def lock_standalone_profile(self, profile_id: int, mode: str) -> None:
        """POST /standaloneprofile/lockmanager"""
        self._post("standaloneprofile/lockmanager", {"id": profile_id, "mode": mode})

    def delete_standalone_profile(self, profile_id: int) -> None:
        """POST /standaloneprofile/delete"""
        self._post("standaloneprofile/delete", {"id": profile_id})

    def list_security_groups(self, profile_id: int) -> List[Dict[str, Any]]:
        """GET /securitygroup/list/{standAloneProfileId}"""
        return list(self._get(f"securitygroup/list/{profile_id}") or [])

    def create_security_group(self, body: Dict[str, Any]) -> str:
        """POST /securitygroup/create"""
        return self._id_of(self._post("securitygroup/create", body))

    def delete_security_group(self, group_id: int) -> None:
        """DELETE /securitygroup/{id}"""
        self._delete(f"securitygroup/{group_id}")

    # ── Billing credentials and rules ────────────────────────────

    def list_billing_credentials(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /opscredentials/list"""
        return self._page("opscredentials/list", offset, id=id, organization_id=organization_id)

    def create_billing_credential(self, body: Dict[str, Any]) -> str:
        """POST /opscredentials/create"""
        return self._id_of(self._post("opscredentials/create", body))

    def lock_billing_credential(self, credential_id: int, mode: str) -> None:
        """POST /opscredentials/lockmanager"""
        self._post("opscredentials/lockmanager", {"id": credential_id, "mode": mode})

    def delete_billing_credential(self, credential_id: int) -> None:
        """DELETE /opscredentials/{id}"""
        self._delete(f"opscredentials/{credential_id}")

    def list_billing_rules(self, offset: int = 0, id: Optional[int] = None) -> Page:
        """GET /prometheus/list"""
        return self._page("prometheus/list", offset, id=id)

    def create_billing_rule(self, body: Dict[str, Any]) -> str:
        """POST /prometheus/create"""
        return self._id_of(self._post("prometheus/create", body))

    def update_billing_rule(self, rule_id: int, body: Dict[str, Any]) -> None:
        """PUT /prometheus/update/{id}"""
        self._put(f"prometheus/update/{rule_id}", body)

    def delete_billing_rule(self, rule_id: int) -> None:
        """DELETE /prometheus/{id}"""
        self._delete(f"prometheus/{rule_id}")

    def bind_billing_rule_organizations(self, rule_id: int, organizations: List[Dict[str, Any]]) -> None:
        """POST /prometheus/bindorganizations"""
        self._post("prometheus/bindorganizations", {"prometheusRuleId": rule_id, "organizations": organizations})

    # ── Showback ─────────────────────────────────────────────────

    def list_showback_credentials(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /showback/credentials/list"""
        return self._page("showback/credentials/list", offset, id=id, organization_id=organization_id)

    def create_showback_credential(self, body: Dict[str, Any]) -> str:
        """POST /showback/credentials/create"""
        return self._id_of(self._post("showback/credentials/create", body))

    def lock_showback_credential(self, credential_id: int, mode: str) -> None:
        """POST /showback/credentials/lockmanager"""
        self._post("showback/credentials/lockmanager", {"id": credential_id, "mode": mode})

    def delete_showback_credential(self, credential_id: int) -> None:
        """POST /showback/credentials/delete"""
        self._post("showback/credentials/delete", {"id": credential_id})

    def list_showback_rules(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /showback/rules/list"""
        return self._page("showback/rules/list", offset, id=id, organization_id=organization_id)

    def create_showback_rule(self, body: Dict[str, Any]) -> str:
        """POST /showback/rules/create"""
        return self._id_of(self._post("showback/rules/create", body))

    def update_showback_rule(self, body: Dict[str, Any]) -> None:
        """PUT /showback/rules/update"""
        self._put("showback/rules/update", body)

    def delete_showback_rule(self, rule_id: int) -> None:
        """POST /showback/rules/delete"""
        self._post("showback/rules/delete", {"id": rule_id})

    # ── Backup ───────────────────────────────────────────────────

    def list_backup_credentials(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /s3credentials"""
        return self._page("s3credentials", offset, id=id, organization_id=organization_id)

    def create_backup_credential(self, body: Dict[str, Any]) -> str:
        """POST /s3credentials/create"""
        return self._id_of(self._post("s3credentials/create", body))

    def update_backup_credential(self, body: Dict[str, Any]) -> None:
        """PUT /s3credentials/update"""
        self._put("s3credentials/update", body)

    def lock_backup_credential(self, credential_id: int, mode: str) -> None:
        """POST /s3credentials/lockmanager"""
        self._post("s3credentials/lockmanager", {"id": credential_id, "mode": mode})

    def delete_backup_credential(self, credential_id: int) -> None:
        """DELETE /s3credentials/{id}"""
        self._delete(f"s3credentials/{credential_id}")

    def enable_backup(self, project_id: int, credential_id: int) -> None:
        """POST /backup/enablebackup"""
        self._post("backup/enablebackup", {"projectId": project_id, "s3CredentialId": credential_id})

    def disable_backup(self, project_id: int, credential_id: int) -> None:
        """POST /backup/disablebackup"""
        self._post("backup/disablebackup", {"projectId": project_id, "s3CredentialId": credential_id})

    def list_backup_schedules(self, project_id: int, offset: int = 0) -> Page:
        """GET /backup/schedules/{projectId}"""
        return self._page(f"backup/schedules/{project_id}", offset)

    def create_backup_schedule(self, body: Dict[str, Any]) -> None:
        """POST /backup/createschedule"""
        self._post("backup/createschedule", body)

    def delete_backup_schedule(self, project_id: int, name: str) -> None:
        """POST /backup/deleteschedule"""
        self._post("backup/deleteschedule", {"projectId": project_id, "name": name})

    # ── Cloud credentials ────────────────────────────────────────

    def list_cloud_credentials(self, provider: str, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /{provider}/list"""
        return self._page(f"{provider}/list", offset, id=id, organization_id=organization_id)

    def create_cloud_credential(self, provider: str, body: Dict[str, Any]) -> str:
        """POST /{provider}/create"""
        return self._id_of(self._post(f"{provider}/create", body))

    def create_cloud_credential_multipart(self, provider: str, fields: Dict[str, Any], filename: str, content: bytes) -> str:
        """POST /{provider}/create (multipart, config file upload)"""
        data = {k: str(v) for k, v in fields.items() if v is not None}
        files = {"config": (filename, content, "application/json")}
        return self._id_of(self._json("POST", f"{provider}/create", data=data, files=files))

    def update_cloud_credential(self, provider: str, body: Dict[str, Any]) -> None:
        """PUT /{provider}/update"""
        self._put(f"{provider}/update", body)

    def update_cloud_hypervisors(self, provider: str, credential_id: int, hypervisors: List[str]) -> None:
        """PUT /{provider}/update-hypervisors"""
        self._put(f"{provider}/update-hypervisors", {"id": credential_id, "hypervisors": hypervisors})

    def list_vsphere_datacenters(self, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        """POST /vsphere/datacenter-list"""
        return list(self._post("vsphere/datacenter-list", body) or [])

    def lock_cloud_credential(self, credential_id: int, mode: str) -> None:
        """POST /cloudcredentials/lockmanager"""
        self._post("cloudcredentials/lockmanager", {"id": credential_id, "mode": mode})

    def delete_cloud_credential(self, credential_id: int) -> None:
        """DELETE /cloudcredentials/delete/{id}"""
        self._delete(f"cloudcredentials/delete/{credential_id}")

    # ── Flavors and images ───────────────────────────────────────

    def list_flavors(self, provider: str, cloud_id: int, offset: int = 0, **filters: Any) -> Page:
        """GET /flavors/{provider}/{cloudId}"""
        return self._page(f"flavors/{provider}/{cloud_id}", offset, **filters)

    def list_project_flavors(self, project_id: int, offset: int = 0) -> Page:
        """GET /flavors/projects/list"""
        return self._page("flavors/projects/list", offset, project_id=project_id)

    def bind_flavors(self, project_id: int, flavors: List[str]) -> None:
        """POST /flavors/bind"""
        self._post("flavors/bind", {"projectId": project_id, "flavors": flavors})

    def unbind_flavors(self, binding_ids: List[int]) -> None:
        """POST /flavors/unbind"""
        self._post("flavors/unbind", {"ids": binding_ids})

    def list_images(self, provider: str, cloud_id: int, offset: int = 0, **filters: Any) -> Page:
        """GET /images/{provider}/{cloudId}"""
        return self._page(f"images/{provider}/{cloud_id}", offset, **filters)

    def list_project_images(self, project_id: int, offset: int = 0) -> Page:
        """GET /images/projects/list"""
        return self._page("images/projects/list", offset, project_id=project_id)

    def bind_images(self, project_id: int, image_ids: List[str]) -> None:
        """POST /images/bind"""
        self._post("images/bind", {"projectId": project_id, "images": image_ids})

    def unbind_images(self, binding_ids: List[int]) -> None:
        """POST /images/unbind"""
        self._post("images/unbind", {"ids": binding_ids})

    # ── Organizations ────────────────────────────────────────────

    def list_organizations(self, offset: int = 0, id: Optional[int] = None) -> Page:
        """GET /organizations/list"""
        return self._page("organizations/list", offset, id=id)

    def create_organization(self, body: Dict[str, Any]) -> str:
        """POST /organizations/create"""
        return self._id_of(self._post("organizations/create", body))

    def update_organization(self, body: Dict[str, Any]) -> None:
        """PUT /organizations/update"""
        self._put("organizations/update", body)

    def delete_organization(self, organization_id: int) -> None:
        """DELETE /organizations/{id}"""
        self._delete(f"organizations/{organization_id}")

    # ── Users ────────────────────────────────────────────────────

    def list_users(self, offset: int = 0, id: Optional[str] = None, organization_id: Optional[int] = None) -> Page:
        """GET /users/list"""
        return self._page("users/list", offset, id=id, organization_id=organization_id)

    def create_user(self, body: Dict[str, Any]) -> str:
        """POST /users/create"""
        return self._id_of(self._post("users/create", body))

    def update_user(self, body: Dict[str, Any]) -> None:
        """PUT /users/update"""
        self._put("users/update", body)

    def delete_user(self, user_id: str) -> None:
        """DELETE /users/{id}"""
        self._delete(f"users/{user_id}")

    def bind_project_users(self, project_id: int, users: List[Dict[str, Any]]) -> None:
        """POST /projects/bindusers"""
        self._post("projects/bindusers", {"projectId": project_id, "users": users})

    # ── Slack ────────────────────────────────────────────────────

    def list_slack_configurations(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /slack/list"""
        return self._page("slack/list", offset, id=id, organization_id=organization_id)

    def create_slack_configuration(self, body: Dict[str, Any]) -> str:
        """POST /slack/create"""
        return self._id_of(self._post("slack/create", body))

    def update_slack_configuration(self, config_id: int, body: Dict[str, Any]) -> None:
        """PUT /slack/update/{id}"""
        self._put(f"slack/update/{config_id}", body)

    def delete_slack_configurations(self, ids: List[int]) -> None:
        """POST /slack/delete-multiple"""
        self._post("slack/delete-multiple", {"ids": ids})

    # ── Kubeconfigs ──────────────────────────────────────────────

    def list_kubeconfigs(self, offset: int = 0, id: Optional[int] = None, project_id: Optional[int] = None) -> Page:
        """GET /kubeconfig"""
        return self._page("kubeconfig", offset, id=id, project_id=project_id)

    def create_kubeconfig(self, body: Dict[str, Any]) -> str:
        """POST /kubeconfig"""
        return self._id_of(self._post("kubeconfig", body))

    def download_kubeconfig(self, project_id: int, kubeconfig_id: int) -> str:
        """POST /kubeconfig/download"""
        payload = self._post("kubeconfig/download", {"projectId": project_id, "id": kubeconfig_id})
        return payload if isinstance(payload, str) else ""

    def delete_kubeconfig(self, kubeconfig_id: int) -> None:
        """POST /kubeconfig/delete"""
        self._post("kubeconfig/delete", {"id": kubeconfig_id})

    # ── Projects ─────────────────────────────────────────────────

    def list_projects(self, offset: int = 0, id: Optional[int] = None, organization_id: Optional[int] = None) -> Page:
        """GET /projects/list"""
        return self._page("projects/list", offset, id=id, organization_id=organization_id)

    def create_project(self, body: Dict[str, Any]) -> str:
        """POST /projects/create"""
        return self._id_of(self._post("projects/create", body))

    def project_details(self, project_id: int) -> Dict[str, Any]:
        """GET /servers/list/{projectId}: project summary plus its servers."""
        payload = self._get(f"servers/list/{project_id}") or {}
        if not isinstance(payload, dict) or not isinstance(payload.get("project"), dict):
            raise TransportError(f"project {project_id}: malformed details payload")
        return payload

    def commit_project(self, project_id: int) -> None:
        """POST /projects/commit/{projectId}"""
        self._post(f"projects/commit/{project_id}")

    def lock_project(self, project_id: int, mode: str) -> None:
        """POST /projects/lockmanager?Id=&Mode="""
        self._post("projects/lockmanager", None, id=project_id, mode=mode)

    def delete_project(self, project_id: int) -> None:
        """POST /projects/delete"""
        self._post("projects/delete", {"projectId": project_id, "isForceDelete": False})

    def extend_project_lifetime(self, project_id: int, expire_at: Optional[str], delete_on_expiration: bool) -> None:
        """POST /projects/extendlifetime"""
        self._post(
            "projects/extendlifetime",
            {"projectId": project_id, "expireAt": expire_at, "deleteOnExpiration": delete_on_expiration},
        )

    def toggle_auto_upgrade(self, project_id: int, enabled: bool) -> None:
        """POST /projects/toggleautoupgrade"""
        self._post("projects/toggleautoupgrade", {"projectId": project_id, "autoUpgrade": enabled})

    def toggle_monitoring(self, project_id: int) -> None:
        """POST /projects/monitoring"""
        self._post("projects/monitoring", {"projectId": project_id})

    def list_project_quotas(self, offset: int = 0, id: Optional[int] = None) -> Page:
        """GET /projectquotas/list"""
        return self._page("projectquotas/list", offset, id=id)

    def update_project_quota(self, body: Dict[str, Any]) -> None:
        """PUT /projectquotas/update"""
        self._put("projectquotas/update", body)

    def create_server(self, body: Dict[str, Any]) -> str:
        """POST /servers/create"""
        return self._id_of(self._post("servers/create", body))

    def delete_servers(self, project_id: int, server_ids: List[int]) -> None:
        """POST /servers/delete"""
        self._post("servers/delete", {"projectId": project_id, "serverIds": server_ids})

    def list_vms(self, project_id: int) -> List[Dict[str, Any]]:
        """GET /standalone/projectdetails/{projectId}"""
        payload = self._get(f"standalone/projectdetails/{project_id}") or {}
        return list(payload.get("data") or []) if isinstance(payload, dict) else list(payload)

    def create_vm(self, body: Dict[str, Any]) -> str:
        """POST /standalone/create"""
        return self._id_of(self._post("standalone/create", body))

    def delete_vms(self, project_id: int, vm_ids: List[int]) -> None:
        """POST /standalone/delete"""
        self._post("standalone/delete", {"projectId": project_id, "vmIds": vm_ids})

    def commit_vms(self, project_id: int) -> None:
        """POST /standalone/commit"""
        self._post("standalone/commit", {"projectId": project_id})
