"""Access, alerting, Kubernetes, policy and standalone profiles."""

from __future__ import annotations

from typing import Any, Dict, Optional, Set

from taikun_reconciler import convert
from taikun_reconciler.client import Page
from taikun_reconciler.ids import parse_id
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.models.profiles import (
    AccessProfile,
    AlertingIntegration,
    AlertingProfile,
    KubernetesProfile,
    PolicyProfile,
    SecurityGroup,
    SshUser,
    StandaloneProfile,
)
from taikun_reconciler.reconcilers.base import Reconciler, sync_children


def _envelope(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Attributes every profile row carries."""
    return {
        "id": str_id(raw.get("id")),
        "name": raw.get("name"),
        "lock": bool(raw.get("isLocked")),
        "organization_id": str_id(raw.get("organizationId")),
        "organization_name": raw.get("organizationName"),
        **audit_fields(raw),
    }


def _int_or_none(value: Optional[str]) -> Optional[int]:
    return None if value is None else int(value)


# ── Access profile ───────────────────────────────────────────────

class AccessProfileReconciler(Reconciler[AccessProfile]):
    kind = "access_profile"
    model = AccessProfile
    lockable = True

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_access_profiles(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> AccessProfile:
        users = self.client.list_ssh_users(raw["id"])
        return AccessProfile.observed({
            **_envelope(raw),
            "http_proxy": raw.get("httpProxy") or None,
            "dns_servers": [s.get("address") for s in raw.get("dnsServers") or []],
            "ntp_servers": [s.get("address") for s in raw.get("ntpServers") or []],
            "ssh_users": [
                {"id": str_id(u.get("id")), "name": u.get("name"), "public_key": u.get("sshPublicKey")}
                for u in users
            ],
        })

    def _body(self, desired: AccessProfile) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "organizationId": int(desired.organization_id),
            "httpProxy": desired.http_proxy,
            "dnsServers": [{"address": a} for a in desired.dns_servers],
            "ntpServers": [{"address": a} for a in desired.ntp_servers],
        }

    def _create(self, desired: AccessProfile) -> str:
        body = self._body(desired)
        body["sshUsers"] = [{"name": u.name, "sshPublicKey": u.public_key} for u in desired.ssh_users]
        return self.client.create_access_profile(body)

    def _update(self, id: str, desired: AccessProfile, observed: AccessProfile, changed: Set[str]) -> None:
        profile_id = parse_id(id)
        if changed - {"ssh_users"}:
            self.client.update_access_profile(profile_id, self._body(desired))
        if "ssh_users" in changed:
            sync_children(
                desired.ssh_users,
                observed.ssh_users,
                create=lambda u: self._create_ssh_user(profile_id, u),
                delete=lambda u: self.client.delete_ssh_user(int(u.id)),
                what=f"access_profile {id} ssh_users",
            )

    def _create_ssh_user(self, profile_id: int, user: SshUser) -> None:
        self.client.create_ssh_user(
            {"accessProfileId": profile_id, "name": user.name, "sshPublicKey": user.public_key}
        )

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_access_profile(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_access_profile(parse_id(id))


# ── Alerting profile ─────────────────────────────────────────────

class AlertingProfileReconciler(Reconciler[AlertingProfile]):
    kind = "alerting_profile"
    model = AlertingProfile
    lockable = True

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_alerting_profiles(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> AlertingProfile:
        integrations = self.client.list_alerting_integrations(raw["id"])
        slack_id = raw.get("slackConfigurationId")
        return AlertingProfile.observed({
            **_envelope(raw),
            "reminder": convert.alerting_reminder_name(raw.get("reminder")),
            "slack_configuration_id": str_id(slack_id) if slack_id else None,
            "slack_configuration_name": raw.get("slackConfigurationName"),
            "emails": [e.get("email") for e in raw.get("emails") or []],
            "integrations": [
                {
                    "id": str_id(i.get("id")),
                    "type": convert.alerting_integration_name(i.get("alertingIntegrationType")),
                    "url": i.get("url"),
                    "token": i.get("token") or None,
                }
                for i in integrations
            ],
        })

    def _integration_body(self, integration: AlertingIntegration) -> Dict[str, Any]:
        return {
            "alertingIntegrationType": convert.alerting_integration(integration.type),
            "url": integration.url,
            "token": integration.token,
        }

    def _create(self, desired: AlertingProfile) -> str:
        return self.client.create_alerting_profile({
            "name": desired.name,
            "organizationId": int(desired.organization_id),
            "reminder": convert.alerting_reminder(desired.reminder),
            "slackConfigurationId": _int_or_none(desired.slack_configuration_id),
            "emails": [{"email": e} for e in desired.emails],
            "alertingIntegrations": [self._integration_body(i) for i in desired.integrations],
        })

    def _update(self, id: str, desired: AlertingProfile, observed: AlertingProfile, changed: Set[str]) -> None:
        profile_id = parse_id(id)
        if changed & {"name", "reminder", "slack_configuration_id", "organization_id"}:
            self.client.update_alerting_profile({
                "id": profile_id,
                "name": desired.name,
                "organizationId": int(desired.organization_id),
                "reminder": convert.alerting_reminder(desired.reminder),
                "slackConfigurationId": _int_or_none(desired.slack_configuration_id),
            })
        if "emails" in changed:
            self.client.assign_alerting_emails(profile_id, desired.emails)
        if "integrations" in changed:
            sync_children(
                desired.integrations,
                observed.integrations,
                create=lambda i: self.client.create_alerting_integration(
                    {"alertingProfileId": profile_id, **self._integration_body(i)}
                ),
                delete=lambda i: self.client.delete_alerting_integration(int(i.id)),
                what=f"alerting_profile {id} integrations",
            )

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_alerting_profile(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_alerting_profile(parse_id(id))


# ── Kubernetes profile ───────────────────────────────────────────

class KubernetesProfileReconciler(Reconciler[KubernetesProfile]):
    kind = "kubernetes_profile"
    model = KubernetesProfile
    lockable = True

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_kubernetes_profiles(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> KubernetesProfile:
        return KubernetesProfile.observed({
            **_envelope(raw),
            "load_balancing_solution": convert.load_balancer_name(
                bool(raw.get("octaviaEnabled")), bool(raw.get("taikunLBEnabled"))
            ),
            "bastion_proxy": bool(raw.get("exposeNodePortOnBastion")),
            "schedule_on_master": bool(raw.get("allowSchedulingOnMaster")),
            "unique_cluster_name": bool(raw.get("uniqueClusterName")),
            "nvidia_gpu_operator": bool(raw.get("nvidiaGpuOperatorEnabled")),
            "cni": raw.get("cni"),
        })

    def _create(self, desired: KubernetesProfile) -> str:
        octavia, taikun_lb = convert.parse_load_balancer(desired.load_balancing_solution)
        return self.client.create_kubernetes_profile({
            "name": desired.name,
            "organizationId": int(desired.organization_id),
            "octaviaEnabled": octavia,
            "taikunLBEnabled": taikun_lb,
            "exposeNodePortOnBastion": desired.bastion_proxy,
            "allowSchedulingOnMaster": desired.schedule_on_master,
            "uniqueClusterName": desired.unique_cluster_name,
            "nvidiaGpuOperatorEnabled": desired.nvidia_gpu_operator,
        })

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_kubernetes_profile(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_kubernetes_profile(parse_id(id))


# ── Policy (OPA) profile ─────────────────────────────────────────

class PolicyProfileReconciler(Reconciler[PolicyProfile]):
    kind = "policy_profile"
    model = PolicyProfile
    lockable = True

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_policy_profiles(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> PolicyProfile:
        return PolicyProfile.observed({
            **_envelope(raw),
            "forbid_node_port": bool(raw.get("forbidNodePort")),
            "forbid_http_ingress": bool(raw.get("forbidHttpIngress")),
            "require_probe": bool(raw.get("requireProbe")),
            "unique_ingress": bool(raw.get("uniqueIngresses")),
            "unique_service_selector": bool(raw.get("uniqueServiceSelector")),
            "allowed_repos": sorted(raw.get("allowedRepo") or []),
            "forbidden_tags": sorted(raw.get("forbidSpecificTags") or []),
            "ingress_whitelist": sorted(raw.get("ingressWhitelist") or []),
            "is_default": raw.get("isDefault"),
        })

    def _body(self, desired: PolicyProfile) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "organizationId": int(desired.organization_id),
            "forbidNodePort": desired.forbid_node_port,
            "forbidHttpIngress": desired.forbid_http_ingress,
            "requireProbe": desired.require_probe,
            "uniqueIngresses": desired.unique_ingress,
            "uniqueServiceSelector": desired.unique_service_selector,
            "allowedRepo": list(desired.allowed_repos),
            "forbidSpecificTags": list(desired.forbidden_tags),
            "ingressWhitelist": list(desired.ingress_whitelist),
        }

    def _create(self, desired: PolicyProfile) -> str:
        return self.client.create_policy_profile(self._body(desired))

    def _update(self, id: str, desired: PolicyProfile, observed: PolicyProfile, changed: Set[str]) -> None:
        self.client.update_policy_profile({"id": parse_id(id), **self._body(desired)})

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_policy_profile(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_policy_profile(parse_id(id))


# ── Standalone profile ───────────────────────────────────────────

def _port(value: Any) -> Optional[int]:
    if value is None or value == -1:
        return None
    return int(value)


class StandaloneProfileReconciler(Reconciler[StandaloneProfile]):
    kind = "standalone_profile"
    model = StandaloneProfile
    lockable = True

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_standalone_profiles(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> StandaloneProfile:
        groups = self.client.list_security_groups(raw["id"])
        return StandaloneProfile.observed({
            **_envelope(raw),
            "public_key": raw.get("publicKey"),
            "security_groups": [
                {
                    "id": str_id(g.get("id")),
                    "name": g.get("name"),
                    "cidr": g.get("remoteIpPrefix"),
                    "ip_protocol": convert.security_group_protocol(g.get("protocol")),
                    "from_port": _port(g.get("portMinRange")),
                    "to_port": _port(g.get("portMaxRange")),
                }
                for g in groups
            ],
        })

    @staticmethod
    def _group_body(group: SecurityGroup) -> Dict[str, Any]:
        return {
            "name": group.name,
            "remoteIpPrefix": group.cidr,
            "protocol": group.ip_protocol,
            "portMinRange": -1 if group.from_port is None else group.from_port,
            "portMaxRange": -1 if group.to_port is None else group.to_port,
        }

    def _create(self, desired: StandaloneProfile) -> str:
        return self.client.create_standalone_profile({
            "name": desired.name,
            "publicKey": desired.public_key,
            "organizationId": int(desired.organization_id),
            "securityGroups": [self._group_body(g) for g in desired.security_groups],
        })

    def _update(self, id: str, desired: StandaloneProfile, observed: StandaloneProfile, changed: Set[str]) -> None:
        profile_id = parse_id(id)
        if "name" in changed:
            self.client.update_standalone_profile({"id": profile_id, "name": desired.name})
        if "security_groups" in changed:
            sync_children(
                desired.security_groups,
                observed.security_groups,
                create=lambda g: self.client.create_security_group(
                    {"standAloneProfileId": profile_id, **self._group_body(g)}
                ),
                delete=lambda g: self.client.delete_security_group(int(g.id)),
                what=f"standalone_profile {id} security_groups",
            )

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_standalone_profile(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_standalone_profile(parse_id(id))
