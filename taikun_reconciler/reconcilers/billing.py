"""Billing and showback: Prometheus credentials, rules and organization attachments."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from taikun_reconciler import convert
from taikun_reconciler.bindings import replace_labels
from taikun_reconciler.client import Page
from taikun_reconciler.errors import NotFound
from taikun_reconciler.ids import format_composite_id, parse_composite_id, parse_id
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.models.billing import (
    BillingCredential,
    BillingRule,
    OrganizationBillingRuleAttachment,
    RuleLabel,
    ShowbackCredential,
    ShowbackRule,
)
from taikun_reconciler.reconcilers.base import Reconciler


def _labels(raw: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [
        {"id": str_id(l.get("id")), "label": l.get("label"), "value": l.get("value")}
        for l in raw or []
    ]


def _label_body(labels: List[RuleLabel]) -> List[Dict[str, str]]:
    return [{"label": l.label, "value": l.value} for l in labels]


# ── Credentials ──────────────────────────────────────────────────

class _PrometheusCredentialReconciler(Reconciler):
    """Create, lock and delete only; every other attribute is immutable."""

    lockable = True

    def _observe(self, raw: Dict[str, Any]):
        return self.model.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("name"),
            "prometheus_url": raw.get("prometheusUrl"),
            "prometheus_username": raw.get("prometheusUsername"),
            "is_default": raw.get("isDefault"),
            "lock": bool(raw.get("isLocked")),
            "organization_id": str_id(raw.get("organizationId")),
            "organization_name": raw.get("organizationName"),
            **audit_fields(raw),
        })

    def _body(self, desired) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "prometheusUrl": desired.prometheus_url,
            "prometheusUsername": desired.prometheus_username,
            "prometheusPassword": desired.prometheus_password,
            "organizationId": int(desired.organization_id),
        }


class BillingCredentialReconciler(_PrometheusCredentialReconciler):
    kind = "billing_credential"
    model = BillingCredential

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_billing_credentials(offset, id=id, organization_id=organization_id)

    def _create(self, desired: BillingCredential) -> str:
        return self.client.create_billing_credential(self._body(desired))

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_billing_credential(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_billing_credential(parse_id(id))


class ShowbackCredentialReconciler(_PrometheusCredentialReconciler):
    kind = "showback_credential"
    model = ShowbackCredential

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_showback_credentials(offset, id=id, organization_id=organization_id)

    def _create(self, desired: ShowbackCredential) -> str:
        return self.client.create_showback_credential(self._body(desired))

    def _set_lock(self, id: str, locked: bool) -> None:
        self.client.lock_showback_credential(parse_id(id), convert.lock_mode(locked))

    def _delete(self, id: str) -> None:
        self.client.delete_showback_credential(parse_id(id))


# ── Billing rule ─────────────────────────────────────────────────

class BillingRuleReconciler(Reconciler[BillingRule]):
    kind = "billing_rule"
    model = BillingRule
    scoped = False

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_billing_rules(offset, id=id)

    def _observe(self, raw: Dict[str, Any]) -> BillingRule:
        credential = raw.get("operationCredential") or {}
        return BillingRule.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("name"),
            "metric_name": raw.get("metricName"),
            "price": raw.get("price"),
            "type": convert.prometheus_type_name(raw.get("type")),
            "billing_credential_id": str_id(credential.get("operationCredentialId")),
            "labels": _labels(raw.get("labels")),
            **audit_fields(raw),
        })

    def _body(self, desired: BillingRule) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "metricName": desired.metric_name,
            "price": desired.price,
            "type": convert.prometheus_type(desired.type),
            "operationCredentialId": parse_id(desired.billing_credential_id, "billing_credential_id"),
        }

    def _create(self, desired: BillingRule) -> str:
        return self.client.create_billing_rule({**self._body(desired), "labels": _label_body(desired.labels)})

    def _update(self, id: str, desired: BillingRule, observed: BillingRule, changed: Set[str]) -> None:
        old = [{"id": int(l.id), "label": l.label, "value": l.value} for l in observed.labels if l.id]
        labels = replace_labels([l.model_dump() for l in desired.labels], old)
        self.client.update_billing_rule(parse_id(id), {**self._body(desired), **labels})

    def _delete(self, id: str) -> None:
        self.client.delete_billing_rule(parse_id(id))


class OrganizationBillingRuleAttachmentReconciler(Reconciler[OrganizationBillingRuleAttachment]):
    """A rule bound to an organization; addressed as ``<organization>/<rule>``."""

    kind = "organization_billing_rule_attachment"
    model = OrganizationBillingRuleAttachment

    def _fetch(self, id: str) -> Dict[str, Any]:
        organization_id, rule_id = parse_composite_id(id)
        rules = self.session.list_all(lambda offset: self.client.list_billing_rules(offset, id=rule_id))
        if len(rules) != 1:
            raise NotFound(f"billing rule {rule_id} not found")
        rule = rules[0]
        for bound in rule.get("boundOrganizations") or []:
            if bound.get("organizationId") == organization_id:
                return {**bound, "ruleId": rule.get("id"), "ruleName": rule.get("name")}
        raise NotFound(f"billing rule {rule_id} is not bound to organization {organization_id}")

    def _list_rows(self, organization_id: Optional[int]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for rule in self.session.list_all(lambda offset: self.client.list_billing_rules(offset)):
            rows.extend(
                {**bound, "ruleId": rule.get("id"), "ruleName": rule.get("name")}
                for bound in rule.get("boundOrganizations") or []
            )
        return rows

    def _observe(self, raw: Dict[str, Any]) -> OrganizationBillingRuleAttachment:
        return OrganizationBillingRuleAttachment.observed({
            "id": format_composite_id(raw.get("organizationId"), raw.get("ruleId")),
            "organization_id": str_id(raw.get("organizationId")),
            "organization_name": raw.get("organizationName"),
            "billing_rule_id": str_id(raw.get("ruleId")),
            "billing_rule_name": raw.get("ruleName"),
            "discount_rate": raw.get("ruleDiscountRate"),
        })

    def _create(self, desired: OrganizationBillingRuleAttachment) -> str:
        organization_id = parse_id(desired.organization_id, "organization_id")
        rule_id = parse_id(desired.billing_rule_id, "billing_rule_id")
        self.client.bind_billing_rule_organizations(
            rule_id,
            [{"isBound": True, "organizationId": organization_id, "ruleDiscountRate": desired.discount_rate}],
        )
        return format_composite_id(organization_id, rule_id)

    def _delete(self, id: str) -> None:
        self._fetch(id)
        organization_id, rule_id = parse_composite_id(id)
        self.client.bind_billing_rule_organizations(
            rule_id, [{"isBound": False, "organizationId": organization_id}]
        )


# ── Showback rule ────────────────────────────────────────────────

class ShowbackRuleReconciler(Reconciler[ShowbackRule]):
    kind = "showback_rule"
    model = ShowbackRule

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_showback_rules(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> ShowbackRule:
        credential_id = raw.get("showbackCredentialId")
        return ShowbackRule.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("name"),
            "metric_name": raw.get("metricName"),
            "kind": convert.showback_kind_name(raw.get("kind")),
            "type": convert.prometheus_type_name(raw.get("type")),
            "price": raw.get("price"),
            "project_alert_limit": raw.get("projectAlertLimit") or 0,
            "global_alert_limit": raw.get("globalAlertLimit") or 0,
            "showback_credential_id": str_id(credential_id) if credential_id else None,
            "labels": _labels(raw.get("labels")),
            "organization_id": str_id(raw.get("organizationId")),
            "organization_name": raw.get("organizationName"),
            **audit_fields(raw),
        })

    def _body(self, desired: ShowbackRule) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "metricName": desired.metric_name,
            "kind": convert.showback_kind(desired.kind),
            "type": convert.prometheus_type(desired.type),
            "price": desired.price,
            "projectAlertLimit": desired.project_alert_limit,
            "globalAlertLimit": desired.global_alert_limit,
            "labels": _label_body(desired.labels),
        }

    def _create(self, desired: ShowbackRule) -> str:
        body = self._body(desired)
        body["organizationId"] = int(desired.organization_id)
        if desired.showback_credential_id:
            body["showbackCredentialId"] = int(desired.showback_credential_id)
        return self.client.create_showback_rule(body)

    def _update(self, id: str, desired: ShowbackRule, observed: ShowbackRule, changed: Set[str]) -> None:
        self.client.update_showback_rule({"id": parse_id(id), **self._body(desired)})

    def _delete(self, id: str) -> None:
        self.client.delete_showback_rule(parse_id(id))
