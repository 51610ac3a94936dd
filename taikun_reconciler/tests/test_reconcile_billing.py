"""Billing, showback and backup reconcilers against the fake platform."""

from __future__ import annotations

import pytest

from taikun_reconciler.errors import MalformedIdError, ValidationError
from taikun_reconciler.models import (
    BackupCredential,
    BackupPolicy,
    BillingCredential,
    BillingRule,
    OrganizationBillingRuleAttachment,
    ShowbackRule,
)
from taikun_reconciler.reconcilers import reconciler_for
from taikun_reconciler.secrets import REDACTED

RULE_ROW = {
    "id": 12,
    "name": "cpu-rule",
    "metricName": "cpu_seconds",
    "price": 1.5,
    "type": 200,
    "operationCredential": {"operationCredentialId": 3},
    "labels": [{"id": 5, "label": "env", "value": "dev"}],
    "boundOrganizations": [{"organizationId": 1, "organizationName": "acme", "ruleDiscountRate": 80}],
}


def _rule(**extra):
    data = {
        "name": "cpu-rule",
        "metric_name": "cpu_seconds",
        "price": 1.5,
        "type": "Sum",
        "billing_credential_id": "3",
        "labels": [{"label": "env", "value": "dev"}],
    }
    data.update(extra)
    return data


class TestBillingCredential:
    ROW = {
        "id": 3,
        "name": "prom",
        "prometheusUrl": "https://prom.example.com",
        "prometheusUsername": "reader",
        "organizationId": 1,
        "isLocked": False,
        "isDefault": True,
    }

    def _desired(self, **extra):
        data = {
            "name": "prom",
            "prometheus_url": "https://prom.example.com",
            "prometheus_username": "reader",
            "prometheus_password": "hunter2",
        }
        data.update(extra)
        return BillingCredential.desired(data)

    def test_lock_only_change(self, platform, session) -> None:
        row = dict(self.ROW)

        def lock(call):
            row["isLocked"] = call.body["mode"] == "lock"

        platform.listing("opscredentials/list", lambda: [row])
        platform.on("POST", "opscredentials/lockmanager", lock)

        result = reconciler_for("billing_credential", session).update("3", self._desired(lock=True))

        assert platform.api_calls(include_reads=False) == ["POST opscredentials/lockmanager"]
        assert result.lock is True
        assert result.prometheus_password == "hunter2"

    def test_url_is_immutable(self, platform, session) -> None:
        platform.listing("opscredentials/list", [self.ROW])
        with pytest.raises(ValidationError) as exc:
            reconciler_for("billing_credential", session).update(
                "3", self._desired(prometheus_url="https://other.example.com")
            )
        assert exc.value.path == "prometheus_url"
        assert platform.api_calls(include_reads=False) == []

    def test_password_never_echoed(self, platform, session) -> None:
        platform.listing("opscredentials/list", [self.ROW])
        observed = reconciler_for("billing_credential", session).read("3", self._desired())
        assert observed.public_dict()["prometheus_password"] == REDACTED


class TestBillingRule:
    def test_observe(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW])
        rule = reconciler_for("billing_rule", session).read("12")
        assert rule.type == "Sum"
        assert rule.billing_credential_id == "3"
        assert rule.labels[0].id == "5"

    def test_labels_replaced_wholesale(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW])
        platform.on("PUT", "prometheus/update/12", None)

        reconciler_for("billing_rule", session).update(
            "12", BillingRule.desired(_rule(labels=[{"label": "env", "value": "prod"}]))
        )

        assert platform.api_calls(include_reads=False) == ["PUT prometheus/update/12"]
        assert platform.bodies("PUT", "prometheus/update/12") == [{
            "name": "cpu-rule",
            "metricName": "cpu_seconds",
            "price": 1.5,
            "type": 200,
            "operationCredentialId": 3,
            "labelsToAdd": [{"label": "env", "value": "prod"}],
            "labelsToDelete": [{"id": 5}],
        }]

    def test_converged_rule_untouched(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW])
        reconciler_for("billing_rule", session).update("12", BillingRule.desired(_rule()))
        assert platform.api_calls(include_reads=False) == []

    def test_create_sends_labels(self, platform, session) -> None:
        platform.on("POST", "prometheus/create", {"id": 12})
        platform.listing("prometheus/list", [RULE_ROW])
        reconciler_for("billing_rule", session).create(BillingRule.desired(_rule()))
        body = platform.bodies("POST", "prometheus/create")[0]
        assert body["labels"] == [{"label": "env", "value": "dev"}]
        assert "organizationId" not in body


class TestRuleAttachment:
    def test_read(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW])
        attachment = reconciler_for("organization_billing_rule_attachment", session).read("1/12")
        assert attachment.id == "1/12"
        assert attachment.discount_rate == 80
        assert attachment.billing_rule_name == "cpu-rule"

    def test_list(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW, dict(RULE_ROW, id=13, name="ram-rule", boundOrganizations=[
            {"organizationId": 2, "organizationName": "beta", "ruleDiscountRate": 50},
        ])])
        reconciler = reconciler_for("organization_billing_rule_attachment", session)
        assert [a.id for a in reconciler.list()] == ["1/12", "2/13"]
        assert [a.id for a in reconciler.list("2")] == ["2/13"]

    def test_create_binds(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW])
        platform.on("POST", "prometheus/bindorganizations", None)

        created = reconciler_for("organization_billing_rule_attachment", session).create(
            OrganizationBillingRuleAttachment.desired({"billing_rule_id": "12", "discount_rate": 80})
        )

        assert created.id == "1/12"
        assert platform.bodies("POST", "prometheus/bindorganizations") == [{
            "prometheusRuleId": 12,
            "organizations": [{"isBound": True, "organizationId": 1, "ruleDiscountRate": 80}],
        }]

    def test_delete_unbinds(self, platform, session) -> None:
        platform.listing("prometheus/list", [RULE_ROW])
        platform.on("POST", "prometheus/bindorganizations", None)
        reconciler_for("organization_billing_rule_attachment", session).delete("1/12")
        assert platform.bodies("POST", "prometheus/bindorganizations") == [
            {"prometheusRuleId": 12, "organizations": [{"isBound": False, "organizationId": 1}]}
        ]

    def test_delete_unbound_is_success(self, platform, session) -> None:
        platform.listing("prometheus/list", [dict(RULE_ROW, boundOrganizations=[])])
        reconciler_for("organization_billing_rule_attachment", session).delete("1/12")
        assert platform.api_calls(include_reads=False) == []

    def test_malformed_composite_id(self, session) -> None:
        with pytest.raises(MalformedIdError):
            reconciler_for("organization_billing_rule_attachment", session).read("12")


class TestShowbackRule:
    def test_update_sends_id_and_labels(self, platform, session) -> None:
        platform.listing("showback/rules/list", [{
            "id": 21, "name": "mem", "metricName": "mem_bytes", "kind": 100, "type": 100,
            "price": 2, "organizationId": 1, "labels": [],
        }])
        platform.on("PUT", "showback/rules/update", None)

        reconciler_for("showback_rule", session).update("21", ShowbackRule.desired({
            "name": "mem", "metric_name": "mem_bytes", "kind": "General", "type": "Count", "price": 2,
            "labels": [{"label": "tier", "value": "gold"}],
        }))

        body = platform.bodies("PUT", "showback/rules/update")[0]
        assert body["id"] == 21
        assert body["kind"] == 100
        assert body["labels"] == [{"label": "tier", "value": "gold"}]


class TestBackupCredential:
    ROW = {
        "id": 9,
        "s3Name": "backups",
        "s3AccessKeyId": "AKIAENV",
        "s3Endpoint": "https://s3.example.com",
        "s3Region": "eu-1",
        "organizationId": 1,
    }

    def test_keys_from_environment(self, platform, session, monkeypatch) -> None:
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAENV")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
        platform.on("POST", "s3credentials/create", {"id": 9})
        platform.listing("s3credentials", [self.ROW])

        created = reconciler_for("backup_credential", session).create(BackupCredential.desired({
            "name": "backups", "s3_endpoint": "https://s3.example.com", "s3_region": "eu-1",
        }))

        body = platform.bodies("POST", "s3credentials/create")[0]
        assert body["s3AccessKeyId"] == "AKIAENV"
        assert body["s3SecretKey"] == "env-secret"
        assert created.s3_secret_access_key == "env-secret"
        assert created.public_dict()["s3_secret_access_key"] == REDACTED

    def test_missing_keys(self, platform, session, monkeypatch) -> None:
        monkeypatch.delenv("AWS_ACCESS_KEY_ID", raising=False)
        monkeypatch.delenv("AWS_SECRET_ACCESS_KEY", raising=False)
        with pytest.raises(ValidationError) as exc:
            reconciler_for("backup_credential", session).create(BackupCredential.desired({
                "name": "backups", "s3_endpoint": "https://s3.example.com", "s3_region": "eu-1",
            }))
        assert exc.value.path == "s3_access_key_id"
        assert platform.api_calls(include_reads=False) == []


class TestBackupPolicy:
    SCHEDULE = {
        "metadataName": "nightly",
        "schedule": "0 2 * * *",
        "ttl": "720h",
        "includedNamespaces": ["default"],
        "phase": "Enabled",
    }

    def _desired(self, **extra):
        data = {"project_id": "5", "name": "nightly", "cron_period": "0 2 * * *", "included_namespaces": ["default"]}
        data.update(extra)
        return BackupPolicy.desired(data)

    def test_read_by_composite_id(self, platform, session) -> None:
        platform.listing("backup/schedules/5", [self.SCHEDULE])
        policy = reconciler_for("backup_policy", session).read("5/nightly")
        assert policy.id == "5/nightly"
        assert policy.project_id == "5"
        assert policy.phase == "Enabled"

    def test_list_walks_projects(self, platform, session) -> None:
        platform.listing("projects/list", [{"id": 5, "organizationId": 1}, {"id": 6, "organizationId": 1}])
        platform.listing("backup/schedules/5", [self.SCHEDULE])
        platform.listing("backup/schedules/6", [dict(self.SCHEDULE, metadataName="weekly")])
        policies = reconciler_for("backup_policy", session).list()
        assert [p.id for p in policies] == ["5/nightly", "6/weekly"]

    def test_create(self, platform, session) -> None:
        platform.on("POST", "backup/createschedule", None)
        platform.listing("backup/schedules/5", [self.SCHEDULE])

        created = reconciler_for("backup_policy", session).create(self._desired())

        assert created.id == "5/nightly"
        assert platform.bodies("POST", "backup/createschedule") == [{
            "projectId": 5,
            "name": "nightly",
            "cronPeriod": "0 2 * * *",
            "retentionPeriod": "720h",
            "includeNamespaces": ["default"],
            "excludeNamespaces": [],
        }]

    def test_not_updatable(self, platform, session) -> None:
        platform.listing("backup/schedules/5", [self.SCHEDULE])
        with pytest.raises(ValidationError) as exc:
            reconciler_for("backup_policy", session).update("5/nightly", self._desired(cron_period="0 3 * * *"))
        assert exc.value.path == "cron_period"

    def test_delete(self, platform, session) -> None:
        platform.on("POST", "backup/deleteschedule", None)
        reconciler_for("backup_policy", session).delete("5/nightly")
        assert platform.bodies("POST", "backup/deleteschedule") == [{"projectId": 5, "name": "nightly"}]
