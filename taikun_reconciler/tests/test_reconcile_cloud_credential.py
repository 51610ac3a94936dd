"""Cloud credential reconciler: provider dispatch, env defaults, uploads."""

from __future__ import annotations

import pytest

from taikun_reconciler.errors import NotFound, ValidationError
from taikun_reconciler.models import AwsCredential
from taikun_reconciler.models.cloud_credential import PROVIDER_PATHS
from taikun_reconciler.reconcilers import reconciler_for
from taikun_reconciler.secrets import REDACTED

AWS_ROW = {
    "id": 3,
    "name": "aws1",
    "region": 6,
    "availabilityZone": "eu-west-1a",
    "organizationId": 1,
    "isLocked": False,
    "isDefault": False,
}

PUBLIC = {
    "name": "vmbr0",
    "gateway": "10.0.0.1",
    "ip_address": "10.0.0.0",
    "net_mask": 24,
    "begin_allocation_range": "10.0.0.10",
    "end_allocation_range": "10.0.0.50",
}
PRIVATE = dict(PUBLIC, name="vmbr1", gateway="10.1.0.1", ip_address="10.1.0.0",
               begin_allocation_range="10.1.0.10", end_allocation_range="10.1.0.50")


def _network_row(network, is_private, name_key):
    return {
        name_key: network["name"],
        "gateway": network["gateway"],
        "ipAddress": network["ip_address"],
        "netMask": network["net_mask"],
        "beginAllocationRange": network["begin_allocation_range"],
        "endAllocationRange": network["end_allocation_range"],
        "isPrivate": is_private,
    }


def _serve_providers(platform, **rows) -> None:
    """Every provider list endpoint, empty unless ``rows`` says otherwise."""
    for cloud_type, path in PROVIDER_PATHS.items():
        platform.listing(f"{path}/list", rows.get(cloud_type, []))


def _aws(**extra):
    data = {
        "cloud_type": "aws",
        "name": "aws1",
        "access_key_id": "AKIA1",
        "secret_access_key": "s3cret",
        "region": "eu-west-1",
        "availability_zone": "eu-west-1a",
    }
    data.update(extra)
    return AwsCredential.desired(data)


class TestRead:
    def test_tries_each_provider(self, platform, session) -> None:
        row = {"id": 3, "name": "os1", "user": "admin", "project": "demo", "tenantId": "t-1",
               "publicNetwork": "ext", "domain": "Default", "region": "RegionOne", "organizationId": 1}
        _serve_providers(platform, openstack=[row])

        observed = reconciler_for("cloud_credential", session).read("3")

        assert observed.cloud_type == "openstack"
        assert observed.project_id == "t-1"
        assert observed.availability_zone is None
        assert platform.api_calls() == ["GET aws/list", "GET azure/list", "GET google/list", "GET openstack/list"]

    def test_known_type_reads_one_provider(self, platform, session) -> None:
        _serve_providers(platform, aws=[AWS_ROW])
        observed = reconciler_for("cloud_credential", session).read("3", _aws())
        assert observed.region == "eu-west-1"
        assert observed.access_key_id == "AKIA1"
        assert observed.public_dict()["secret_access_key"] == REDACTED
        assert platform.api_calls() == ["GET aws/list"]

    def test_missing(self, platform, session) -> None:
        _serve_providers(platform)
        with pytest.raises(NotFound):
            reconciler_for("cloud_credential", session).read("3")

    def test_parse_dispatches_on_cloud_type(self, session) -> None:
        reconciler = reconciler_for("cloud_credential", session)
        assert isinstance(reconciler.parse({"cloud_type": "aws", "name": "aws1", "availability_zone": "a"}), AwsCredential)
        with pytest.raises(ValidationError) as exc:
            reconciler.parse({"cloud_type": "ibm", "name": "x"})
        assert exc.value.path == "cloud_type"


class TestCreate:
    def test_aws_keys_from_environment(self, platform, session, monkeypatch) -> None:
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAENV")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
        platform.on("POST", "aws/create", {"id": 3})
        _serve_providers(platform, aws=[AWS_ROW])

        created = reconciler_for("cloud_credential", session).create(
            AwsCredential.desired({"cloud_type": "aws", "name": "aws1", "availability_zone": "eu-west-1a"})
        )

        assert platform.bodies("POST", "aws/create") == [{
            "name": "aws1",
            "awsAccessKeyId": "AKIAENV",
            "awsSecretAccessKey": "env-secret",
            "awsAvailabilityZone": "eu-west-1a",
            "awsRegion": 6,
            "organizationId": 1,
        }]
        assert created.id == "3"
        assert created.secret_access_key == "env-secret"

    def test_missing_required_names_variable(self, platform, session, monkeypatch) -> None:
        for variable in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION"):
            monkeypatch.delenv(variable, raising=False)
        with pytest.raises(ValidationError) as exc:
            reconciler_for("cloud_credential", session).create(
                AwsCredential.desired({"cloud_type": "aws", "name": "aws1", "availability_zone": "a"})
            )
        assert exc.value.path == "access_key_id"
        assert "AWS_ACCESS_KEY_ID" in exc.value.message
        assert platform.api_calls(include_reads=False) == []

    def test_create_locked(self, platform, session) -> None:
        platform.on("POST", "aws/create", {"id": 3})
        platform.on("POST", "cloudcredentials/lockmanager", None)
        _serve_providers(platform, aws=[dict(AWS_ROW, isLocked=True)])

        created = reconciler_for("cloud_credential", session).create(_aws(lock=True))

        assert created.lock is True
        assert platform.api_calls(include_reads=False) == ["POST aws/create", "POST cloudcredentials/lockmanager"]
        assert platform.bodies("POST", "cloudcredentials/lockmanager") == [{"id": 3, "mode": "lock"}]

    def test_gcp_uploads_config(self, platform, session, tmp_path) -> None:
        config = tmp_path / "sa.json"
        config.write_text('{"type": "service_account"}')
        platform.on("POST", "google/create", {"id": 11})
        _serve_providers(platform, gcp=[{
            "id": 11, "name": "gcp1", "region": "europe-west1", "billingAccountId": "billing-1",
            "folderId": "folder-1", "zones": ["europe-west1-b"], "organizationId": 1,
        }])

        created = reconciler_for("cloud_credential", session).create(reconciler_for("cloud_credential", session).parse({
            "cloud_type": "gcp", "name": "gcp1", "region": "europe-west1", "config_file": str(config),
            "billing_account_id": "billing-1", "folder_id": "folder-1",
        }))

        upload = [c for c in platform.calls if c.path == "google/create"][0]
        assert upload.headers["content-type"].startswith("multipart/form-data")
        assert b"service_account" in upload.body
        assert b"billing-1" in upload.body
        assert created.zones == ["europe-west1-b"]
        assert created.config_file == str(config)

    def test_gcp_needs_project_source(self, platform, session, tmp_path) -> None:
        config = tmp_path / "sa.json"
        config.write_text("{}")
        reconciler = reconciler_for("cloud_credential", session)
        with pytest.raises(ValidationError) as exc:
            reconciler.create(reconciler.parse({
                "cloud_type": "gcp", "name": "gcp1", "region": "europe-west1", "config_file": str(config),
            }))
        assert exc.value.path == "billing_account_id"

    def _vsphere(self, session):
        return reconciler_for("cloud_credential", session).parse({
            "cloud_type": "vsphere",
            "name": "vcenter",
            "api_host": "https://vc.example.com",
            "username": "admin",
            "password": "pw",
            "datacenter": "dc1",
            "resource_pool": "pool",
            "data_store": "ds1",
            "vm_template_name": "ubuntu",
            "hypervisors": ["esx1"],
            "public_network": PUBLIC,
            "private_network": PRIVATE,
        })

    def test_vsphere_resolves_datacenter(self, platform, session) -> None:
        platform.on("POST", "vsphere/datacenter-list", [
            {"name": "dc0", "datacenter": "datacenter-1"},
            {"name": "dc1", "datacenter": "datacenter-3"},
        ])
        platform.on("POST", "vsphere/create", {"id": 21})
        _serve_providers(platform, vsphere=[{
            "id": 21, "name": "vcenter", "url": "https://vc.example.com", "username": "admin",
            "datacenterName": "dc1", "resourcePool": "pool", "datastore": "ds1", "vmTemplateName": "ubuntu",
            "continentName": "eu", "hypervisors": ["esx1"], "organizationId": 1,
            "vsphereNetworks": [_network_row(PUBLIC, False, "name"), _network_row(PRIVATE, True, "name")],
        }])

        created = reconciler_for("cloud_credential", session).create(self._vsphere(session))

        body = platform.bodies("POST", "vsphere/create")[0]
        assert body["datacenterId"] == "datacenter-3"
        assert body["continent"] == "eu"
        assert body["privateNetwork"]["name"] == "vmbr1"
        assert created.private_network.gateway == "10.1.0.1"
        assert created.continent == "Europe"

    def test_vsphere_unknown_datacenter(self, platform, session) -> None:
        platform.on("POST", "vsphere/datacenter-list", [{"name": "dc0", "datacenter": "datacenter-1"}])
        with pytest.raises(ValidationError) as exc:
            reconciler_for("cloud_credential", session).create(self._vsphere(session))
        assert exc.value.path == "datacenter"
        assert platform.api_calls(include_reads=False) == ["POST vsphere/datacenter-list"]


class TestUpdate:
    def test_rename_and_lock(self, platform, session) -> None:
        row = dict(AWS_ROW)

        def update(call):
            row["name"] = call.body["name"]

        def lock(call):
            row["isLocked"] = call.body["mode"] == "lock"

        _serve_providers(platform, aws=lambda: [row])
        platform.on("PUT", "aws/update", update)
        platform.on("POST", "cloudcredentials/lockmanager", lock)

        result = reconciler_for("cloud_credential", session).update("3", _aws(name="aws-2", lock=True))

        assert platform.api_calls(include_reads=False) == ["PUT aws/update", "POST cloudcredentials/lockmanager"]
        assert platform.bodies("PUT", "aws/update") == [{
            "id": 3, "name": "aws-2", "awsAccessKeyId": "AKIA1", "awsSecretAccessKey": "s3cret",
        }]
        assert result.name == "aws-2"
        assert result.lock is True

    def test_converged_locked_credential_untouched(self, platform, session) -> None:
        _serve_providers(platform, aws=[dict(AWS_ROW, isLocked=True)])

        result = reconciler_for("cloud_credential", session).update("3", _aws(lock=True))

        assert platform.api_calls(include_reads=False) == []
        assert result.secret_access_key == "s3cret"

    def test_rotate_secrets_resends_under_unlock(self, platform, session) -> None:
        row = dict(AWS_ROW, isLocked=True)

        def lock(call):
            row["isLocked"] = call.body["mode"] == "lock"

        _serve_providers(platform, aws=lambda: [row])
        platform.on("PUT", "aws/update", None)
        platform.on("POST", "cloudcredentials/lockmanager", lock)

        reconciler_for("cloud_credential", session).update("3", _aws(lock=True), rotate_secrets=True)

        assert platform.api_calls(include_reads=False) == [
            "POST cloudcredentials/lockmanager",
            "PUT aws/update",
            "POST cloudcredentials/lockmanager",
        ]
        assert platform.bodies("PUT", "aws/update")[0]["awsSecretAccessKey"] == "s3cret"

    def test_region_is_immutable(self, platform, session) -> None:
        _serve_providers(platform, aws=[AWS_ROW])
        with pytest.raises(ValidationError) as exc:
            reconciler_for("cloud_credential", session).update("3", _aws(region="us-east-1"))
        assert exc.value.path == "region"
        assert platform.api_calls(include_reads=False) == []

    def test_proxmox_hypervisors(self, platform, session) -> None:
        row = {
            "id": 14, "name": "pve", "url": "https://pve.example.com:8006", "tokenId": "root@pam!t",
            "storage": "local", "vmTemplateName": "ubuntu", "continentName": "eu",
            "hypervisors": [{"name": "pve1"}], "organizationId": 1, "isLocked": False,
            "proxmoxNetworks": [_network_row(PUBLIC, False, "bridge"), _network_row(PRIVATE, True, "bridge")],
        }

        def hypervisors(call):
            row["hypervisors"] = [{"name": h} for h in call.body["hypervisors"]]

        _serve_providers(platform, proxmox=lambda: [row])
        platform.on("PUT", "proxmox/update", None)
        platform.on("PUT", "proxmox/update-hypervisors", hypervisors)

        reconciler = reconciler_for("cloud_credential", session)
        result = reconciler.update("14", reconciler.parse({
            "cloud_type": "proxmox",
            "name": "pve",
            "api_host": "https://pve.example.com:8006",
            "client_id": "root@pam!t",
            "client_secret": "tok",
            "storage": "local",
            "vm_template_name": "ubuntu",
            "hypervisors": ["pve1", "pve2"],
            "public_network": PUBLIC,
            "private_network": PRIVATE,
        }))

        assert platform.api_calls(include_reads=False) == ["PUT proxmox/update", "PUT proxmox/update-hypervisors"]
        assert platform.bodies("PUT", "proxmox/update-hypervisors") == [{"id": 14, "hypervisors": ["pve1", "pve2"]}]
        assert result.hypervisors == ["pve1", "pve2"]

    def test_gcp_not_updatable(self, platform, session) -> None:
        _serve_providers(platform, gcp=[{
            "id": 11, "name": "gcp1", "region": "europe-west1", "billingAccountId": "billing-1",
            "folderId": "folder-1", "organizationId": 1,
        }])
        reconciler = reconciler_for("cloud_credential", session)
        with pytest.raises(ValidationError) as exc:
            reconciler.update("11", reconciler.parse({
                "cloud_type": "gcp", "name": "gcp2", "region": "europe-west1", "config_file": "/tmp/sa.json",
                "billing_account_id": "billing-1", "folder_id": "folder-1",
            }))
        assert exc.value.path == "name"


class TestList:
    def test_every_provider_in_order(self, platform, session) -> None:
        _serve_providers(platform, aws=[AWS_ROW, dict(AWS_ROW, id=4, name="aws2", organizationId=2)])

        everything = reconciler_for("cloud_credential", session).list()
        scoped = reconciler_for("cloud_credential", session).list("2")

        assert [(c.cloud_type, c.id) for c in everything] == [("aws", "3"), ("aws", "4")]
        assert [c.name for c in scoped] == ["aws2"]
        assert {c.path for c in platform.calls if c.params.get("OrganizationId") == "2"} == {
            f"{path}/list" for path in PROVIDER_PATHS.values()
        }


class TestDelete:
    def test_unlocks_first(self, platform, session) -> None:
        _serve_providers(platform, aws=[dict(AWS_ROW, isLocked=True)])
        platform.on("POST", "cloudcredentials/lockmanager", None)
        platform.on("DELETE", "cloudcredentials/delete/3", None)

        reconciler_for("cloud_credential", session).delete("3")

        assert platform.api_calls(include_reads=False) == [
            "POST cloudcredentials/lockmanager",
            "DELETE cloudcredentials/delete/3",
        ]
        assert platform.bodies("POST", "cloudcredentials/lockmanager") == [{"id": 3, "mode": "unlock"}]

    def test_already_gone(self, platform, session) -> None:
        _serve_providers(platform)
        reconciler_for("cloud_credential", session).delete("3")
        assert platform.api_calls(include_reads=False) == []
