"""Flavor and image lookups."""

from __future__ import annotations

import pytest

from taikun_reconciler.errors import MalformedIdError, ValidationError
from taikun_reconciler.reconcilers.catalog import list_flavors, list_images

GIB = 1073741824


class TestListFlavors:
    def test_filters_and_sorts(self, platform, session) -> None:
        platform.listing("flavors/aws/3", [
            {"name": "m5.xlarge", "cpu": 4, "ram": 16384},
            {"name": "c5.large", "cpu": 2, "ram": 4096},
            {"name": "x1.32xlarge", "cpu": 128, "ram": 1998848},
        ])

        flavors = list_flavors(session, "3", "aws")

        assert flavors == [
            {"name": "c5.large", "cpu": 2, "ram": 4},
            {"name": "m5.xlarge", "cpu": 4, "ram": 16},
        ]
        params = platform.calls[-1].params
        assert params["StartCpu"] == "2"
        assert params["EndCpu"] == "36"
        assert params["StartRam"] == "2048"
        assert params["EndRam"] == "512000"

    def test_ram_bounds_in_gib(self, platform, session) -> None:
        platform.listing("flavors/aws/3", [
            {"name": "small", "cpu": 2, "ram": 2048},
            {"name": "large", "cpu": 2, "ram": 65536},
        ])
        flavors = list_flavors(session, "3", "aws", min_ram=4, max_ram=128)
        assert [f["name"] for f in flavors] == ["large"]

    def test_google_reports_bytes(self, platform, session) -> None:
        platform.listing("flavors/google/3", [{"name": "e2-standard-4", "cpu": 4, "ram": 16 * GIB}])
        assert list_flavors(session, "3", "google") == [{"name": "e2-standard-4", "cpu": 4, "ram": 16}]

    def test_pages_are_followed(self, platform, session) -> None:
        rows = [{"name": f"f{i:02d}", "cpu": 2, "ram": 4096} for i in range(5)]

        def page(call):
            offset = int(call.params.get("Offset", 0))
            return {"data": rows[offset:offset + 2], "totalCount": len(rows)}

        platform.on("GET", "flavors/openstack/3", page)

        flavors = list_flavors(session, "3", "openstack")

        assert len(flavors) == 5
        assert [c.params["Offset"] for c in platform.calls if c.path == "flavors/openstack/3"] == ["0", "2", "4"]

    def test_inverted_bounds(self, session) -> None:
        with pytest.raises(ValidationError) as exc:
            list_flavors(session, "3", "aws", min_cpu=8, max_cpu=2)
        assert exc.value.path == "min_cpu"

    def test_unknown_cloud_type(self, session) -> None:
        with pytest.raises(ValidationError) as exc:
            list_flavors(session, "3", "ibm")
        assert exc.value.path == "cloud_type"

    def test_malformed_credential_id(self, session) -> None:
        with pytest.raises(MalformedIdError):
            list_flavors(session, "three", "aws")


class TestListImages:
    def test_aws_owners_joined(self, platform, session) -> None:
        platform.listing("images/aws/3", [{"id": "ami-1", "name": "ubuntu-22.04"}])

        images = list_images(session, "3", "aws", owners=["099720109477", "amazon"], latest=True)

        assert images == [{"id": "ami-1", "name": "ubuntu-22.04"}]
        params = platform.calls[-1].params
        assert params["Owners"] == "099720109477,amazon"
        assert params["Latest"] == "true"

    def test_filter_not_offered_by_provider(self, session) -> None:
        with pytest.raises(ValidationError) as exc:
            list_images(session, "3", "openstack", owners="amazon")
        assert exc.value.path == "owners"

    def test_azure_needs_full_offer(self, session) -> None:
        with pytest.raises(ValidationError) as exc:
            list_images(session, "3", "azure", publisher="Canonical", offer="ubuntu")
        assert exc.value.path == "publisher"

    def test_google_needs_type(self, session) -> None:
        with pytest.raises(ValidationError) as exc:
            list_images(session, "3", "gcp")
        assert exc.value.path == "type"

    def test_unset_filters_ignored(self, platform, session) -> None:
        platform.listing("images/proxmox/3", [{"id": 900, "name": "debian-12"}])
        assert list_images(session, "3", "proxmox", owners=None) == [{"id": "900", "name": "debian-12"}]
