"""Intent parsing, execution and batch exit codes."""

from __future__ import annotations

import pytest

from taikun_reconciler.errors import ValidationError
from taikun_reconciler.intents import (
    Intent,
    Outcome,
    cancel_all,
    execute,
    execute_many,
    exit_code,
    load_intents,
)

PROFILE = {"id": 42, "name": "edge", "isLocked": False, "organizationId": 1}


def _serve_profiles(platform, rows) -> None:
    platform.listing("accessprofiles/list", rows)
    platform.on("GET", "sshusers/list/42", [])
    platform.on("GET", "sshusers/list/43", [])


class TestIntentParsing:
    def test_from_dict(self) -> None:
        intent = Intent.from_dict({"operation": "update", "kind": "access_profile", "id": 42, "desired": {"name": "x"}})
        assert intent.id == "42"
        assert intent.desired == {"name": "x"}
        assert intent.rotate_secrets is False
        rotating = Intent.from_dict({"operation": "update", "kind": "k", "id": 1, "desired": {}, "rotate_secrets": True})
        assert rotating.rotate_secrets is True

    @pytest.mark.parametrize("data,path", [
        ({"operation": "patch", "kind": "access_profile"}, "intents.3.operation"),
        ({"operation": "read"}, "intents.3.kind"),
        ({"operation": "read", "kind": "access_profile"}, "intents.3.id"),
        ({"operation": "create", "kind": "access_profile"}, "intents.3.desired"),
        ("read everything", "intents.3"),
        ({"operation": "update", "kind": "access_profile", "id": "1", "desired": {}, "rotate_secrets": "yes"},
         "intents.3.rotate_secrets"),
    ])
    def test_paths(self, data, path) -> None:
        with pytest.raises(ValidationError) as exc:
            Intent.from_dict(data, 3)
        assert exc.value.path == path

    def test_load_document(self) -> None:
        intents = load_intents({"intents": [
            {"operation": "create", "kind": "access_profile", "desired": {"name": "edge"}},
            {"operation": "delete", "kind": "access_profile", "id": "42"},
        ]})
        assert [i.operation for i in intents] == ["create", "delete"]

    def test_load_bare_list(self) -> None:
        assert len(load_intents([{"operation": "read", "kind": "project", "id": "5"}])) == 1

    def test_load_rejects_other_shapes(self) -> None:
        with pytest.raises(ValidationError) as exc:
            load_intents({"items": []})
        assert exc.value.path == "intents"


class TestExecute:
    def test_read(self, platform, session) -> None:
        _serve_profiles(platform, [PROFILE])
        outcome = execute(session, Intent("read", "access_profile", id="42"))
        assert outcome.ok
        assert outcome.observed["name"] == "edge"
        assert outcome.to_dict()["observed"]["id"] == "42"

    def test_create_reports_new_id(self, platform, session) -> None:
        _serve_profiles(platform, [PROFILE])
        platform.on("POST", "accessprofiles/create", {"id": 42})
        outcome = execute(session, Intent("create", "access_profile", desired={"name": "edge"}))
        assert outcome.id == "42"

    def test_delete_has_no_observed(self, platform, session) -> None:
        platform.on("DELETE", "accessprofiles/42", None)
        _serve_profiles(platform, [])
        outcome = execute(session, Intent("delete", "access_profile", id="42"))
        assert outcome.ok
        assert outcome.observed is None

    def test_not_found(self, platform, session) -> None:
        _serve_profiles(platform, [])
        outcome = execute(session, Intent("read", "access_profile", id="42"))
        assert not outcome.ok
        assert outcome.error["kind"] == "not_found"
        assert outcome.exit_code == 2
        assert "observed" not in outcome.to_dict()

    def test_validation_error_keeps_path(self, session) -> None:
        outcome = execute(session, Intent("create", "access_profile", desired={"name": "ab"}))
        assert outcome.error["kind"] == "validation"
        assert outcome.error["path"] == "name"
        assert outcome.exit_code == 1

    def test_unknown_kind(self, session) -> None:
        outcome = execute(session, Intent("read", "router", id="1"))
        assert outcome.error["path"] == "kind"

    def test_many_keeps_input_order(self, platform, session) -> None:
        _serve_profiles(platform, [PROFILE, dict(PROFILE, id=43, name="core")])
        intents = [
            Intent("read", "access_profile", id="43"),
            Intent("read", "access_profile", id="99"),
            Intent("read", "access_profile", id="42"),
        ]

        outcomes = execute_many(session, intents, parallel=3)

        assert [o.id for o in outcomes] == ["43", "99", "42"]
        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[0].observed["name"] == "core"

    def test_malformed_id_keeps_the_batch(self, platform, session) -> None:
        _serve_profiles(platform, [PROFILE])
        platform.on("DELETE", "accessprofiles/42", None)
        intents = [Intent("read", "access_profile", id="--5"), Intent("delete", "access_profile", id="42")]

        outcomes = execute_many(session, intents, parallel=2)

        assert outcomes[0].error["kind"] == "malformed_id"
        assert outcomes[0].exit_code == 1
        assert outcomes[1].ok
        assert platform.api_calls(include_reads=False) == ["DELETE accessprofiles/42"]

    def test_cancel_all(self, platform, session) -> None:
        _serve_profiles(platform, [PROFILE])
        cancel_all(session)
        outcome = execute(session, Intent("read", "access_profile", id="42"))
        assert outcome.error["kind"] == "cancelled"
        assert outcome.exit_code == 130
        assert platform.calls == []


def _failed(code: int) -> Outcome:
    return Outcome("project", "read", error={"kind": "x", "message": "m"}, exit_code=code)


class TestExitCode:
    def test_all_ok(self) -> None:
        assert exit_code([Outcome("project", "read")]) == 0
        assert exit_code([]) == 0

    @pytest.mark.parametrize("codes,expected", [
        ([1, 2, 4], 4),
        ([1, 3, 4], 3),
        ([1, 2], 2),
        ([1, 1], 1),
        ([130, 1], 1),
        ([130], 130),
    ])
    def test_precedence(self, codes, expected) -> None:
        outcomes = [Outcome("project", "read")] + [_failed(c) for c in codes]
        assert exit_code(outcomes) == expected
