"""Tests for value translations and static grammars."""

from __future__ import annotations

import pytest

from taikun_reconciler import convert, validators
from taikun_reconciler.errors import ValidationError


class TestSizes:
    def test_gibi_mebi(self) -> None:
        assert convert.gibi_to_mebi(4) == 4096
        assert convert.mebi_to_gibi(4096) == 4

    def test_gibi_bytes(self) -> None:
        assert convert.gibi_to_bytes(30) == 30 * 1073741824
        assert convert.bytes_to_gibi(32212254720) == 30

    @pytest.mark.parametrize("gib", [0, 1, 2, 7, 30, 128, 1024, 65535])
    def test_gibi_survives_mebi(self, gib: int) -> None:
        assert convert.mebi_to_gibi(convert.gibi_to_mebi(gib)) == gib

    @pytest.mark.parametrize("gib", [0, 1, 2, 7, 30, 128, 1024, 65535])
    def test_gibi_survives_bytes(self, gib: int) -> None:
        assert convert.bytes_to_gibi(convert.gibi_to_bytes(gib)) == gib


class TestDates:
    def test_to_rfc3339(self) -> None:
        assert convert.date_to_rfc3339("24/12/2030") == "2030-12-24T00:00:00Z"

    def test_from_rfc3339(self) -> None:
        assert convert.rfc3339_to_date("2030-12-24T00:00:00Z") == "24/12/2030"
        assert convert.rfc3339_to_date(None) is None
        assert convert.rfc3339_to_date("") == ""

    @pytest.mark.parametrize("date", ["01/01/0001", "29/02/2028", "31/12/9999", "05/06/2030", "10/10/2010"])
    def test_date_survives_rfc3339(self, date: str) -> None:
        assert convert.rfc3339_to_date(convert.date_to_rfc3339(date)) == date


class TestEnums:
    def test_forward_and_reverse(self) -> None:
        assert convert.prometheus_type("Sum") == 200
        assert convert.prometheus_type_name(200) == "Sum"
        assert convert.prometheus_type_name("Count") == "Count"
        assert convert.user_role_name(200) == "Manager"
        assert convert.kubeconfig_role("view") == 4
        assert convert.aws_region("eu-central-1") == 9
        assert convert.aws_region_name(9) == "eu-central-1"

    def test_unknown_value(self) -> None:
        with pytest.raises(ValidationError) as exc:
            convert.slack_type("Loud")
        assert exc.value.path == "type"

    def test_reminder_defaults_to_none(self) -> None:
        assert convert.alerting_reminder_name(999) == "None"

    def test_server_roles(self) -> None:
        assert convert.server_role("kubeworker") == 300
        assert convert.server_role_name("Kubemaster") == "kubemaster"
        assert convert.server_role_name(100) == "bastion"

    def test_lock_mode(self) -> None:
        assert convert.lock_mode(True) == "lock"
        assert convert.lock_mode(False) == "unlock"


class TestLoadBalancer:
    @pytest.mark.parametrize(
        "name, flags", [("Octavia", (True, False)), ("Taikun", (False, True)), ("None", (False, False))]
    )
    def test_round_trip(self, name, flags) -> None:
        assert convert.parse_load_balancer(name) == flags
        assert convert.load_balancer_name(*flags) == name


class TestMisc:
    def test_protocol(self) -> None:
        assert convert.security_group_protocol("tcp") == "TCP"
        assert convert.security_group_protocol("sctp") == "UDP"
        assert convert.security_group_protocol(None) == "UDP"

    def test_continents(self) -> None:
        assert convert.continent_code("Asia") == "as"
        assert convert.continent_name("us") == "America"
        with pytest.raises(ValidationError):
            convert.continent_code("Oceania")


class TestGrammars:
    @pytest.mark.parametrize("repo", ["nginx", "docker.io/library/nginx", "registry.example.com:5000/team/app"])
    def test_docker_repo_ok(self, repo: str) -> None:
        assert validators.check_docker_repo(repo) == repo

    @pytest.mark.parametrize("repo", ["UPPER", "bad repo", "-leading"])
    def test_docker_repo_bad(self, repo: str) -> None:
        with pytest.raises(ValueError):
            validators.check_docker_repo(repo)

    def test_docker_tag(self) -> None:
        assert validators.check_docker_tag("latest") == "latest"
        with pytest.raises(ValueError):
            validators.check_docker_tag(".hidden")
        with pytest.raises(ValueError):
            validators.check_docker_tag("a" * 129)

    def test_ingress_host(self) -> None:
        assert validators.check_ingress_host("*.example.com")
        with pytest.raises(ValueError):
            validators.check_ingress_host("localhost")

    @pytest.mark.parametrize("value", ["720h", "1h30m", "45s", "0h5m"])
    def test_retention_ok(self, value: str) -> None:
        assert validators.check_retention_period(value) == value

    @pytest.mark.parametrize("value", ["", "0h", "10d", "h"])
    def test_retention_bad(self, value: str) -> None:
        with pytest.raises(ValueError):
            validators.check_retention_period(value)

    def test_posix_login(self) -> None:
        assert validators.check_posix_login("deploy_1")
        with pytest.raises(ValueError, match="reserved"):
            validators.check_posix_login("ubuntu")
        with pytest.raises(ValueError):
            validators.check_posix_login("1root")

    @pytest.mark.parametrize("value", ["0 2 * * *", "*/15 * * * 1-5", "0 0 1,15 * 0"])
    def test_cron_ok(self, value: str) -> None:
        assert validators.check_cron(value) == value

    @pytest.mark.parametrize("value", ["* * * *", "60 * * * *", "*/0 * * * *", "5-1 * * * *"])
    def test_cron_bad(self, value: str) -> None:
        with pytest.raises(ValueError):
            validators.check_cron(value)

    def test_date(self) -> None:
        assert validators.check_date("29/02/2028") == "29/02/2028"
        with pytest.raises(ValueError):
            validators.check_date("31/02/2028")
        with pytest.raises(ValueError):
            validators.check_date("2028-02-01")

    def test_cidr(self) -> None:
        assert validators.check_cidr("10.0.0.0/8") == "10.0.0.0/8"
        with pytest.raises(ValueError):
            validators.check_cidr("10.0.0.1")
        with pytest.raises(ValueError):
            validators.check_cidr("10.0.0.0/99")

    def test_http_url(self) -> None:
        assert validators.check_http_url("https://prom.example.com/api")
        with pytest.raises(ValueError):
            validators.check_http_url("ftp://prom.example.com")

    def test_unique(self) -> None:
        assert validators.check_unique(["a", "b"], "name") == ["a", "b"]
        with pytest.raises(ValueError, match="duplicate name"):
            validators.check_unique(["a", "a"], "name")

    def test_int_string(self) -> None:
        assert validators.check_int_string(5) == "5"
        assert validators.check_int_string(None) is None
        with pytest.raises(ValueError):
            validators.check_int_string("five")

    @pytest.mark.parametrize("value", ["--5", "-", "", "²", "٣", "7\n", "1.0"])
    def test_int_string_is_ascii_decimal(self, value: str) -> None:
        with pytest.raises(ValueError):
            validators.check_int_string(value)

    def test_negative_int_string(self) -> None:
        assert validators.check_int_string("-7") == "-7"


class TestTrailingNewline:
    """A trailing newline never satisfies a grammar."""

    @pytest.mark.parametrize("check, value", [
        (validators.check_posix_login, "alice\n"),
        (validators.check_docker_tag, "latest\n"),
        (validators.check_docker_repo, "nginx\n"),
        (validators.check_ingress_host, "app.example.com\n"),
        (validators.check_retention_period, "720h\n"),
        (validators.check_date, "24/12/2030\n"),
        (validators.check_http_url, "https://prom.example.com\n"),
    ])
    def test_rejected(self, check, value: str) -> None:
        with pytest.raises(ValueError):
            check(value)

    @pytest.mark.parametrize("pattern", [
        validators.PROJECT_NAME_RE, validators.ORGANIZATION_NAME_RE, validators.NODE_LABEL_RE,
    ])
    def test_names_rejected(self, pattern) -> None:
        with pytest.raises(ValueError):
            validators.check_match("edge\n", pattern, "name")
        assert validators.check_match("edge", pattern, "name") == "edge"
