from __future__ import annotations

from pathlib import Path

import pytest

from oci_netreport.config import DEFAULT_PORTS, ReportConfig, default_output_path, load_report_config, parse_ports
from oci_netreport.util.errors import ConfigError

INSTANCE_ID = "ocid1.instance.oc1.iad.exampleinstance"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in (
        "OCI_NETREPORT_FORMAT",
        "OCI_NETREPORT_PORTS",
        "OCI_NETREPORT_SUMMARY",
        "OCI_NETREPORT_JSON_LOGS",
        "OCI_NETREPORT_LOG_LEVEL",
        "OCI_NETREPORT_AUTH",
        "OCI_NETREPORT_PROFILE",
        "OCI_NETREPORT_REGION",
        "OCI_CLI_PROFILE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_from_positional_only() -> None:
    cfg = load_report_config([INSTANCE_ID])

    assert isinstance(cfg, ReportConfig)
    assert cfg.instance_id == INSTANCE_ID
    assert cfg.output_path == default_output_path(INSTANCE_ID)
    assert cfg.report_format == "md"
    assert cfg.ports == DEFAULT_PORTS
    assert cfg.auth == "auto"
    assert cfg.summary is False
    assert cfg.log_level == "WARNING"


def test_default_output_path_is_deterministic() -> None:
    path = default_output_path(INSTANCE_ID)

    assert path == default_output_path(INSTANCE_ID)
    assert path.name == "netreport-ocid1-instance-oc1-iad-exampleinstance.md"
    assert default_output_path(INSTANCE_ID, "json").suffix == ".json"


def test_explicit_output_path_wins(tmp_path) -> None:
    cfg = load_report_config([INSTANCE_ID, str(tmp_path / "out.md")])

    assert cfg.output_path == tmp_path / "out.md"


def test_missing_instance_id_exits_with_usage_error(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        load_report_config([])
    assert exc.value.code == 2


def test_too_many_positionals_exit_with_usage_error() -> None:
    with pytest.raises(SystemExit) as exc:
        load_report_config([INSTANCE_ID, "a.md", "extra"])
    assert exc.value.code == 2


def test_env_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("OCI_NETREPORT_FORMAT", "json")
    monkeypatch.setenv("OCI_NETREPORT_PORTS", "22, 443")
    monkeypatch.setenv("OCI_NETREPORT_AUTH", "config")
    monkeypatch.setenv("OCI_CLI_PROFILE", "ops")

    cfg = load_report_config([INSTANCE_ID])

    assert cfg.report_format == "json"
    assert cfg.output_path.suffix == ".json"
    assert cfg.ports == (22, 443)
    assert cfg.auth == "config"
    assert cfg.profile == "ops"


def test_config_file_used_when_env_and_cli_missing(tmp_path) -> None:
    cfg_path = tmp_path / "netreport.yaml"
    cfg_path.write_text("auth: config\nprofile: ops\nports: [80, 443]\nsummary: 'yes'\n", encoding="utf-8")

    cfg = load_report_config([INSTANCE_ID, "--config", str(cfg_path)])

    assert cfg.auth == "config"
    assert cfg.profile == "ops"
    assert cfg.ports == (80, 443)
    assert cfg.summary is True


def test_json_config_file(tmp_path) -> None:
    cfg_path = tmp_path / "netreport.json"
    cfg_path.write_text('{"region": "us-phoenix-1", "format": "json"}', encoding="utf-8")

    cfg = load_report_config([INSTANCE_ID, "--config", str(cfg_path)])

    assert cfg.region == "us-phoenix-1"
    assert cfg.report_format == "json"


def test_cli_overrides_env_and_config(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "netreport.yaml"
    cfg_path.write_text("region: from-config\nlog_level: debug\n", encoding="utf-8")
    monkeypatch.setenv("OCI_NETREPORT_REGION", "from-env")

    cfg = load_report_config([INSTANCE_ID, "--config", str(cfg_path), "--region", "from-cli", "--summary"])

    assert cfg.region == "from-cli"
    assert cfg.log_level == "DEBUG"
    assert cfg.summary is True


def test_env_overrides_config_file(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "netreport.yaml"
    cfg_path.write_text("region: from-config\n", encoding="utf-8")
    monkeypatch.setenv("OCI_NETREPORT_REGION", "from-env")

    cfg = load_report_config([INSTANCE_ID, "--config", str(cfg_path)])

    assert cfg.region == "from-env"


def test_unknown_config_keys_warn(tmp_path) -> None:
    cfg_path = tmp_path / "netreport.yaml"
    cfg_path.write_text("workers: 4\n", encoding="utf-8")

    with pytest.warns(UserWarning, match="workers"):
        load_report_config([INSTANCE_ID, "--config", str(cfg_path)])


def test_missing_config_file_is_a_config_error(tmp_path) -> None:
    with pytest.raises(ConfigError, match="Config file not found"):
        load_report_config([INSTANCE_ID, "--config", str(tmp_path / "absent.yaml")])


def test_non_mapping_config_file_rejected(tmp_path) -> None:
    cfg_path = tmp_path / "netreport.yaml"
    cfg_path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping at the top level"):
        load_report_config([INSTANCE_ID, "--config", str(cfg_path)])


def test_invalid_auth_from_env_rejected(monkeypatch) -> None:
    monkeypatch.setenv("OCI_NETREPORT_AUTH", "password")

    with pytest.raises(ValueError, match="Auth method"):
        load_report_config([INSTANCE_ID])


@pytest.mark.parametrize("value", ["0", "65536", "http", ""])
def test_parse_ports_rejects_invalid(value: str) -> None:
    with pytest.raises(ValueError):
        parse_ports(value)


def test_parse_ports_accepts_lists_and_strings() -> None:
    assert parse_ports("9000, 9443") == (9000, 9443)
    assert parse_ports([22, "80"]) == (22, 80)


def test_output_path_is_a_path_object() -> None:
    cfg = load_report_config([INSTANCE_ID, "report.md"])

    assert isinstance(cfg.output_path, Path)


def test_unparseable_env_boolean_rejected(monkeypatch) -> None:
    monkeypatch.setenv("OCI_NETREPORT_SUMMARY", "maybe")

    with pytest.raises(ValueError, match="expects a boolean"):
        load_report_config([INSTANCE_ID])


def test_empty_config_file_is_allowed(tmp_path) -> None:
    cfg_path = tmp_path / "netreport.yaml"
    cfg_path.write_text("", encoding="utf-8")

    cfg = load_report_config([INSTANCE_ID, "--config", str(cfg_path)])

    assert cfg.auth == "auto"
