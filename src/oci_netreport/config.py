from __future__ import annotations

import argparse
import json
import os
import re
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_PORTS: Tuple[int, ...] = (9000, 9443, 8000)
DEFAULT_REPORT_PREFIX = "netreport"
AUTH_METHODS = {"auto", "config", "instance", "resource", "security_token"}
REPORT_FORMATS = {"md", "json"}
ALLOWED_CONFIG_KEYS = {
    "auth",
    "profile",
    "region",
    "format",
    "ports",
    "log_level",
    "json_logs",
    "summary",
}
BOOL_CONFIG_KEYS = {"json_logs", "summary"}
_TRUTHY = frozenset(("1", "true", "yes", "on"))
_FALSY = frozenset(("0", "false", "no", "off"))


@dataclass(frozen=True)
class ReportConfig:
    instance_id: str
    output_path: Path

    report_format: str = "md"
    ports: Tuple[int, ...] = DEFAULT_PORTS
    summary: bool = False

    # Logging
    json_logs: bool = False
    log_level: str = "WARNING"

    # Auth
    auth: str = "auto"  # auto|config|instance|resource|security_token
    profile: Optional[str] = None
    region: Optional[str] = None


def default_output_path(instance_id: str, report_format: str = "md") -> Path:
    """
    Deterministic report path derived from the instance OCID.
    """
    slug = re.sub(r"[^a-z0-9]", "-", instance_id)[:38]
    return Path(".") / f"{DEFAULT_REPORT_PREFIX}-{slug}.{report_format}"


def _read_config_file(path: Path) -> Dict[str, Any]:
    """
    YAML by default; a .json suffix switches to JSON. An empty file is an empty mapping.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    loader = json.loads if path.suffix.lower() == ".json" else yaml.safe_load
    try:
        data = loader(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a mapping at the top level")
    return data


def _env(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError(f"'{key}' expects a boolean, got {value!r}")


def _env_bool(name: str) -> Optional[bool]:
    raw = _env(name)
    return None if raw is None else _as_bool(name, raw)


def parse_ports(value: Any) -> Tuple[int, ...]:
    """
    Accept "9000,9443" or a list of ints/strings; every port must be 1..65535.
    """
    if isinstance(value, str):
        items: List[Any] = [p.strip() for p in value.split(",") if p.strip()]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ValueError("'ports' expects a list of integers or a comma-separated string")
    ports: List[int] = []
    for item in items:
        if isinstance(item, bool):
            raise ValueError(f"Invalid port: {item!r}")
        try:
            port = int(item)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid port: {item!r}") from None
        if not 1 <= port <= 65535:
            raise ValueError(f"Port out of range: {port}")
        ports.append(port)
    if not ports:
        raise ValueError("At least one port is required")
    return tuple(ports)


def _file_layer(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(str(k) for k in data if k not in ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Ignoring unknown config keys: {', '.join(unknown)}")
    layer: Dict[str, Any] = {}
    for key in sorted(ALLOWED_CONFIG_KEYS & set(data)):
        value = data[key]
        if value is None:
            continue
        if key == "ports":
            layer[key] = parse_ports(value)
        elif key in BOOL_CONFIG_KEYS:
            layer[key] = _as_bool(key, value)
        elif isinstance(value, str):
            layer[key] = value
        else:
            raise ValueError(f"'{key}' expects a string, got {value!r}")
    return layer


def _layered(*layers: Dict[str, Any]) -> Dict[str, Any]:
    """
    Later layers win; a None value never masks a lower layer.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        merged.update({k: v for k, v in layer.items() if v is not None})
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oci-netreport",
        description="Render a network topology report for an OCI compute instance",
    )
    parser.add_argument("instance_id", help="Compute instance OCID (ocid1.instance....)")
    parser.add_argument(
        "output_path",
        nargs="?",
        type=Path,
        default=None,
        help="Report path (default: ./netreport-<ocid>.md)",
    )
    parser.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
    parser.add_argument("--format", dest="format", default=None, choices=sorted(REPORT_FORMATS), help="Report format")
    parser.add_argument(
        "--ports",
        default=None,
        help="Comma-separated ports named in the reachability guidance (default 9000,9443,8000)",
    )
    parser.add_argument(
        "--summary",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Print a summary table after writing the report",
    )
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable JSON logs",
    )
    parser.add_argument("--log-level", default=None, help="Log level (WARNING, INFO, DEBUG, ...)")
    parser.add_argument(
        "--auth",
        default=None,
        choices=sorted(AUTH_METHODS),
        help="Auth method (default: auto)",
    )
    parser.add_argument("--profile", default=None, help="OCI config profile (for config auth)")
    parser.add_argument("--region", default=None, help="Region override (e.g. us-ashburn-1)")
    return parser


def _env_layer() -> Dict[str, Any]:
    ports = _env("OCI_NETREPORT_PORTS")
    return {
        "format": _env("OCI_NETREPORT_FORMAT"),
        "ports": parse_ports(ports) if ports else None,
        "summary": _env_bool("OCI_NETREPORT_SUMMARY"),
        "json_logs": _env_bool("OCI_NETREPORT_JSON_LOGS"),
        "log_level": _env("OCI_NETREPORT_LOG_LEVEL"),
        "auth": _env("OCI_NETREPORT_AUTH"),
        # The OCI CLI's own profile variable is honoured as a fallback
        "profile": _env("OCI_NETREPORT_PROFILE") or _env("OCI_CLI_PROFILE"),
        "region": _env("OCI_NETREPORT_REGION"),
    }


def load_report_config(argv: Optional[List[str]] = None) -> ReportConfig:
    """
    Build ReportConfig from defaults, an optional config file, env vars and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    argparse exits with status 2 on a wrong argument count.
    """
    ns = build_parser().parse_args(argv)

    defaults: Dict[str, Any] = {
        "format": "md",
        "ports": DEFAULT_PORTS,
        "summary": False,
        "json_logs": False,
        "log_level": "WARNING",
        "auth": "auto",
    }
    file_layer = _file_layer(_read_config_file(Path(ns.config))) if ns.config else {}
    cli_layer: Dict[str, Any] = {
        "format": ns.format,
        "ports": parse_ports(ns.ports) if ns.ports else None,
        "summary": ns.summary,
        "json_logs": ns.json_logs,
        "log_level": ns.log_level,
        "auth": ns.auth,
        "profile": ns.profile,
        "region": ns.region,
    }
    merged = _layered(defaults, file_layer, _env_layer(), cli_layer)

    auth = str(merged["auth"]).lower()
    if auth not in AUTH_METHODS:
        raise ValueError(f"Auth method must be one of: {', '.join(sorted(AUTH_METHODS))}")
    report_format = str(merged["format"]).lower()
    if report_format not in REPORT_FORMATS:
        raise ValueError(f"Report format must be one of: {', '.join(sorted(REPORT_FORMATS))}")

    instance_id = ns.instance_id.strip()
    return ReportConfig(
        instance_id=instance_id,
        output_path=Path(ns.output_path or default_output_path(instance_id, report_format)),
        report_format=report_format,
        ports=tuple(merged["ports"]),
        summary=merged["summary"],
        json_logs=merged["json_logs"],
        log_level=str(merged["log_level"]).upper(),
        auth=auth,
        profile=merged.get("profile"),
        region=merged.get("region"),
    )
