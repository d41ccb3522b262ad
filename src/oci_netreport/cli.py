from __future__ import annotations

import logging
import sys
from typing import Callable, List, Optional

from .auth.providers import AuthError, require_oci, resolve_auth
from .config import ReportConfig, load_report_config
from .logging import LogConfig, get_logger, log_event, setup_logging
from .oci.provider import NetworkProvider, OciNetworkProvider
from .report import render_report, write_report
from .resolver import resolve_topology, validate_instance_ocid
from .util.console import print_status, render_summary_table
from .util.errors import AuthResolutionError, OCIClientError, as_exit_code

LOG = get_logger(__name__)

ProviderFactory = Callable[[ReportConfig], NetworkProvider]


def build_provider(cfg: ReportConfig) -> NetworkProvider:
    require_oci()
    try:
        ctx = resolve_auth(cfg.auth, cfg.profile, cfg.region)
        provider = OciNetworkProvider.from_auth(ctx)
    except (AuthError, OCIClientError) as e:
        raise AuthResolutionError(str(e)) from e
    log_event(LOG, logging.INFO, "Authentication resolved", step="auth", phase="complete", method=ctx.method)
    return provider


def cmd_report(cfg: ReportConfig, provider_factory: Optional[ProviderFactory] = None) -> int:
    # Shape check comes first so a bad OCID never reaches auth or the network.
    instance_id = validate_instance_ocid(cfg.instance_id)
    provider = (provider_factory or build_provider)(cfg)

    topology = resolve_topology(provider, instance_id)
    text = render_report(topology, report_format=cfg.report_format, ports=cfg.ports)
    path = write_report(cfg.output_path, text)
    log_event(LOG, logging.INFO, "Report written", step="report", phase="complete", path=str(path))

    print_status(path)
    if cfg.summary:
        render_summary_table(topology, path)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    try:
        cfg = load_report_config(argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        sys.exit(cmd_report(cfg))
    except SystemExit:
        raise
    except BrokenPipeError:
        # stdout closed early (e.g. piped to head)
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())  # no-op when already configured
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
