from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from ..models import NONE_PLACEHOLDER, Topology


def print_status(path: Path, *, console: Optional[Console] = None) -> None:
    # Plain line on stdout; no markup so paths containing [] print verbatim.
    (console or Console()).print(f"Report written to {path}", markup=False, highlight=False, soft_wrap=True)


def render_summary_table(topology: Topology, path: Path, *, console: Optional[Console] = None) -> None:
    table = Table(title="Network Report Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Instance", topology.instance.display_name or topology.instance.id)
    table.add_row("vNICs", str(len(topology.vnics)))
    table.add_row("Subnets", str(len(topology.subnet_ids)))
    table.add_row("Security lists", str(len(topology.security_lists)))
    table.add_row("NSGs", str(len(topology.nsg_ids)))
    public_ips = [rv.public_ip for rv in topology.vnics if rv.public_ip]
    table.add_row("Public IPs", ", ".join(public_ips) if public_ips else NONE_PLACEHOLDER)
    table.add_row("Unavailable sections", str(len(topology.failures())))
    table.add_row("Report", str(path))
    (console or Console()).print(table)
