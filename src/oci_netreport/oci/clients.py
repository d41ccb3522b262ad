from __future__ import annotations

from typing import Any

from ..auth.providers import AuthContext, make_client, require_oci

try:
    import oci  # type: ignore
except Exception:  # pragma: no cover - surfaced as ToolMissingError by require_oci()
    oci = None  # type: ignore


def get_compute_client(ctx: AuthContext) -> Any:
    """
    Create ComputeClient (instances, vNIC attachments) with the SDK retry strategy.
    """
    require_oci()
    return make_client(oci.core.ComputeClient, ctx)  # type: ignore[attr-defined]


def get_virtual_network_client(ctx: AuthContext) -> Any:
    """
    Create VirtualNetworkClient (vNICs, subnets, VCNs, gateways, route tables,
    security lists, NSGs, public IPs).
    """
    require_oci()
    return make_client(oci.core.VirtualNetworkClient, ctx)  # type: ignore[attr-defined]
