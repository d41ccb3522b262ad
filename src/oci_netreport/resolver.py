from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .logging import get_logger, log_event
from .models import Fetched, Instance, ResolvedVnic, Topology, Vnic
from .oci.provider import NetworkProvider
from .util.errors import InstanceFetchError, InvalidOcidError, NoVnicsError, VnicListError

LOG = get_logger(__name__)

INSTANCE_OCID_RE = re.compile(r"^ocid1\.instance\.")

T = TypeVar("T")


def validate_instance_ocid(instance_id: str) -> str:
    """
    Structural check only; existence is the provider's business.
    """
    value = (instance_id or "").strip()
    if not INSTANCE_OCID_RE.match(value):
        raise InvalidOcidError(f"Provided instance OCID does not look like an instance OCID: '{instance_id}'")
    return value


def _attempt(step: str, ocid: str, fetch: Callable[[], T]) -> Fetched[T]:
    """
    Run one non-fatal fetch, logging a warning and capturing the reason on failure.
    """
    try:
        return Fetched.success(fetch())
    except Exception as e:
        log_event(
            LOG,
            logging.WARNING,
            f"Failed to fetch {step.replace('_', ' ')} {ocid}",
            step=step,
            phase="error",
            ocid=ocid,
            error=str(e),
        )
        return Fetched.failure(str(e))


def ordered_unique(values: Iterable[Optional[str]]) -> List[str]:
    """
    First-seen order, empty values dropped.
    """
    seen: Dict[str, None] = {}
    for value in values:
        if value and value not in seen:
            seen[value] = None
    return list(seen)


def collect_ids(vnics: Iterable[Vnic]) -> Tuple[List[str], List[str]]:
    """
    Distinct subnet ids and distinct NSG ids across all vNICs, first-seen order.
    """
    vnics = list(vnics)
    subnet_ids = ordered_unique(v.subnet_id for v in vnics)
    nsg_ids = ordered_unique(nsg for v in vnics for nsg in v.nsg_ids)
    return subnet_ids, nsg_ids


def resolve_public_ip(provider: NetworkProvider, vnic: Vnic) -> ResolvedVnic:
    """
    Two-tier public address resolution:
      1. the address carried by the vNIC record itself
      2. otherwise a public IP resource bound to the vNIC
    Neither -> absent. The lookup in (2) is never issued when (1) has a value.
    """
    if vnic.public_ip:
        return ResolvedVnic(vnic=vnic, public_ip=vnic.public_ip, public_ip_source="vnic")
    try:
        public_ips = provider.list_public_ips(vnic.id)
    except Exception as e:
        log_event(
            LOG,
            logging.WARNING,
            f"Failed to look up public IP resources for vNIC {vnic.id}",
            step="public_ip",
            phase="error",
            ocid=vnic.id,
            error=str(e),
        )
        return ResolvedVnic(vnic=vnic, public_ip_error=str(e))
    bound = [p for p in public_ips if p.ip_address]
    if not bound:
        return ResolvedVnic(vnic=vnic)
    addresses = [p.ip_address for p in bound]
    if len(bound) > 1:
        # Precedence between several bound addresses is undefined; keep provider order.
        log_event(
            LOG,
            logging.WARNING,
            f"vNIC {vnic.id} has {len(addresses)} public IP resources; reporting the first",
            step="public_ip",
            phase="warning",
            ocid=vnic.id,
            addresses=addresses,
        )
    return ResolvedVnic(
        vnic=vnic,
        public_ip=bound[0].ip_address,
        public_ip_source="public-ip-resource",
        public_ip_lifetime=bound[0].lifetime,
    )


def _fetch_instance(provider: NetworkProvider, instance_id: str) -> Instance:
    try:
        return provider.get_instance(instance_id)
    except Exception as e:
        raise InstanceFetchError(f"cannot fetch instance {instance_id}. Check OCID/region/permissions: {e}") from e


def _fetch_vnics(provider: NetworkProvider, instance: Instance) -> List[Vnic]:
    try:
        vnics = list(provider.list_vnics(instance))
    except Exception as e:
        raise VnicListError(f"failed to list vNICs for instance {instance.id}: {e}") from e
    if not vnics:
        raise NoVnicsError(f"no vNICs found for instance {instance.id}")
    return vnics


def _resolve_subnet(provider: NetworkProvider, topology: Topology, subnet_id: str) -> None:
    subnet = _attempt("subnet", subnet_id, lambda: provider.get_subnet(subnet_id))
    topology.subnets[subnet_id] = subnet
    if not subnet.ok or subnet.value is None:
        return
    sub = subnet.value

    # VCN, gateways, route table and security lists are independent of each other.
    vcn_id = sub.vcn_id
    if vcn_id and vcn_id not in topology.vcns:
        vcn = _attempt("vcn", vcn_id, lambda: provider.get_vcn(vcn_id))
        topology.vcns[vcn_id] = vcn
        # Gateways live in the VCN's compartment, which may differ from the subnet's
        compartment_id = (
            (vcn.value.compartment_id if vcn.ok and vcn.value else None)
            or sub.compartment_id
            or topology.instance.compartment_id
            or ""
        )
        topology.internet_gateways[vcn_id] = _attempt(
            "internet_gateways",
            vcn_id,
            lambda: provider.list_internet_gateways(compartment_id, vcn_id),
        )

    rt_id = sub.route_table_id
    if rt_id and rt_id not in topology.route_tables:
        topology.route_tables[rt_id] = _attempt("route_table", rt_id, lambda: provider.get_route_table(rt_id))

    for sl_id in sub.security_list_ids:
        if sl_id in topology.security_lists:
            continue
        topology.security_lists[sl_id] = _attempt(
            "security_list", sl_id, lambda sl_id=sl_id: provider.get_security_list(sl_id)
        )


def resolve_topology(provider: NetworkProvider, instance_id: str) -> Topology:
    """
    Resolve the network topology of one instance with sequential read-only calls.

    Fatal (raised): malformed OCID (before any call), instance fetch failure,
    vNIC listing failure, zero vNICs. Every other fetch is best effort and
    recorded as a Fetched failure on the returned Topology.
    """
    instance_id = validate_instance_ocid(instance_id)

    instance = _fetch_instance(provider, instance_id)
    vnics = _fetch_vnics(provider, instance)
    log_event(LOG, logging.INFO, f"Found {len(vnics)} vNIC(s)", step="vnics", phase="complete", count=len(vnics))

    resolved = [resolve_public_ip(provider, v) for v in vnics]
    subnet_ids, nsg_ids = collect_ids(vnics)
    topology = Topology(instance=instance, vnics=resolved, subnet_ids=subnet_ids, nsg_ids=nsg_ids)

    for subnet_id in subnet_ids:
        _resolve_subnet(provider, topology, subnet_id)

    for nsg_id in nsg_ids:
        topology.nsgs[nsg_id] = _attempt(
            "nsg", nsg_id, lambda nsg_id=nsg_id: provider.get_network_security_group(nsg_id)
        )

    failures = topology.failures()
    log_event(
        LOG,
        logging.WARNING if failures else logging.INFO,
        f"Topology resolved with {len(failures)} unavailable section(s)",
        step="resolve",
        phase="complete",
        subnets=len(subnet_ids),
        nsgs=len(nsg_ids),
        unavailable=len(failures),
    )
    return topology
