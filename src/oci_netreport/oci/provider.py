from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol, Tuple, TypeVar, runtime_checkable

from ..auth.providers import AuthContext
from ..models import (
    Instance,
    InternetGateway,
    NetworkSecurityGroup,
    PortRange,
    PublicIp,
    RouteRule,
    RouteTable,
    SecurityList,
    SecurityRule,
    Subnet,
    Vcn,
    Vnic,
)
from ..util.errors import is_not_found, map_oci_error
from ..util.pagination import list_all
from .clients import get_compute_client, get_virtual_network_client

try:
    import oci  # type: ignore
except Exception:  # pragma: no cover - surfaced as ToolMissingError by require_oci()
    oci = None  # type: ignore

R = TypeVar("R")


@runtime_checkable
class NetworkProvider(Protocol):
    """
    Read-only queries the topology resolver needs. Every method either returns
    typed records or raises.
    """

    def get_instance(self, instance_id: str) -> Instance:
        ...

    def list_vnics(self, instance: Instance) -> List[Vnic]:
        ...

    def list_public_ips(self, vnic_id: str) -> List[PublicIp]:
        ...

    def get_subnet(self, subnet_id: str) -> Subnet:
        ...

    def get_vcn(self, vcn_id: str) -> Vcn:
        ...

    def list_internet_gateways(self, compartment_id: str, vcn_id: str) -> List[InternetGateway]:
        ...

    def get_route_table(self, route_table_id: str) -> RouteTable:
        ...

    def get_security_list(self, security_list_id: str) -> SecurityList:
        ...

    def get_network_security_group(self, nsg_id: str) -> NetworkSecurityGroup:
        ...


# -----------------------------
# SDK model -> record converters
# -----------------------------


def _str(obj: Any, attr: str) -> Optional[str]:
    value = getattr(obj, attr, None)
    if value is None:
        return None
    value = str(value)
    return value or None


def _bool(obj: Any, attr: str) -> Optional[bool]:
    value = getattr(obj, attr, None)
    return None if value is None else bool(value)


def _ids(obj: Any, attr: str) -> Tuple[str, ...]:
    return tuple(str(v) for v in (getattr(obj, attr, None) or []) if v)


def instance_from_sdk(obj: Any) -> Instance:
    return Instance(
        id=str(obj.id),
        display_name=_str(obj, "display_name"),
        lifecycle_state=_str(obj, "lifecycle_state"),
        availability_domain=_str(obj, "availability_domain"),
        compartment_id=_str(obj, "compartment_id"),
        shape=_str(obj, "shape"),
        fault_domain=_str(obj, "fault_domain"),
    )


def vnic_from_sdk(obj: Any) -> Vnic:
    return Vnic(
        id=str(obj.id),
        display_name=_str(obj, "display_name"),
        private_ip=_str(obj, "private_ip"),
        public_ip=_str(obj, "public_ip"),
        subnet_id=_str(obj, "subnet_id"),
        nsg_ids=_ids(obj, "nsg_ids"),
        is_primary=_bool(obj, "is_primary"),
        hostname_label=_str(obj, "hostname_label"),
    )


def public_ip_from_sdk(obj: Any) -> PublicIp:
    return PublicIp(id=str(obj.id), ip_address=_str(obj, "ip_address"), lifetime=_str(obj, "lifetime"))


def subnet_from_sdk(obj: Any) -> Subnet:
    return Subnet(
        id=str(obj.id),
        display_name=_str(obj, "display_name"),
        cidr_block=_str(obj, "cidr_block"),
        availability_domain=_str(obj, "availability_domain"),
        compartment_id=_str(obj, "compartment_id"),
        vcn_id=_str(obj, "vcn_id"),
        route_table_id=_str(obj, "route_table_id"),
        dhcp_options_id=_str(obj, "dhcp_options_id"),
        security_list_ids=_ids(obj, "security_list_ids"),
        prohibit_public_ip_on_vnic=_bool(obj, "prohibit_public_ip_on_vnic"),
    )


def vcn_from_sdk(obj: Any) -> Vcn:
    return Vcn(
        id=str(obj.id),
        display_name=_str(obj, "display_name"),
        compartment_id=_str(obj, "compartment_id"),
        cidr_block=_str(obj, "cidr_block"),
        cidr_blocks=_ids(obj, "cidr_blocks"),
    )


def internet_gateway_from_sdk(obj: Any) -> InternetGateway:
    return InternetGateway(id=str(obj.id), display_name=_str(obj, "display_name"), is_enabled=_bool(obj, "is_enabled"))


def route_table_from_sdk(obj: Any) -> RouteTable:
    rules = tuple(
        RouteRule(
            # cidr_block is the deprecated spelling of destination
            destination=_str(r, "destination") or _str(r, "cidr_block"),
            destination_type=_str(r, "destination_type"),
            network_entity_id=_str(r, "network_entity_id"),
            description=_str(r, "description"),
        )
        for r in (getattr(obj, "route_rules", None) or [])
    )
    return RouteTable(id=str(obj.id), display_name=_str(obj, "display_name"), route_rules=rules)


def _port_range(rule: Any) -> Optional[PortRange]:
    # TCP and UDP options share the destination_port_range shape; ICMP has none.
    for attr in ("tcp_options", "udp_options"):
        options = getattr(rule, attr, None)
        if options is None:
            continue
        rng = getattr(options, "destination_port_range", None)
        if rng is None:
            return None
        return PortRange(min=int(rng.min), max=int(rng.max))
    return None


def security_rule_from_sdk(obj: Any, direction: Optional[str] = None) -> SecurityRule:
    return SecurityRule(
        direction=(direction or _str(obj, "direction") or "INGRESS").upper(),
        protocol=_str(obj, "protocol"),
        source=_str(obj, "source"),
        destination=_str(obj, "destination"),
        port_range=_port_range(obj),
        is_stateless=_bool(obj, "is_stateless"),
        description=_str(obj, "description"),
    )


def security_list_from_sdk(obj: Any) -> SecurityList:
    return SecurityList(
        id=str(obj.id),
        display_name=_str(obj, "display_name"),
        ingress_rules=tuple(
            security_rule_from_sdk(r, "INGRESS") for r in (getattr(obj, "ingress_security_rules", None) or [])
        ),
        egress_rules=tuple(
            security_rule_from_sdk(r, "EGRESS") for r in (getattr(obj, "egress_security_rules", None) or [])
        ),
    )


# -----------------------------
# OCI SDK backed provider
# -----------------------------


class OciNetworkProvider:
    """
    NetworkProvider backed by ComputeClient and VirtualNetworkClient.
    """

    def __init__(self, compute: Any, network: Any) -> None:
        self._compute = compute
        self._network = network

    @classmethod
    def from_auth(cls, ctx: AuthContext) -> "OciNetworkProvider":
        return cls(get_compute_client(ctx), get_virtual_network_client(ctx))

    def _call(self, context: str, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            mapped = map_oci_error(e, f"OCI SDK error while {context}")
            if mapped:
                raise mapped from e
            raise

    def get_instance(self, instance_id: str) -> Instance:
        resp = self._call(f"fetching instance {instance_id}", self._compute.get_instance, instance_id)
        return instance_from_sdk(resp.data)

    def list_vnics(self, instance: Instance) -> List[Vnic]:
        """
        vNICs of ATTACHED attachments, in attachment order.
        """
        if not instance.compartment_id:
            raise ValueError(f"Instance {instance.id} has no compartment id")
        attachments = self._call(
            f"listing vNIC attachments for {instance.id}",
            list_all,
            self._compute.list_vnic_attachments,
            instance.compartment_id,
            instance_id=instance.id,
        )
        vnics: List[Vnic] = []
        for att in attachments:
            if _str(att, "lifecycle_state") != "ATTACHED" or not _str(att, "vnic_id"):
                continue
            resp = self._call(f"fetching vNIC {att.vnic_id}", self._network.get_vnic, att.vnic_id)
            vnics.append(vnic_from_sdk(resp.data))
        return vnics

    def list_public_ips(self, vnic_id: str) -> List[PublicIp]:
        """
        Public IP resources (ephemeral or reserved) bound to any private IP of the vNIC.
        """
        private_ips = self._call(
            f"listing private IPs for vNIC {vnic_id}",
            list_all,
            self._network.list_private_ips,
            vnic_id=vnic_id,
        )
        out: List[PublicIp] = []
        for private_ip in private_ips:
            details = oci.core.models.GetPublicIpByPrivateIpIdDetails(private_ip_id=private_ip.id)  # type: ignore[union-attr]
            try:
                resp = self._network.get_public_ip_by_private_ip_id(details)
            except Exception as e:
                if is_not_found(e):
                    continue
                mapped = map_oci_error(e, f"OCI SDK error while fetching public IP for private IP {private_ip.id}")
                if mapped:
                    raise mapped from e
                raise
            out.append(public_ip_from_sdk(resp.data))
        return out

    def get_subnet(self, subnet_id: str) -> Subnet:
        resp = self._call(f"fetching subnet {subnet_id}", self._network.get_subnet, subnet_id)
        return subnet_from_sdk(resp.data)

    def get_vcn(self, vcn_id: str) -> Vcn:
        resp = self._call(f"fetching VCN {vcn_id}", self._network.get_vcn, vcn_id)
        return vcn_from_sdk(resp.data)

    def list_internet_gateways(self, compartment_id: str, vcn_id: str) -> List[InternetGateway]:
        items = self._call(
            f"listing internet gateways for VCN {vcn_id}",
            list_all,
            self._network.list_internet_gateways,
            compartment_id,
            vcn_id=vcn_id,
        )
        return [internet_gateway_from_sdk(it) for it in items]

    def get_route_table(self, route_table_id: str) -> RouteTable:
        resp = self._call(f"fetching route table {route_table_id}", self._network.get_route_table, route_table_id)
        return route_table_from_sdk(resp.data)

    def get_security_list(self, security_list_id: str) -> SecurityList:
        resp = self._call(
            f"fetching security list {security_list_id}", self._network.get_security_list, security_list_id
        )
        return security_list_from_sdk(resp.data)

    def get_network_security_group(self, nsg_id: str) -> NetworkSecurityGroup:
        resp = self._call(f"fetching NSG {nsg_id}", self._network.get_network_security_group, nsg_id)
        rules = self._call(
            f"listing security rules for NSG {nsg_id}",
            list_all,
            self._network.list_network_security_group_security_rules,
            nsg_id,
        )
        return NetworkSecurityGroup(
            id=str(resp.data.id),
            display_name=_str(resp.data, "display_name"),
            rules=tuple(security_rule_from_sdk(r) for r in rules),
        )
