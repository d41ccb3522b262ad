from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")

NONE_PLACEHOLDER = "(none)"
UNAVAILABLE_PLACEHOLDER = "(unavailable)"


@dataclass(frozen=True)
class Fetched(Generic[T]):
    """
    Outcome of one best-effort fetch: a value, or the reason it is missing.
    """

    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Fetched[T]":
        return cls(value=value, error=None)

    @classmethod
    def failure(cls, reason: str) -> "Fetched[T]":
        return cls(value=None, error=reason or "unknown error")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Instance:
    id: str
    display_name: Optional[str] = None
    lifecycle_state: Optional[str] = None
    availability_domain: Optional[str] = None
    compartment_id: Optional[str] = None
    shape: Optional[str] = None
    fault_domain: Optional[str] = None


@dataclass(frozen=True)
class Vnic:
    id: str
    display_name: Optional[str] = None
    private_ip: Optional[str] = None
    public_ip: Optional[str] = None
    subnet_id: Optional[str] = None
    nsg_ids: Tuple[str, ...] = ()
    is_primary: Optional[bool] = None
    hostname_label: Optional[str] = None


@dataclass(frozen=True)
class PublicIp:
    id: str
    ip_address: Optional[str] = None
    lifetime: Optional[str] = None  # EPHEMERAL|RESERVED


@dataclass(frozen=True)
class Subnet:
    id: str
    display_name: Optional[str] = None
    cidr_block: Optional[str] = None
    availability_domain: Optional[str] = None  # None for regional subnets
    compartment_id: Optional[str] = None
    vcn_id: Optional[str] = None
    route_table_id: Optional[str] = None
    dhcp_options_id: Optional[str] = None
    security_list_ids: Tuple[str, ...] = ()
    prohibit_public_ip_on_vnic: Optional[bool] = None


@dataclass(frozen=True)
class Vcn:
    id: str
    display_name: Optional[str] = None
    compartment_id: Optional[str] = None
    cidr_block: Optional[str] = None
    cidr_blocks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InternetGateway:
    id: str
    display_name: Optional[str] = None
    is_enabled: Optional[bool] = None


@dataclass(frozen=True)
class RouteRule:
    destination: Optional[str] = None
    destination_type: Optional[str] = None
    network_entity_id: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class RouteTable:
    id: str
    display_name: Optional[str] = None
    route_rules: Tuple[RouteRule, ...] = ()


@dataclass(frozen=True)
class PortRange:
    min: int
    max: int


@dataclass(frozen=True)
class SecurityRule:
    direction: str  # INGRESS|EGRESS
    protocol: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    port_range: Optional[PortRange] = None
    is_stateless: Optional[bool] = None
    description: Optional[str] = None

    @property
    def peer(self) -> Optional[str]:
        """Source for ingress rules, destination for egress rules."""
        if self.direction == "EGRESS":
            return self.destination or self.source
        return self.source or self.destination


@dataclass(frozen=True)
class SecurityList:
    id: str
    display_name: Optional[str] = None
    ingress_rules: Tuple[SecurityRule, ...] = ()
    egress_rules: Tuple[SecurityRule, ...] = ()


@dataclass(frozen=True)
class NetworkSecurityGroup:
    id: str
    display_name: Optional[str] = None
    rules: Tuple[SecurityRule, ...] = ()


@dataclass(frozen=True)
class ResolvedVnic:
    vnic: Vnic
    # Resolved address: the vNIC's own field first, then a bound public IP resource.
    public_ip: Optional[str] = None
    public_ip_source: Optional[str] = None  # vnic|public-ip-resource
    public_ip_lifetime: Optional[str] = None  # EPHEMERAL|RESERVED, public-ip-resource only
    public_ip_error: Optional[str] = None


@dataclass
class Topology:
    """
    Everything resolved for one instance. Entity maps are keyed by OCID and
    filled in first-seen order, so each id is fetched and rendered once.
    """

    instance: Instance
    vnics: List[ResolvedVnic]
    subnet_ids: List[str]
    nsg_ids: List[str]
    subnets: Dict[str, Fetched[Subnet]] = field(default_factory=dict)
    vcns: Dict[str, Fetched[Vcn]] = field(default_factory=dict)
    # Keyed by VCN OCID
    internet_gateways: Dict[str, Fetched[List[InternetGateway]]] = field(default_factory=dict)
    route_tables: Dict[str, Fetched[RouteTable]] = field(default_factory=dict)
    security_lists: Dict[str, Fetched[SecurityList]] = field(default_factory=dict)
    nsgs: Dict[str, Fetched[NetworkSecurityGroup]] = field(default_factory=dict)

    def failures(self) -> List[str]:
        """
        Labels of every entity whose fetch failed.
        """
        out: List[str] = []
        for rv in self.vnics:
            if rv.public_ip_error:
                out.append(f"public ip for vnic {rv.vnic.id}")
        for label, entries in (
            ("subnet", self.subnets),
            ("vcn", self.vcns),
            ("internet gateways for vcn", self.internet_gateways),
            ("route table", self.route_tables),
            ("security list", self.security_lists),
            ("nsg", self.nsgs),
        ):
            for ocid, item in entries.items():
                if not item.ok:
                    out.append(f"{label} {ocid}")
        return out
