from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from oci_netreport.logging import reset_logging
from oci_netreport.models import (
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

INSTANCE_ID = "ocid1.instance.oc1.iad.exampleinstance"
COMPARTMENT_ID = "ocid1.compartment.oc1..examplecompartment"
VCN_ID = "ocid1.vcn.oc1.iad.examplevcn"
RT_ID = "ocid1.routetable.oc1.iad.examplert"


class FakeProvider:
    """
    In-memory NetworkProvider recording every call as (method, key).
    `fail` holds method names or (method, key) pairs that raise.
    """

    def __init__(
        self,
        *,
        instance: Optional[Instance] = None,
        vnics: Optional[List[Vnic]] = None,
        public_ips: Optional[Dict[str, List[PublicIp]]] = None,
        subnets: Optional[Dict[str, Subnet]] = None,
        vcns: Optional[Dict[str, Vcn]] = None,
        internet_gateways: Optional[Dict[str, List[InternetGateway]]] = None,
        route_tables: Optional[Dict[str, RouteTable]] = None,
        security_lists: Optional[Dict[str, SecurityList]] = None,
        nsgs: Optional[Dict[str, NetworkSecurityGroup]] = None,
        fail: Iterable[Any] = (),
    ) -> None:
        self.instance = instance
        self.vnics = vnics if vnics is not None else []
        self.public_ips = public_ips or {}
        self.subnets = subnets or {}
        self.vcns = vcns or {}
        self.internet_gateways = internet_gateways or {}
        self.route_tables = route_tables or {}
        self.security_lists = security_lists or {}
        self.nsgs = nsgs or {}
        self.fail = set(fail)
        self.calls: List[Tuple[str, str]] = []
        self.igw_compartments: List[str] = []

    def _record(self, method: str, key: str) -> None:
        self.calls.append((method, key))
        if method in self.fail or (method, key) in self.fail:
            raise RuntimeError(f"NotAuthorizedOrNotFound: {method} {key}")

    def _get(self, method: str, key: str, table: Dict[str, Any]) -> Any:
        self._record(method, key)
        if key not in table:
            raise KeyError(f"{method}: unknown {key}")
        return table[key]

    def calls_to(self, method: str) -> List[str]:
        return [key for m, key in self.calls if m == method]

    def get_instance(self, instance_id: str) -> Instance:
        self._record("get_instance", instance_id)
        if self.instance is None or self.instance.id != instance_id:
            raise KeyError(instance_id)
        return self.instance

    def list_vnics(self, instance: Instance) -> List[Vnic]:
        self._record("list_vnics", instance.id)
        return list(self.vnics)

    def list_public_ips(self, vnic_id: str) -> List[PublicIp]:
        self._record("list_public_ips", vnic_id)
        return list(self.public_ips.get(vnic_id, []))

    def get_subnet(self, subnet_id: str) -> Subnet:
        return self._get("get_subnet", subnet_id, self.subnets)

    def get_vcn(self, vcn_id: str) -> Vcn:
        return self._get("get_vcn", vcn_id, self.vcns)

    def list_internet_gateways(self, compartment_id: str, vcn_id: str) -> List[InternetGateway]:
        self._record("list_internet_gateways", vcn_id)
        self.igw_compartments.append(compartment_id)
        return list(self.internet_gateways.get(vcn_id, []))

    def get_route_table(self, route_table_id: str) -> RouteTable:
        return self._get("get_route_table", route_table_id, self.route_tables)

    def get_security_list(self, security_list_id: str) -> SecurityList:
        return self._get("get_security_list", security_list_id, self.security_lists)

    def get_network_security_group(self, nsg_id: str) -> NetworkSecurityGroup:
        return self._get("get_network_security_group", nsg_id, self.nsgs)


def make_instance() -> Instance:
    return Instance(
        id=INSTANCE_ID,
        display_name="portainer-1",
        lifecycle_state="RUNNING",
        availability_domain="Uocm:US-ASHBURN-AD-1",
        compartment_id=COMPARTMENT_ID,
        shape="VM.Standard.E4.Flex",
        fault_domain="FAULT-DOMAIN-2",
    )


def make_subnet(subnet_id: str, security_list_ids: Tuple[str, ...] = (), **kwargs: Any) -> Subnet:
    values: Dict[str, Any] = {
        "display_name": f"name-{subnet_id[-1]}",
        "cidr_block": "10.0.0.0/24",
        "compartment_id": COMPARTMENT_ID,
        "vcn_id": VCN_ID,
        "route_table_id": RT_ID,
        "dhcp_options_id": "ocid1.dhcpoptions.oc1.iad.exampledhcp",
        "prohibit_public_ip_on_vnic": False,
    }
    values.update(kwargs)
    return Subnet(id=subnet_id, security_list_ids=security_list_ids, **values)


def make_security_list(sl_id: str, name: str) -> SecurityList:
    return SecurityList(
        id=sl_id,
        display_name=name,
        ingress_rules=(
            SecurityRule(direction="INGRESS", protocol="6", source="0.0.0.0/0", port_range=PortRange(22, 22)),
            SecurityRule(direction="INGRESS", protocol="6", source="0.0.0.0/0", port_range=PortRange(9443, 9443)),
            SecurityRule(direction="INGRESS", protocol="1", source="10.0.0.0/16"),
        ),
        egress_rules=(SecurityRule(direction="EGRESS", protocol="all", destination="0.0.0.0/0"),),
    )


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def scenario_provider() -> FakeProvider:
    """
    Two vNICs sharing one subnet with two security lists; the first vNIC has a
    direct public IP, the second has none and no bound public IP resource.
    """
    subnet_id = "ocid1.subnet.oc1.iad.subnet1"
    sl_ids = ("ocid1.securitylist.oc1.iad.sl1", "ocid1.securitylist.oc1.iad.sl2")
    return FakeProvider(
        instance=make_instance(),
        vnics=[
            Vnic(
                id="ocid1.vnic.oc1.iad.vnic1",
                display_name="primary",
                private_ip="10.0.0.10",
                public_ip="203.0.113.10",
                subnet_id=subnet_id,
                nsg_ids=("ocid1.networksecuritygroup.oc1.iad.nsg1",),
                is_primary=True,
            ),
            Vnic(
                id="ocid1.vnic.oc1.iad.vnic2",
                display_name="secondary",
                private_ip="10.0.0.11",
                subnet_id=subnet_id,
                is_primary=False,
            ),
        ],
        subnets={subnet_id: make_subnet(subnet_id, sl_ids)},
        vcns={VCN_ID: Vcn(id=VCN_ID, display_name="vcn-main", cidr_block="10.0.0.0/16", cidr_blocks=("10.0.0.0/16",))},
        internet_gateways={
            VCN_ID: [InternetGateway(id="ocid1.internetgateway.oc1.iad.igw1", display_name="igw", is_enabled=True)]
        },
        route_tables={
            RT_ID: RouteTable(
                id=RT_ID,
                display_name="default-rt",
                route_rules=(
                    RouteRule(
                        destination="0.0.0.0/0",
                        destination_type="CIDR_BLOCK",
                        network_entity_id="ocid1.internetgateway.oc1.iad.igw1",
                    ),
                ),
            )
        },
        security_lists={
            sl_ids[0]: make_security_list(sl_ids[0], "default-sl"),
            sl_ids[1]: make_security_list(sl_ids[1], "portainer-sl"),
        },
        nsgs={
            "ocid1.networksecuritygroup.oc1.iad.nsg1": NetworkSecurityGroup(
                id="ocid1.networksecuritygroup.oc1.iad.nsg1",
                display_name="web",
                rules=(
                    SecurityRule(direction="INGRESS", protocol="6", source="0.0.0.0/0", port_range=PortRange(9000, 9000)),
                    SecurityRule(direction="EGRESS", protocol="all", destination="0.0.0.0/0"),
                ),
            )
        },
    )
