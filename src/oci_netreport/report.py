from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import DEFAULT_PORTS
from .models import (
    NONE_PLACEHOLDER,
    UNAVAILABLE_PLACEHOLDER,
    Fetched,
    PortRange,
    ResolvedVnic,
    RouteRule,
    SecurityList,
    SecurityRule,
    Topology,
)
from .util.errors import ReportWriteError
from .util.serialization import stable_json_dumps, to_jsonable

# IANA protocol numbers used by OCI security rules
PROTOCOL_NAMES = {
    "1": "ICMP",
    "6": "TCP",
    "17": "UDP",
    "58": "ICMPv6",
}


def _v(value: Any) -> str:
    """
    Render one field; absent values become the (none) placeholder.
    """
    if value is None:
        return NONE_PLACEHOLDER
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text or NONE_PLACEHOLDER


def _join(values: Iterable[str]) -> str:
    items = [v for v in values if v]
    return ", ".join(items) if items else NONE_PLACEHOLDER


def _protocol(value: Optional[str]) -> str:
    if not value:
        return NONE_PLACEHOLDER
    name = PROTOCOL_NAMES.get(value)
    return f"{value} ({name})" if name else value


def _ports(port_range: Optional[PortRange]) -> str:
    if port_range is None:
        return "(all)"
    return f"{port_range.min}-{port_range.max}"


def _public_ip(rv: ResolvedVnic) -> str:
    # Lifetime is only known when the address came from a public IP resource
    if rv.public_ip and rv.public_ip_lifetime:
        return f"{rv.public_ip} ({rv.public_ip_lifetime})"
    return _v(rv.public_ip)


def _route_rule_line(rule: RouteRule) -> str:
    line = (
        f"- destination: {_v(rule.destination)}, destination_type: {_v(rule.destination_type)}, "
        f"network_entity_id: {_v(rule.network_entity_id)}"
    )
    if rule.description:
        line += f", description: {rule.description}"
    return line


def _rule_line(rule: SecurityRule, *, with_direction: bool) -> str:
    parts: List[str] = []
    if with_direction:
        parts.append(f"direction: {_v(rule.direction)}")
    parts.append(f"protocol: {_protocol(rule.protocol)}")
    if with_direction:
        parts.append(f"ports: {_ports(rule.port_range)}")
        parts.append(f"source/destination: {_v(rule.peer)}")
    else:
        peer_label = "destination" if rule.direction == "EGRESS" else "source"
        parts.append(f"{peer_label}: {_v(rule.peer)}")
        parts.append(f"ports: {_ports(rule.port_range)}")
    parts.append(f"stateless: {_v(rule.is_stateless)}")
    if rule.description:
        parts.append(f"description: {rule.description}")
    return ", ".join(parts)


def _rule_lines(rules: Sequence[SecurityRule], *, indent: str, with_direction: bool = False) -> List[str]:
    if not rules:
        return [f"{indent}- {NONE_PLACEHOLDER}"]
    # Provider order is preserved; it may encode priority.
    return [f"{indent}- {_rule_line(r, with_direction=with_direction)}" for r in rules]


def _security_list_lines(sl_id: str, fetched: Optional[Fetched[SecurityList]], seen_in: Optional[str]) -> List[str]:
    if seen_in is not None:
        return [f"- Security List: {sl_id} (listed under subnet {seen_in})"]
    if fetched is None or not fetched.ok or fetched.value is None:
        return [f"- Security List: {sl_id} {UNAVAILABLE_PLACEHOLDER}"]
    sl = fetched.value
    lines = [f"- Security List: {sl_id} ({_v(sl.display_name)})", "  - Ingress rules:"]
    lines.extend(_rule_lines(sl.ingress_rules, indent="    "))
    lines.append("  - Egress rules:")
    lines.extend(_rule_lines(sl.egress_rules, indent="    "))
    return lines


def _instance_lines(topology: Topology) -> List[str]:
    inst = topology.instance
    return [
        f"# OCI Network Report for instance: {_v(inst.display_name)}",
        "",
        f"- Instance OCID: {inst.id}",
        f"- Display name: {_v(inst.display_name)}",
        f"- Lifecycle state: {_v(inst.lifecycle_state)}",
        f"- Availability Domain: {_v(inst.availability_domain)}",
        f"- Fault Domain: {_v(inst.fault_domain)}",
        f"- Shape: {_v(inst.shape)}",
        f"- Compartment OCID: {_v(inst.compartment_id)}",
        "",
    ]


def _vnic_lines(topology: Topology) -> List[str]:
    lines = ["## vNICs", ""]
    for rv in topology.vnics:
        vnic = rv.vnic
        lines.extend(
            [
                f"- vNIC OCID: {vnic.id}",
                f"  - VNIC display-name: {_v(vnic.display_name)}",
                f"  - Primary: {_v(vnic.is_primary)}",
                f"  - Hostname label: {_v(vnic.hostname_label)}",
                f"  - Private IP: {_v(vnic.private_ip)}",
                f"  - Public IP: {_public_ip(rv)}",
                f"  - Subnet OCID: {_v(vnic.subnet_id)}",
                f"  - NSG IDs: {_join(vnic.nsg_ids)}",
                "",
            ]
        )
    return lines


def _subnet_lines(topology: Topology, subnet_id: str, rendered: Dict[str, str]) -> List[str]:
    lines = [f"## Subnet: {subnet_id}", ""]
    fetched = topology.subnets.get(subnet_id)
    if fetched is None or not fetched.ok or fetched.value is None:
        lines.extend([f"- {UNAVAILABLE_PLACEHOLDER}", ""])
        return lines
    sub = fetched.value
    if sub.prohibit_public_ip_on_vnic is None:
        public_access = NONE_PLACEHOLDER
    else:
        public_access = "prohibited (private subnet)" if sub.prohibit_public_ip_on_vnic else "allowed (public subnet)"
    lines.extend(
        [
            f"- Name: {_v(sub.display_name)}",
            f"- CIDR: {_v(sub.cidr_block)}",
            f"- Availability Domain: {_v(sub.availability_domain)}",
            f"- VCN OCID: {_v(sub.vcn_id)}",
            f"- Route Table OCID: {_v(sub.route_table_id)}",
            f"- DHCP Options OCID: {_v(sub.dhcp_options_id)}",
            f"- Security List IDs: {_join(sub.security_list_ids)}",
            f"- Public IPs on vNICs: {public_access}",
            "",
        ]
    )

    # VCN summary + internet gateways, described once per report
    if not sub.vcn_id:
        lines.extend(["### VCN", "", f"- {NONE_PLACEHOLDER}", ""])
    elif sub.vcn_id in rendered:
        lines.extend([f"### VCN: {sub.vcn_id}", "", f"- (listed under subnet {rendered[sub.vcn_id]})", ""])
    else:
        rendered[sub.vcn_id] = subnet_id
        lines.extend([f"### VCN: {sub.vcn_id}", ""])
        vcn = topology.vcns.get(sub.vcn_id)
        if vcn is None or not vcn.ok or vcn.value is None:
            lines.append(f"- {UNAVAILABLE_PLACEHOLDER}")
        else:
            lines.append(f"- Name: {_v(vcn.value.display_name)}")
            lines.append(f"- CIDR: {_v(vcn.value.cidr_block)}")
            lines.append(f"- CIDR blocks: {_join(vcn.value.cidr_blocks)}")
        lines.append("")

        lines.append("#### Internet Gateways")
        igws = topology.internet_gateways.get(sub.vcn_id)
        if igws is None or not igws.ok or igws.value is None:
            lines.append(f"- {UNAVAILABLE_PLACEHOLDER}")
        elif not igws.value:
            lines.append(f"- {NONE_PLACEHOLDER}")
        else:
            for igw in igws.value:
                lines.append(f"- {igw.id} (display-name: {_v(igw.display_name)}, isEnabled: {_v(igw.is_enabled)})")
        lines.append("")

    # Route table, shown for every subnet that uses it
    if not sub.route_table_id:
        lines.extend(["#### Route Table", f"- {NONE_PLACEHOLDER}", ""])
    else:
        lines.append(f"#### Route Table: {sub.route_table_id}")
        rt = topology.route_tables.get(sub.route_table_id)
        if rt is None or not rt.ok or rt.value is None:
            lines.append(f"- {UNAVAILABLE_PLACEHOLDER}")
        elif not rt.value.route_rules:
            lines.append("- (no route rules)")
        else:
            for rule in rt.value.route_rules:
                lines.append(_route_rule_line(rule))
        lines.append("")

    lines.append(f"### Security Lists for subnet {subnet_id}")
    if not sub.security_list_ids:
        lines.append(f"- {NONE_PLACEHOLDER}")
    for sl_id in sub.security_list_ids:
        lines.extend(_security_list_lines(sl_id, topology.security_lists.get(sl_id), rendered.get(sl_id)))
        rendered.setdefault(sl_id, subnet_id)
    lines.append("")
    return lines


def _nsg_lines(topology: Topology) -> List[str]:
    lines = ["## Network Security Groups (NSGs) attached to instance vNICs"]
    if not topology.nsg_ids:
        lines.extend([f"- {NONE_PLACEHOLDER}", ""])
        return lines
    for nsg_id in topology.nsg_ids:
        fetched = topology.nsgs.get(nsg_id)
        if fetched is None or not fetched.ok or fetched.value is None:
            lines.append(f"- NSG: {nsg_id} {UNAVAILABLE_PLACEHOLDER}")
            continue
        nsg = fetched.value
        lines.append(f"- NSG: {nsg_id} ({_v(nsg.display_name)})")
        lines.append("  - Security rules:")
        lines.extend(_rule_lines(nsg.rules, indent="    ", with_direction=True))
    lines.append("")
    return lines


def _reachability_lines(topology: Topology, ports: Sequence[int]) -> List[str]:
    lines = ["## Reachability / next steps", ""]
    for rv in topology.vnics:
        lines.append(
            f"- vNIC: {rv.vnic.id} - Private IP: {_v(rv.vnic.private_ip)} - Public IP: {_v(rv.public_ip)}"
        )
    lines.append("")
    port_list = ", ".join(str(p) for p in ports)
    lines.extend(
        [
            "- Confirm the subnet's Security List or NSG allows inbound TCP to ports: "
            f"{port_list} from the sources you intend to allow.",
            "- Ensure host firewall (firewalld/iptables) on the instance permits those ports.",
            "- If the instance is in a private subnet, deploy a public Load Balancer or assign a public IP "
            "for external access.",
            "",
        ]
    )
    return lines


def render_report_md(topology: Topology, *, ports: Sequence[int] = DEFAULT_PORTS) -> str:
    """
    Render the resolved topology as Markdown.

    Section order: instance summary, vNICs, one section per distinct subnet
    (VCN, internet gateways, route table, security lists), NSGs, then
    reachability guidance. Output depends only on the topology contents.
    """
    lines: List[str] = []
    lines.extend(_instance_lines(topology))
    lines.extend(_vnic_lines(topology))
    # Tracks which subnet first described a VCN or security list
    rendered: Dict[str, str] = {}
    for subnet_id in topology.subnet_ids:
        lines.extend(_subnet_lines(topology, subnet_id, rendered))
    lines.extend(_nsg_lines(topology))
    lines.extend(_reachability_lines(topology, ports))
    return "\n".join(lines)


def _fetched_json(fetched: Optional[Fetched[Any]]) -> Dict[str, Any]:
    if fetched is None:
        return {"status": "skipped"}
    if not fetched.ok:
        return {"status": "unavailable"}
    return {"status": "ok", "data": to_jsonable(fetched.value)}


def render_report_json(topology: Topology) -> str:
    """
    Render the resolved topology as stable JSON. Failed fetches appear as
    {"status": "unavailable"}; failure reasons stay in the logs.
    """
    payload = {
        "instance": to_jsonable(topology.instance),
        "vnics": [
            {
                "vnic": to_jsonable(rv.vnic),
                "public_ip": rv.public_ip,
                "public_ip_source": rv.public_ip_source,
                "public_ip_lifetime": rv.public_ip_lifetime,
            }
            for rv in topology.vnics
        ],
        "subnet_ids": list(topology.subnet_ids),
        "nsg_ids": list(topology.nsg_ids),
        "subnets": {k: _fetched_json(v) for k, v in topology.subnets.items()},
        "vcns": {k: _fetched_json(v) for k, v in topology.vcns.items()},
        "internet_gateways": {k: _fetched_json(v) for k, v in topology.internet_gateways.items()},
        "route_tables": {k: _fetched_json(v) for k, v in topology.route_tables.items()},
        "security_lists": {k: _fetched_json(v) for k, v in topology.security_lists.items()},
        "nsgs": {k: _fetched_json(v) for k, v in topology.nsgs.items()},
    }
    return stable_json_dumps(payload) + "\n"


def render_report(topology: Topology, *, report_format: str = "md", ports: Sequence[int] = DEFAULT_PORTS) -> str:
    if report_format == "json":
        return render_report_json(topology)
    return render_report_md(topology, ports=ports)


def write_report(path: Path, text: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(f"Failed to write report to {path}: {e}") from e
    return path
