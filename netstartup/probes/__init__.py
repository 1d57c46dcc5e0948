"""Readiness probes subpackage.

One probe per readiness flag: interfaces (carrier plus bond/LACP health), network
services, default gateway, DNS, NetworkManager connectivity, ARP table and routing
table. Each probe re-reads live OS state on every call.
"""

from netstartup.probes.base import BaseProbe
from netstartup.probes.bonding import BondEvaluator, assess_bond, evaluate_bond_health, parse_bond_record
from netstartup.probes.connectivity import DnsProbe, GatewayProbe, LinkManagerProbe, icmp_echo
from netstartup.probes.interfaces import InterfaceProbe, classify_link
from netstartup.probes.models import (
    BondMode,
    BondStatus,
    Flag,
    Interface,
    InterfaceStatus,
    LinkType,
    NeighborTableSnapshot,
    ProbeOutcome,
    ProbeResult,
    RouteEntry,
    RouteKind,
    ServiceState,
    ServiceStatus,
    SlaveLACPState,
)
from netstartup.probes.neighbors import NeighborProbe
from netstartup.probes.routes import RouteProbe, default_gateway
from netstartup.probes.services import DEFAULT_NETWORK_SERVICES, ServiceProbe

__all__ = [
    "BaseProbe",
    "BondEvaluator",
    "parse_bond_record",
    "evaluate_bond_health",
    "assess_bond",
    "InterfaceProbe",
    "classify_link",
    "ServiceProbe",
    "DEFAULT_NETWORK_SERVICES",
    "GatewayProbe",
    "DnsProbe",
    "LinkManagerProbe",
    "icmp_echo",
    "NeighborProbe",
    "RouteProbe",
    "default_gateway",
    "BondMode",
    "BondStatus",
    "Flag",
    "Interface",
    "InterfaceStatus",
    "LinkType",
    "NeighborTableSnapshot",
    "ProbeOutcome",
    "ProbeResult",
    "RouteEntry",
    "RouteKind",
    "ServiceState",
    "ServiceStatus",
    "SlaveLACPState",
]
