"""Pydantic models and enums for network readiness probes."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

LACP_COLLECTING = 0x10
LACP_DISTRIBUTING = 0x20


class LinkType(str, Enum):
    ETHERNET = "ethernet"
    BOND = "bond"
    WIRELESS = "wireless"
    TUNNEL = "tunnel"
    OTHER = "other"


class BondMode(str, Enum):
    LACP = "802.3ad"
    ACTIVE_BACKUP = "active-backup"
    OTHER = "other"


class ServiceState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"
    UNKNOWN = "unknown"


class RouteKind(str, Enum):
    DEFAULT = "default"
    NETWORK = "network"
    HOST = "host"


class ProbeOutcome(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    UNAVAILABLE = "unavailable"
    ERROR = "error"


class Flag(str, Enum):
    """The seven readiness flags, in check order."""

    SERVICES = "services"
    INTERFACES = "interfaces"
    GATEWAY = "gateway"
    DNS = "dns"
    LINK_MANAGER = "link_manager"
    NEIGHBORS = "neighbors"
    ROUTES = "routes"


# ── raw OS records ────────────────────────────────────────────────────


class LinkRecord(BaseModel):
    index: int
    name: str
    admin_up: bool = False
    carrier: Optional[bool] = None
    operstate: str = "unknown"
    is_loopback: bool = False


class NeighborRecord(BaseModel):
    ip: str
    ifindex: int
    state: int = 0
    mac: str = ""


class RouteRecord(BaseModel):
    dst: Optional[str] = None
    dst_len: int = 0
    gateway: Optional[str] = None
    oif: Optional[int] = None
    priority: int = 0


# ── probe data model ──────────────────────────────────────────────────


class Interface(BaseModel):
    name: str
    link_type: LinkType = LinkType.OTHER
    carrier: bool = False
    operstate: str = "unknown"
    admin_state: str = "down"


class SlaveLACPState(BaseModel):
    """One bond slave: MII status plus the 802.3ad actor state byte (if reported)."""

    name: str
    mii_status: str = "unknown"
    actor_state: Optional[int] = None

    @property
    def collecting(self) -> bool:
        return self.actor_state is not None and bool(self.actor_state & LACP_COLLECTING)

    @property
    def distributing(self) -> bool:
        return self.actor_state is not None and bool(self.actor_state & LACP_DISTRIBUTING)

    @property
    def negotiated(self) -> bool:
        return self.collecting and self.distributing

    @property
    def link_up(self) -> bool:
        return self.mii_status == "up"


class BondStatus(BaseModel):
    name: str
    mode: BondMode = BondMode.OTHER
    mode_description: str = ""
    mii_status: str = "unknown"
    active_slave: Optional[str] = None
    has_active_slave_field: bool = False
    slaves: list[SlaveLACPState] = Field(default_factory=list)
    lacp_complete: bool = False

    @property
    def total_slaves(self) -> int:
        return len(self.slaves)

    @property
    def slaves_up(self) -> int:
        return sum(1 for s in self.slaves if s.link_up)


class InterfaceStatus(BaseModel):
    interface: Interface
    bond: Optional[BondStatus] = None
    bond_error: str = ""
    ready: bool = False


class ServiceStatus(BaseModel):
    name: str
    active_state: ServiceState = ServiceState.UNKNOWN
    sub_state: str = ""
    load_state: str = ""
    available: bool = True

    @property
    def is_ready(self) -> bool:
        return self.active_state == ServiceState.ACTIVE

    @property
    def is_excluded(self) -> bool:
        return not self.available or self.active_state == ServiceState.INACTIVE

    def __str__(self) -> str:
        if not self.available:
            return f"{self.name}: NOT FOUND"
        labels = {
            ServiceState.ACTIVE: f"ACTIVE ({self.sub_state})",
            ServiceState.INACTIVE: f"INACTIVE ({self.sub_state}) - skipping",
            ServiceState.FAILED: f"FAILED ({self.sub_state})",
            ServiceState.ACTIVATING: f"STARTING ({self.sub_state})",
            ServiceState.DEACTIVATING: f"STOPPING ({self.sub_state})",
        }
        state = labels.get(self.active_state, f"UNKNOWN STATE ({self.active_state.value}/{self.sub_state})")
        return f"{self.name}: {state}"


class RouteEntry(BaseModel):
    destination: Optional[str] = None  # None = default
    gateway: Optional[str] = None
    interface: str = ""
    metric: int = 0
    kind: RouteKind = RouteKind.NETWORK

    def __str__(self) -> str:
        dest = self.destination or "default"
        if self.gateway:
            text = f"{dest} via {self.gateway} dev {self.interface}"
        else:
            text = f"{dest} dev {self.interface}"
        if self.metric > 0:
            text += f" metric {self.metric}"
        return text


class RouteTableSnapshot(BaseModel):
    routes: list[RouteEntry] = Field(default_factory=list)

    def count(self, kind: RouteKind) -> int:
        return sum(1 for r in self.routes if r.kind == kind)

    @property
    def default_routes(self) -> list[RouteEntry]:
        return [r for r in self.routes if r.kind == RouteKind.DEFAULT]

    @property
    def has_default_route(self) -> bool:
        return bool(self.default_routes)


class NeighborTableSnapshot(BaseModel):
    total_entries: int = 0
    interface_entries: dict[str, int] = Field(default_factory=dict)
    gateway: Optional[str] = None
    gateway_resolved: bool = False
    gateway_mac: Optional[str] = None


class ProbeResult(BaseModel):
    flag: Flag
    outcome: ProbeOutcome
    detail: str = ""

    @property
    def ready(self) -> bool:
        return self.outcome == ProbeOutcome.READY
