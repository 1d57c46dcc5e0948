"""Neighbour (ARP) table prober."""

from __future__ import annotations

from collections import Counter
from typing import Callable

from loguru import logger

from netstartup.probes.base import BaseProbe
from netstartup.probes.models import Flag, NeighborRecord, NeighborTableSnapshot, ProbeResult
from netstartup.probes.netlink import NetlinkReader
from netstartup.probes.routes import default_gateway

# NUD_* states that carry no usable hardware address
NUD_INCOMPLETE = 0x01
NUD_FAILED = 0x20
UNRESOLVED_STATES = NUD_INCOMPLETE | NUD_FAILED


def resolved(record: NeighborRecord) -> bool:
    return not (record.state & UNRESOLVED_STATES) and bool(record.mac)


def build_snapshot(
    records: list[NeighborRecord],
    names: dict[int, str],
    interfaces: list[str],
    gateway: str | None,
) -> NeighborTableSnapshot:
    """Count resolved entries. Per-interface counts cover ``interfaces`` only; the gateway lookup spans the whole table."""
    entries = [r for r in records if resolved(r)]
    per_interface = Counter(names.get(r.ifindex, "") for r in entries)
    gateway_mac = None
    if gateway is not None:
        gateway_mac = next((r.mac for r in entries if r.ip == gateway), None)
    return NeighborTableSnapshot(
        total_entries=len(entries),
        interface_entries={name: per_interface.get(name, 0) for name in interfaces},
        gateway=gateway,
        gateway_resolved=gateway_mac is not None,
        gateway_mac=gateway_mac,
    )


class NeighborProbe(BaseProbe):
    """Ready iff the gateway's hardware address is resolved, or (without a gateway) any entry exists."""

    flag = Flag.NEIGHBORS

    def __init__(self, netlink: NetlinkReader, interfaces: Callable[[], list[str]] | None = None):
        self.netlink = netlink
        self.interfaces = interfaces

    def monitored_interfaces(self, names: dict[int, str]) -> list[str]:
        """Interfaces to report counts for: ``interfaces()`` if given, else every non-loopback link."""
        if self.interfaces is not None:
            return self.interfaces()
        return sorted(name for name in names.values() if name != "lo")

    def snapshot(self) -> NeighborTableSnapshot:
        names = self.netlink.link_names()
        return build_snapshot(
            self.netlink.neighbors(),
            names,
            self.monitored_interfaces(names),
            default_gateway(self.netlink.routes()),
        )

    def check(self) -> ProbeResult:
        snap = self.snapshot()
        if not snap.interface_entries:
            logger.info("ARP table: No interfaces to check")
        for name, count in snap.interface_entries.items():
            if snap.gateway_resolved and count:
                logger.info(f"ARP table {name}: {count} entries (gateway {snap.gateway} -> {snap.gateway_mac})")
            else:
                logger.info(f"ARP table {name}: {count} entries")
        logger.info(f"ARP table total: {snap.total_entries} entries")

        if snap.gateway is not None:
            if snap.gateway_resolved:
                logger.info(f"ARP table gateway: {snap.gateway} RESOLVED")
            else:
                logger.info(f"ARP table gateway: {snap.gateway} NOT RESOLVED")
            return self.result(snap.gateway_resolved, f"gateway {snap.gateway}")

        if snap.total_entries:
            logger.info("ARP table: POPULATED (no gateway to check)")
            return self.result(True, f"{snap.total_entries} entries")
        logger.info("ARP table: EMPTY")
        return self.result(False, "empty")
