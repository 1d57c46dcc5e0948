"""Interface prober: link discovery, classification, carrier and bond health."""

from __future__ import annotations

from loguru import logger

from netstartup.exceptions import BondRecordError
from netstartup.probes.base import BaseProbe
from netstartup.probes.bonding import BondEvaluator
from netstartup.probes.models import Flag, Interface, InterfaceStatus, LinkRecord, LinkType, ProbeResult
from netstartup.probes.netlink import NetlinkReader
from netstartup.probes.sysfs import SysfsReader

TUNNEL_PREFIXES = ("tun", "tap", "wg", "gre", "ipip", "sit", "vti")
ETHERNET_PREFIXES = ("eth", "en")

ALL_TYPES = "all"


def classify_link(name: str, sysfs: SysfsReader) -> LinkType:
    """Ordered classification: bond record, wireless attribute, tunnel prefix, ethernet prefix."""
    if sysfs.is_bond(name):
        return LinkType.BOND
    if sysfs.is_wireless(name):
        return LinkType.WIRELESS
    if name.startswith(TUNNEL_PREFIXES):
        return LinkType.TUNNEL
    if name.startswith(ETHERNET_PREFIXES):
        return LinkType.ETHERNET
    return LinkType.OTHER


class InterfaceProbe(BaseProbe):
    """Monitored interfaces must carry link; bonds must also be healthy.

    With ``required`` empty, one ready interface is enough. Otherwise every required
    interface must be discovered and ready.
    """

    flag = Flag.INTERFACES

    def __init__(
        self,
        sysfs: SysfsReader,
        netlink: NetlinkReader,
        interface_types: list[str] | None = None,
        required: list[str] | None = None,
    ):
        self.sysfs = sysfs
        self.netlink = netlink
        self.bonds = BondEvaluator(sysfs)
        self.interface_types = {t.lower() for t in (interface_types or ["ethernet", "bond"])}
        self.required = list(required or [])

    def _monitored(self, link_type: LinkType) -> bool:
        return ALL_TYPES in self.interface_types or link_type.value in self.interface_types

    def discover(self) -> list[Interface]:
        """Enumerate monitored (or required), non-loopback links. Always reads live state."""
        found: list[Interface] = []
        for link in self.netlink.links():
            if link.is_loopback or link.name == "lo":
                continue
            link_type = classify_link(link.name, self.sysfs)
            if not self._monitored(link_type) and link.name not in self.required:
                continue
            found.append(self._interface(link, link_type))
        return found

    def _interface(self, link: LinkRecord, link_type: LinkType) -> Interface:
        carrier = self.sysfs.carrier(link.name)
        if carrier is None:
            carrier = link.carrier
        operstate = self.sysfs.operstate(link.name)
        if operstate == "unknown":
            operstate = link.operstate
        return Interface(
            name=link.name,
            link_type=link_type,
            carrier=bool(carrier),
            operstate=operstate,
            admin_state="up" if link.admin_up else "down",
        )

    def status(self, interface: Interface) -> InterfaceStatus:
        logger.info(
            f"Interface {interface.name}: carrier={'UP' if interface.carrier else 'DOWN'}, operstate={interface.operstate}"
        )
        status = InterfaceStatus(interface=interface, ready=interface.carrier)
        if interface.link_type != LinkType.BOND:
            return status

        try:
            bond = self.bonds.evaluate(interface.name)
        except BondRecordError as e:
            logger.info(f"Bond {interface.name}: ERROR - {e}")
            status.bond_error = str(e)
            bond = None
        status.bond = bond
        if bond is None or not bond.lacp_complete:
            logger.info(f"Interface {interface.name}: BOND STATUS FAILED - marking interface down")
            status.ready = False
        return status

    def check(self) -> ProbeResult:
        interfaces = self.discover()
        if not interfaces:
            logger.info("No network interfaces found")
            return self.result(False, "no monitored interfaces")

        statuses = {iface.name: self.status(iface) for iface in interfaces}
        ready = [name for name, s in statuses.items() if s.ready]

        if self.required:
            missing = [name for name in self.required if name not in statuses]
            for name in missing:
                logger.info(f"Required interface {name}: NOT FOUND")
            down = [name for name in self.required if name in statuses and not statuses[name].ready]
            ok = not missing and not down
            detail = f"required {len(self.required) - len(missing) - len(down)}/{len(self.required)} ready"
        else:
            ok = bool(ready)
            detail = f"{len(ready)}/{len(statuses)} ready"
        logger.info(f"Interfaces: {detail}")
        return self.result(ok, detail)
