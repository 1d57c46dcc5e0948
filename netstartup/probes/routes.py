"""Route-table prober."""

from __future__ import annotations

from loguru import logger

from netstartup.probes.base import BaseProbe
from netstartup.probes.models import Flag, ProbeResult, RouteEntry, RouteKind, RouteRecord, RouteTableSnapshot
from netstartup.probes.netlink import NetlinkReader


def classify_route(record: RouteRecord) -> RouteKind:
    if record.dst is None or record.dst_len == 0:
        return RouteKind.DEFAULT
    if record.dst_len == 32:
        return RouteKind.HOST
    return RouteKind.NETWORK


def build_snapshot(records: list[RouteRecord], names: dict[int, str]) -> RouteTableSnapshot:
    routes = []
    for record in records:
        kind = classify_route(record)
        destination = None if kind == RouteKind.DEFAULT else f"{record.dst}/{record.dst_len}"
        routes.append(
            RouteEntry(
                destination=destination,
                gateway=record.gateway,
                interface=names.get(record.oif, str(record.oif)) if record.oif is not None else "",
                metric=record.priority,
                kind=kind,
            )
        )
    return RouteTableSnapshot(routes=routes)


def default_gateway(records: list[RouteRecord]) -> str | None:
    """Gateway of the preferred (lowest metric) default route, if any default route has one."""
    defaults = [r for r in records if classify_route(r) == RouteKind.DEFAULT and r.gateway]
    if not defaults:
        return None
    return min(defaults, key=lambda r: r.priority).gateway


class RouteProbe(BaseProbe):
    """Ready iff the main table holds a default route."""

    flag = Flag.ROUTES

    def __init__(self, netlink: NetlinkReader):
        self.netlink = netlink

    def snapshot(self) -> RouteTableSnapshot:
        return build_snapshot(self.netlink.routes(), self.netlink.link_names())

    def check(self) -> ProbeResult:
        snap = self.snapshot()
        if not snap.routes:
            logger.info("Routing table: NO ROUTES FOUND")
            return self.result(False, "no routes")

        logger.info(f"Routing table: {len(snap.routes)} total routes")
        logger.info(f"Routing table: {snap.count(RouteKind.DEFAULT)} default routes")
        logger.info(f"Routing table: {snap.count(RouteKind.NETWORK)} network routes")
        logger.info(f"Routing table: {snap.count(RouteKind.HOST)} host routes")

        if not snap.has_default_route:
            logger.info("Routing table: NO DEFAULT ROUTE")
            return self.result(False, "no default route")
        for route in snap.default_routes:
            logger.info(f"Default route: {route}")
        return self.result(True, f"{snap.count(RouteKind.DEFAULT)} default route(s)")
