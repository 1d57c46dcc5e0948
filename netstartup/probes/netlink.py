"""Link, neighbour and route enumeration over rtnetlink (pyroute2)."""

from __future__ import annotations

import socket

from loguru import logger
from pyroute2 import IPRoute

from netstartup.probes.models import LinkRecord, NeighborRecord, RouteRecord

IFF_UP = 0x1
IFF_LOOPBACK = 0x8

RT_TABLE_MAIN = 254


class NetlinkReader:
    """Thin rtnetlink reader. A fresh socket is opened for every call; nothing is cached."""

    def links(self) -> list[LinkRecord]:
        records: list[LinkRecord] = []
        with IPRoute() as ipr:
            for msg in ipr.get_links():
                name = msg.get_attr("IFLA_IFNAME")
                if not name:
                    continue
                carrier = msg.get_attr("IFLA_CARRIER")
                records.append(
                    LinkRecord(
                        index=msg["index"],
                        name=name,
                        admin_up=bool(msg["flags"] & IFF_UP),
                        carrier=None if carrier is None else bool(carrier),
                        operstate=str(msg.get_attr("IFLA_OPERSTATE") or "unknown").lower(),
                        is_loopback=bool(msg["flags"] & IFF_LOOPBACK),
                    )
                )
        logger.debug(f"netlink: {len(records)} links")
        return records

    def link_names(self) -> dict[int, str]:
        return {link.index: link.name for link in self.links()}

    def neighbors(self) -> list[NeighborRecord]:
        records: list[NeighborRecord] = []
        with IPRoute() as ipr:
            for msg in ipr.get_neighbours(family=socket.AF_INET):
                dst = msg.get_attr("NDA_DST")
                if not dst:
                    continue
                records.append(
                    NeighborRecord(
                        ip=dst,
                        ifindex=msg["ifindex"],
                        state=msg["state"],
                        mac=msg.get_attr("NDA_LLADDR") or "",
                    )
                )
        logger.debug(f"netlink: {len(records)} neighbour entries")
        return records

    def routes(self) -> list[RouteRecord]:
        """IPv4 routes of the main routing table."""
        records: list[RouteRecord] = []
        with IPRoute() as ipr:
            for msg in ipr.get_routes(family=socket.AF_INET, table=RT_TABLE_MAIN):
                records.append(
                    RouteRecord(
                        dst=msg.get_attr("RTA_DST"),
                        dst_len=msg["dst_len"],
                        gateway=msg.get_attr("RTA_GATEWAY"),
                        oif=msg.get_attr("RTA_OIF"),
                        priority=msg.get_attr("RTA_PRIORITY") or 0,
                    )
                )
        logger.debug(f"netlink: {len(records)} routes")
        return records
