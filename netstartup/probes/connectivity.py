"""Connectivity prober: gateway reachability, DNS resolution, NetworkManager connectivity."""

from __future__ import annotations

import itertools
import os
import socket
import struct
import time

from loguru import logger

from netstartup.exceptions import ProbeError
from netstartup.probes._util import _validate_ip, resolve_host
from netstartup.probes.base import BaseProbe
from netstartup.probes.bus import NetworkManagerClient
from netstartup.probes.models import Flag, ProbeResult
from netstartup.probes.netlink import NetlinkReader
from netstartup.probes.routes import default_gateway

ICMP_ECHO_REQUEST = 8
ICMP_ECHO_REPLY = 0

_sequence = itertools.count(1)


def _checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return ~total & 0xFFFF


def _open_icmp_socket() -> tuple[socket.socket, bool]:
    """Unprivileged datagram ICMP socket, falling back to a raw socket. Returns ``(sock, raw)``."""
    try:
        return socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_ICMP), False
    except OSError as dgram_error:
        try:
            return socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP), True
        except OSError as raw_error:
            raise ProbeError(f"cannot open ICMP socket: {dgram_error}; raw: {raw_error}") from raw_error


def icmp_echo(address: str, timeout: float) -> bool:
    """Send one ICMP echo request to ``address`` and wait up to ``timeout`` seconds for the reply.

    Raises:
        ProbeError: If ``address`` is invalid or no ICMP socket can be opened.
    """
    if not _validate_ip(address):
        raise ProbeError(f"invalid address: {address}")
    ident = os.getpid() & 0xFFFF
    seq = next(_sequence) & 0xFFFF
    payload = b"netstartup"
    header = struct.pack("!BBHHH", ICMP_ECHO_REQUEST, 0, 0, ident, seq)
    packet = struct.pack("!BBHHH", ICMP_ECHO_REQUEST, 0, _checksum(header + payload), ident, seq) + payload

    sock, raw = _open_icmp_socket()
    with sock:
        deadline = time.monotonic() + timeout
        sock.sendto(packet, (address, 0))
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            sock.settimeout(remaining)
            try:
                data, (source, _) = sock.recvfrom(1024)
            except socket.timeout:
                return False
            if raw:
                data = data[(data[0] & 0x0F) * 4 :]
            if len(data) < 8 or source != address:
                continue
            icmp_type, _, _, reply_id, reply_seq = struct.unpack("!BBHHH", data[:8])
            # datagram sockets get their identifier rewritten by the kernel
            if icmp_type == ICMP_ECHO_REPLY and reply_seq == seq and (not raw or reply_id == ident):
                return True


class GatewayProbe(BaseProbe):
    """Ready iff the default gateway answers one ICMP echo within ``ping_timeout``."""

    flag = Flag.GATEWAY

    def __init__(self, netlink: NetlinkReader, ping_timeout: float = 1.0):
        self.netlink = netlink
        self.ping_timeout = ping_timeout

    def check(self) -> ProbeResult:
        gateway = default_gateway(self.netlink.routes())
        if gateway is None:
            logger.info("Gateway: NOT CONFIGURED")
            return self.result(False, "no default gateway")
        try:
            reachable = icmp_echo(gateway, self.ping_timeout)
        except ProbeError as e:
            logger.info(f"Gateway {gateway}: UNREACHABLE ({e})")
            return self.result(False, str(e))
        if reachable:
            logger.info(f"Gateway {gateway}: REACHABLE ({self.ping_timeout:g}s timeout)")
        else:
            logger.info(f"Gateway {gateway}: UNREACHABLE ({self.ping_timeout:g}s timeout)")
        return self.result(reachable, gateway)


class DnsProbe(BaseProbe):
    """Ready iff ``hostname`` resolves within ``dns_timeout``."""

    flag = Flag.DNS

    def __init__(self, hostname: str = "google.com", dns_timeout: float = 1.0):
        self.hostname = hostname
        self.dns_timeout = dns_timeout

    def check(self) -> ProbeResult:
        if not self.hostname:
            logger.info("DNS resolution: NO HOSTNAME CONFIGURED")
            return self.result(False, "no hostname configured")
        try:
            addresses = resolve_host(self.hostname, self.dns_timeout)
        except ProbeError as e:
            logger.info(f"DNS resolution for {self.hostname}: FAILED ({self.dns_timeout:g}s timeout)")
            logger.debug(f"DNS resolution for {self.hostname}: {e}")
            return self.result(False, str(e))
        logger.info(f"DNS resolution for {self.hostname}: SUCCESS")
        return self.result(True, ", ".join(addresses))


class LinkManagerProbe(BaseProbe):
    """NetworkManager global connectivity. Missing NetworkManager is ``unavailable``, not a failure."""

    flag = Flag.LINK_MANAGER

    def __init__(self, client: NetworkManagerClient | None):
        self.client = client

    def check(self) -> ProbeResult:
        if self.client is None:
            logger.info("NetworkManager connectivity: D-BUS NOT AVAILABLE")
            return self.unavailable("system bus not available")
        state = self.client.connectivity()
        if state is None:
            logger.info("NetworkManager connectivity: SERVICE NOT RUNNING")
            return self.unavailable("NetworkManager not running")
        if state == "unknown":
            logger.info("NetworkManager connectivity: UNKNOWN (check disabled or failed)")
            return self.unavailable("connectivity unknown")
        if state == "portal":
            logger.info("NetworkManager connectivity: PORTAL (captive portal detected)")
        else:
            logger.info(f"NetworkManager connectivity: {state.upper()}")
        return self.result(state == "full", state)
