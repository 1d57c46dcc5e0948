"""Shared helper functions for the readiness probes."""

from __future__ import annotations

import ipaddress
import queue
import re
import socket
import threading
from typing import Any, Callable, TypeVar

from netstartup.exceptions import ProbeError, ProbeTimeoutError

T = TypeVar("T")


def _validate_interface_name(name: str) -> bool:
    """Validate interface name before using it in a filesystem path."""
    return bool(re.match(r"^[a-zA-Z0-9._@-]+$", name)) and name not in (".", "..")


def _validate_ip(ip: str) -> bool:
    """Validate IP address string."""
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def call_with_timeout(func: Callable[..., T], timeout: float, *args: Any, name: str = "call") -> T:
    """Run ``func(*args)`` on a daemon thread and wait at most ``timeout`` seconds.

    A call that overruns is abandoned, not killed: its thread keeps running in the
    background and whatever it eventually returns is discarded. Daemon threads never
    hold up interpreter exit.

    Raises:
        ProbeTimeoutError: If the call did not finish in time.
        Exception: Whatever ``func`` raised.
    """
    results: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

    def runner() -> None:
        try:
            results.put((True, func(*args)))
        except BaseException as e:  # handed back to the waiting caller
            results.put((False, e))

    threading.Thread(target=runner, name=f"netstartup-{name}", daemon=True).start()
    try:
        ok, value = results.get(timeout=timeout)
    except queue.Empty:
        raise ProbeTimeoutError(f"{name} timed out after {timeout:g}s", timeout=timeout) from None
    if ok:
        return value  # type: ignore[no-any-return]
    raise value


def _getaddrinfo(hostname: str) -> list[str]:
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    return sorted({str(info[4][0]) for info in infos})


def resolve_host(hostname: str, timeout: float) -> list[str]:
    """Resolve ``hostname`` through the system resolver within ``timeout`` seconds.

    Returns:
        The sorted, de-duplicated list of addresses.

    Raises:
        ProbeTimeoutError: Resolution did not finish in time.
        ProbeError: The resolver returned an error or no addresses.
    """
    if not hostname:
        raise ProbeError("no hostname configured")
    try:
        addresses = call_with_timeout(_getaddrinfo, timeout, hostname, name=f"resolve {hostname}")
    except socket.gaierror as e:
        raise ProbeError(f"DNS resolution failed for {hostname}: {e}") from e
    if not addresses:
        raise ProbeError(f"DNS resolution for {hostname} returned no addresses")
    return addresses
