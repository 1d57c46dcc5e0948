"""System D-Bus access for systemd and NetworkManager queries (dbus-next).

dbus-next is asyncio based; :class:`SystemBus` runs a private event loop on a daemon
thread so that the synchronous probes can issue bounded calls from any worker thread.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Coroutine, Self

from dbus_next import Message, MessageType, Variant
from dbus_next.aio import MessageBus
from dbus_next.constants import BusType
from dbus_next.errors import AuthError
from loguru import logger

from netstartup.exceptions import ProbeTimeoutError, ServiceManagerError
from netstartup.probes.models import ServiceState, ServiceStatus

DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
PROPERTIES_IFACE = "org.freedesktop.DBus.Properties"

SYSTEMD_NAME = "org.freedesktop.systemd1"
SYSTEMD_PATH = "/org/freedesktop/systemd1"
SYSTEMD_MANAGER_IFACE = "org.freedesktop.systemd1.Manager"
SYSTEMD_UNIT_IFACE = "org.freedesktop.systemd1.Unit"

NM_NAME = "org.freedesktop.NetworkManager"
NM_PATH = "/org/freedesktop/NetworkManager"

NO_SUCH_UNIT_ERRORS = ("org.freedesktop.systemd1.NoSuchUnit", "org.freedesktop.DBus.Error.FileNotFound")

# NMConnectivityState
NM_CONNECTIVITY = {0: "unknown", 1: "none", 2: "portal", 3: "limited", 4: "full"}


class SystemBus:
    """Synchronous facade over a dbus-next system bus connection."""

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._bus: MessageBus | None = None

    @property
    def connected(self) -> bool:
        return self._bus is not None

    def _submit(self, coro: Coroutine[Any, Any, Any], timeout: float, what: str) -> Any:
        if self._loop is None:
            raise ServiceManagerError("not connected to the system bus")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except TimeoutError:
            future.cancel()
            raise ProbeTimeoutError(f"D-Bus {what} timed out after {timeout:g}s", timeout=timeout) from None

    def connect(self) -> Self:
        """Connect to the system bus.

        Raises:
            ServiceManagerError: If the bus cannot be reached, its address is invalid or
                authentication is rejected.
        """
        if self._bus is not None:
            return self
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="netstartup-dbus", daemon=True)
        self._thread.start()
        try:
            self._bus = self._submit(MessageBus(bus_type=BusType.SYSTEM).connect(), self.timeout, "connect")
        except (OSError, ValueError, AuthError, ProbeTimeoutError) as e:
            self._stop_loop()
            raise ServiceManagerError(f"cannot connect to the system bus: {e}") from e
        logger.debug("Connected to system D-Bus")
        return self

    def _stop_loop(self) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._loop = None
        self._thread = None

    def close(self) -> None:
        if self._bus is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._bus.disconnect)
        self._bus = None
        self._stop_loop()

    def __enter__(self) -> Self:
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: list[Any] | None = None,
        timeout: float | None = None,
    ) -> list[Any]:
        """Issue one method call and return the reply body.

        Raises:
            ServiceManagerError: Not connected, or the peer replied with an error.
            ProbeTimeoutError: No reply within ``timeout``.
        """
        if self._bus is None:
            raise ServiceManagerError("not connected to the system bus")
        message = Message(
            destination=destination,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=body or [],
        )
        reply = self._submit(self._bus.call(message), timeout or self.timeout, f"{interface}.{member}")
        if reply.message_type == MessageType.ERROR:
            text = reply.body[0] if reply.body else reply.error_name
            raise ServiceManagerError(f"{member} failed: {text}", error_name=reply.error_name)
        return list(reply.body)

    def get_property(self, destination: str, path: str, interface: str, name: str) -> Any:
        (value,) = self.call(destination, path, PROPERTIES_IFACE, "Get", "ss", [interface, name])
        return value.value if isinstance(value, Variant) else value

    def name_has_owner(self, name: str) -> bool:
        (owned,) = self.call(DBUS_NAME, DBUS_PATH, DBUS_NAME, "NameHasOwner", "s", [name])
        return bool(owned)


def _service_status(name: str, load_state: str, active_state: str, sub_state: str) -> ServiceStatus:
    try:
        state = ServiceState(active_state)
    except ValueError:
        state = ServiceState.UNKNOWN
    return ServiceStatus(
        name=name,
        active_state=state,
        sub_state=sub_state,
        load_state=load_state,
        available=load_state != "not-found",
    )


class SystemdClient:
    """systemd manager queries over :class:`SystemBus`."""

    def __init__(self, bus: SystemBus):
        self.bus = bus

    def _manager(self, member: str, signature: str = "", body: list[Any] | None = None) -> list[Any]:
        return self.bus.call(SYSTEMD_NAME, SYSTEMD_PATH, SYSTEMD_MANAGER_IFACE, member, signature, body)

    def unit_file_state(self, name: str) -> str | None:
        """Unit file state (``enabled``, ``disabled``, ``static`` ...), or ``None`` if the unit does not exist."""
        try:
            (state,) = self._manager("GetUnitFileState", "s", [name])
        except ServiceManagerError as e:
            if e.error_name in NO_SUCH_UNIT_ERRORS:
                return None
            raise
        return str(state)

    def list_units_by_names(self, names: list[str]) -> list[ServiceStatus]:
        """Current state of ``names`` in a single round-trip."""
        (units,) = self._manager("ListUnitsByNames", "as", [list(names)])
        # a(ssssssouso): name, description, load, active, sub, following, path, job id, job type, job path
        return [_service_status(u[0], u[2], u[3], u[4]) for u in units]

    def unit_status(self, name: str) -> ServiceStatus:
        try:
            (path,) = self._manager("LoadUnit", "s", [name])
        except ServiceManagerError as e:
            if e.error_name in NO_SUCH_UNIT_ERRORS:
                return ServiceStatus(name=name, load_state="not-found", available=False)
            raise
        (props,) = self.bus.call(SYSTEMD_NAME, path, PROPERTIES_IFACE, "GetAll", "s", [SYSTEMD_UNIT_IFACE])
        values = {k: (v.value if isinstance(v, Variant) else v) for k, v in props.items()}
        return _service_status(
            name,
            str(values.get("LoadState", "")),
            str(values.get("ActiveState", "unknown")),
            str(values.get("SubState", "")),
        )


class NetworkManagerClient:
    """NetworkManager global connectivity query over :class:`SystemBus`."""

    def __init__(self, bus: SystemBus):
        self.bus = bus

    def connectivity(self) -> str | None:
        """Return ``full``, ``limited``, ``portal``, ``none`` or ``unknown``; ``None`` if NetworkManager is not on the bus."""
        if not self.bus.name_has_owner(NM_NAME):
            return None
        value = self.bus.get_property(NM_NAME, NM_PATH, NM_NAME, "Connectivity")
        return NM_CONNECTIVITY.get(int(value), "unknown")
