"""Network service prober (systemd over D-Bus)."""

from __future__ import annotations

from loguru import logger

from netstartup.exceptions import ProbeTimeoutError, ServiceManagerError
from netstartup.probes.base import BaseProbe
from netstartup.probes.bus import SystemdClient
from netstartup.probes.models import Flag, ProbeResult, ServiceState, ServiceStatus

DEFAULT_NETWORK_SERVICES = [
    "systemd-networkd.service",
    "systemd-networkd-wait-online.service",
    "NetworkManager.service",
    "NetworkManager-wait-online.service",
    "systemd-resolved.service",
    "networking.service",
    "dhcpcd.service",
    "wpa_supplicant.service",
]

ENABLED_UNIT_FILE_STATES = ("enabled", "enabled-runtime", "static", "generated", "indirect")


def summarize(statuses: list[ServiceStatus]) -> tuple[bool, int, int]:
    """Return ``(ready, active, not_ready)``.

    Missing and inactive units are excluded. Ready needs no not-ready unit and at least one active.
    """
    counted = [s for s in statuses if not s.is_excluded]
    active = sum(1 for s in counted if s.is_ready)
    not_ready = len(counted) - active
    return not_ready == 0 and active > 0, active, not_ready


class ServiceProbe(BaseProbe):
    """Tracks the enabled subset of ``candidates``; the subset is fixed by :meth:`discover`."""

    flag = Flag.SERVICES

    def __init__(self, systemd: SystemdClient | None, candidates: list[str] | None = None):
        self.systemd = systemd
        self.candidates = list(DEFAULT_NETWORK_SERVICES if candidates is None else candidates)
        self.services: list[str] = []
        self.discovered = False

    def discover(self) -> list[str]:
        """Filter the candidates to units present and enabled (run once at startup)."""
        self.discovered = True
        self.services = []
        if self.systemd is None:
            logger.info("Network services: service manager not available - service probing disabled")
            return self.services
        for name in self.candidates:
            try:
                state = self.systemd.unit_file_state(name)
            except (ServiceManagerError, ProbeTimeoutError) as e:
                logger.info(f"Service {name}: QUERY FAILED ({e}) - skipping")
                continue
            if state is None:
                logger.info(f"Service {name}: not found - skipping")
            elif state in ENABLED_UNIT_FILE_STATES:
                logger.info(f"Service {name}: found and enabled/static - will monitor")
                self.services.append(name)
            elif state == "disabled":
                logger.info(f"Service {name}: found but disabled - skipping")
            else:
                logger.info(f"Service {name}: found with state '{state}' - skipping")
        return self.services

    def query(self) -> list[ServiceStatus]:
        """Current state of the monitored units: one batched call, per-unit on failure."""
        if self.systemd is None:
            raise ServiceManagerError("service manager not available")
        try:
            statuses = self.systemd.list_units_by_names(self.services)
        except (ServiceManagerError, ProbeTimeoutError) as e:
            logger.info("Network services: BATCH QUERY FAILED - falling back to individual checks")
            logger.debug(f"Batch query error: {e}")
            return [self._query_one(name) for name in self.services]
        # ListUnitsByNames answers every requested name, loaded or not
        by_name = {s.name: s for s in statuses}
        return [by_name.get(name, ServiceStatus(name=name, load_state="not-found", available=False)) for name in self.services]

    def _query_one(self, name: str) -> ServiceStatus:
        if self.systemd is None:
            raise ServiceManagerError("service manager not available")
        try:
            return self.systemd.unit_status(name)
        except (ServiceManagerError, ProbeTimeoutError) as e:
            logger.info(f"Service {name}: QUERY FAILED")
            logger.debug(f"Service {name}: {e}")
            return ServiceStatus(name=name, active_state=ServiceState.UNKNOWN, sub_state="query-failed")

    def check(self) -> ProbeResult:
        if not self.discovered:
            self.discover()
        if self.systemd is None:
            return self.unavailable("service manager not available")
        if not self.services:
            logger.info("Network services: NONE FOUND")
            return self.unavailable("no network services found")

        statuses = self.query()
        for status in statuses:
            logger.info(f"Service {status}")

        ready, active, not_ready = summarize(statuses)
        if ready:
            logger.info(f"Network services: ALL READY ({active} active)")
        elif active == 0 and not_ready == 0:
            logger.info("Network services: ALL INACTIVE - waiting for services to start")
        else:
            logger.info(f"Network services: {not_ready} NOT READY, {active} ready")
        return self.result(ready, f"{active} active, {not_ready} not ready")
