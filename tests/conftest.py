"""Shared fixtures for the netstartup test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from loguru import logger

from netstartup.probes.base import BaseProbe
from netstartup.probes.models import Flag, LinkRecord, NeighborRecord, ProbeOutcome, ProbeResult, RouteRecord

# ── logging ───────────────────────────────────────────────────────────


@pytest.fixture()
def log_messages():
    """Collect every netstartup log message (text only) emitted during the test."""
    messages: list[str] = []
    logger.enable("netstartup")
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG", format="{message}")
    yield messages
    try:
        logger.remove(handler_id)
    except ValueError:
        pass  # already removed by configure_logging()
    logger.disable("netstartup")


# ── fake clock ────────────────────────────────────────────────────────


class FakeClock:
    """Monotonic clock that only moves when told to; ``sleep`` doubles as the controller's wait."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False


@pytest.fixture()
def fake_clock():
    return FakeClock()


# ── probes ────────────────────────────────────────────────────────────


class ScriptedProbe(BaseProbe):
    """Probe returning a scripted sequence of outcomes (the last one repeats)."""

    def __init__(self, flag: Flag, outcomes: list[ProbeOutcome] | None = None):
        self.flag = flag
        self.outcomes = list(outcomes or [ProbeOutcome.READY])
        self.calls = 0

    def check(self) -> ProbeResult:
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        return ProbeResult(flag=self.flag, outcome=outcome, detail=f"call {self.calls}")


@pytest.fixture()
def scripted_probes():
    """Factory: one ScriptedProbe per flag; ``overrides`` maps a flag to its outcome sequence."""

    def _make(default: ProbeOutcome = ProbeOutcome.READY, **overrides: list[ProbeOutcome]) -> list[ScriptedProbe]:
        return [ScriptedProbe(flag, overrides.get(flag.name.lower(), [default])) for flag in Flag]

    return _make


# ── OS collaborators ──────────────────────────────────────────────────


@pytest.fixture()
def sysfs_tree(tmp_path: Path):
    """Factory building a fake /sys/class/net + /proc/net/bonding tree under tmp_path."""

    class Tree:
        root = tmp_path

        def link(
            self,
            name: str,
            carrier: str | None = "1",
            operstate: str = "up",
            wireless: bool = False,
        ) -> Path:
            link_dir = tmp_path / "sys" / "class" / "net" / name
            link_dir.mkdir(parents=True, exist_ok=True)
            if carrier is not None:
                (link_dir / "carrier").write_text(f"{carrier}\n")
            (link_dir / "operstate").write_text(f"{operstate}\n")
            if wireless:
                (link_dir / "wireless").mkdir(exist_ok=True)
            return link_dir

        def bond(self, name: str, record: str, carrier: str = "1") -> Path:
            self.link(name, carrier=carrier)
            bonding = tmp_path / "proc" / "net" / "bonding"
            bonding.mkdir(parents=True, exist_ok=True)
            path = bonding / name
            path.write_text(record)
            return path

    return Tree()


@pytest.fixture()
def fake_netlink():
    """MagicMock of NetlinkReader with empty tables."""
    netlink = MagicMock()
    netlink.links.return_value = []
    netlink.neighbors.return_value = []
    netlink.routes.return_value = []
    netlink.link_names.return_value = {}
    return netlink


@pytest.fixture()
def link_records():
    """Factory: LinkRecord list from names (index = position + 1, ``lo`` is loopback)."""

    def _make(*names: str) -> list[LinkRecord]:
        return [
            LinkRecord(index=i, name=name, admin_up=True, carrier=True, operstate="up", is_loopback=name == "lo")
            for i, name in enumerate(names, start=1)
        ]

    return _make


@pytest.fixture()
def default_route():
    def _make(gateway: str = "192.168.1.1", oif: int = 2, priority: int = 100) -> RouteRecord:
        return RouteRecord(dst=None, dst_len=0, gateway=gateway, oif=oif, priority=priority)

    return _make


@pytest.fixture()
def neighbor():
    def _make(ip: str, ifindex: int = 2, state: int = 0x02, mac: str = "aa:bb:cc:dd:ee:ff") -> NeighborRecord:
        return NeighborRecord(ip=ip, ifindex=ifindex, state=state, mac=mac)

    return _make
