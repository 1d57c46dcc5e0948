"""CLI entry point for a one-shot bond/LACP health report."""

from __future__ import annotations

import argparse
import sys

from loguru import logger
from tabulate import tabulate

from netstartup import configure_logging
from netstartup.exceptions import BondRecordError
from netstartup.probes.bonding import evaluate_bond_health, parse_bond_record
from netstartup.probes.sysfs import SysfsReader


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Build argparse parser for the bond report."""
    parser = argparse.ArgumentParser(
        prog="netstartup bond",
        description="Report bond and LACP negotiation health from /proc/net/bonding",
    )
    parser.add_argument(
        "bonds",
        nargs="*",
        help="Bond interfaces to report (default: all)",
    )
    parser.add_argument(
        "--sysfs-root",
        default="/",
        help="Filesystem root holding sys/ and proc/ (default: /)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(args)


def _slave_summary(slave_states: list[tuple[str, str, int | None]]) -> str:
    parts = []
    for name, mii, state in slave_states:
        text = f"{name}:{mii}"
        if state is not None:
            text += f" 0x{state:02x}"
        parts.append(text)
    return ", ".join(parts) or "-"


def bond_rows(sysfs: SysfsReader, names: list[str]) -> tuple[list[list[str]], bool]:
    """One table row per bond. Returns ``(rows, all_healthy)``."""
    rows: list[list[str]] = []
    all_healthy = True
    for name in names:
        try:
            status = parse_bond_record(name, sysfs.bond_record(name))
        except BondRecordError as e:
            logger.debug(f"Bond {name}: {e}")
            rows.append([name, "-", "-", "-", "-", "-", "ERROR", str(e)])
            all_healthy = False
            continue
        healthy, reason = evaluate_bond_health(status)
        all_healthy = all_healthy and healthy
        rows.append(
            [
                name,
                status.mode.value,
                status.mii_status,
                status.active_slave or "-",
                f"{status.slaves_up}/{status.total_slaves}",
                _slave_summary([(s.name, s.mii_status, s.actor_state) for s in status.slaves]),
                "HEALTHY" if healthy else "UNHEALTHY",
                reason,
            ]
        )
    return rows, all_healthy


def main(args: list[str] | None = None) -> None:
    """Entry point for ``netstartup bond``. Exits 0 when every reported bond is healthy."""
    ns = parse_args(args)
    configure_logging(level="DEBUG" if ns.verbose else None)

    sysfs = SysfsReader(ns.sysfs_root)
    names = ns.bonds or sysfs.list_bonds()
    if not names:
        print("No bonding interfaces found")
        sys.exit(0)

    rows, all_healthy = bond_rows(sysfs, names)
    print(
        tabulate(
            rows,
            headers=["bond", "mode", "mii", "active slave", "slaves up", "slaves", "health", "reason"],
            tablefmt="simple",
        )
    )
    sys.exit(0 if all_healthy else 1)


if __name__ == "__main__":
    main()
