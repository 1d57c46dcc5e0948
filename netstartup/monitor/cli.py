"""CLI entry points for the network startup monitor.

Sub-commands (wired up in ``netstartup.__main__``):
  monitor  Poll until the grace period or total timeout ends
  wait     Blocking boot gate: exit as soon as the network is complete
  check    Run a single cycle and report (exit 0 when complete, else 1)
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Mapping

from loguru import logger
from tabulate import tabulate

from netstartup import configure_logging, log_banner
from netstartup.exceptions import ConfigError, LockError, ServiceManagerError
from netstartup.monitor.config import INTERFACE_TYPES, MonitorConfig
from netstartup.monitor.lifecycle import LifecycleController
from netstartup.monitor.lock import InstanceLock
from netstartup.probes.base import BaseProbe
from netstartup.probes.bus import NetworkManagerClient, SystemBus, SystemdClient
from netstartup.probes.connectivity import DnsProbe, GatewayProbe, LinkManagerProbe
from netstartup.probes.interfaces import InterfaceProbe
from netstartup.probes.models import Flag
from netstartup.probes.neighbors import NeighborProbe
from netstartup.probes.netlink import NetlinkReader
from netstartup.probes.routes import RouteProbe
from netstartup.probes.services import ServiceProbe
from netstartup.probes.sysfs import SysfsReader


def parse_args(args: list[str] | None = None, prog: str | None = None) -> argparse.Namespace:
    """Build argparse parser for the monitor."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Monitor network readiness during system startup",
        epilog="Durations accept 1.5s, 500ms, 2m or bare seconds. Lists are space- or comma-separated.",
    )
    parser.add_argument(
        "--blocking",
        action="store_true",
        help="Exit as soon as the network is complete (run-after-success forced to 0)",
    )
    parser.add_argument(
        "--required-interfaces",
        help="Interfaces that must all be ready (default: any one monitored interface)",
    )
    parser.add_argument(
        "--interface-types",
        help=f"Interface types to monitor: {', '.join(INTERFACE_TYPES)} (default: ethernet,bond)",
    )
    parser.add_argument("--total-timeout", help="Hard ceiling for the whole run (default: 900s)")
    parser.add_argument("--run-after-success", help="Keep running this long once complete (default: 60s)")
    parser.add_argument("--sleep-interval", help="Poll interval (default: 1s)")
    parser.add_argument("--ping-timeout", help="Gateway ping timeout (default: 1s)")
    parser.add_argument("--dns-timeout", help="DNS resolution timeout (default: 1s)")
    parser.add_argument("--probe-timeout", help="Per-cycle deadline for all probes (default: 5s)")
    parser.add_argument("--network-services", help="Candidate service units to monitor")
    parser.add_argument("--resolver-hostname", help="Hostname for the DNS test (default: google.com)")
    parser.add_argument(
        "--unavailable-policy",
        choices=["exclude", "fail"],
        help="How an unavailable check (e.g. NetworkManager absent) counts (default: exclude)",
    )
    parser.add_argument("--log-file", help="Log file path")
    parser.add_argument("--no-log-file", action="store_true", help="Log to stderr only")
    parser.add_argument("--lock-file", help="Single-instance lock file path")
    parser.add_argument("--sysfs-root", help="Filesystem root holding sys/ and proc/ (default: /)")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(args)


def config_from_args(ns: argparse.Namespace, environ: Mapping[str, str] | None = None) -> MonitorConfig:
    """Layer CLI flags over environment variables over defaults.

    Raises:
        ConfigError: On invalid values.
    """
    config = MonitorConfig.build(
        environ,
        blocking=True if ns.blocking else None,
        required_interfaces=ns.required_interfaces,
        interface_types=ns.interface_types,
        total_timeout=ns.total_timeout,
        run_after_success=ns.run_after_success,
        poll_interval=ns.sleep_interval,
        ping_timeout=ns.ping_timeout,
        dns_timeout=ns.dns_timeout,
        probe_timeout=ns.probe_timeout,
        network_services=ns.network_services,
        resolver_hostname=ns.resolver_hostname,
        unavailable_policy=ns.unavailable_policy,
        log_file=ns.log_file,
        lock_file=ns.lock_file,
        sysfs_root=ns.sysfs_root,
    )
    if ns.no_log_file:
        config = config.model_copy(update={"log_file": None})
    return config


def build_probes(config: MonitorConfig) -> tuple[list[BaseProbe], SystemBus | None]:
    """Wire the seven probes to their OS collaborators.

    A system bus that cannot be reached disables service and NetworkManager probing
    (both then report ``unavailable``) instead of failing startup.
    """
    sysfs = SysfsReader(config.sysfs_root)
    netlink = NetlinkReader()

    bus: SystemBus | None = None
    try:
        bus = SystemBus().connect()
    except ServiceManagerError as e:
        logger.warning(f"System D-Bus not available - service and NetworkManager probing disabled: {e}")

    interfaces = InterfaceProbe(sysfs, netlink, config.interface_types, config.required_interfaces)
    services = ServiceProbe(SystemdClient(bus) if bus else None, config.network_services)
    services.discover()

    probes: list[BaseProbe] = [
        services,
        interfaces,
        GatewayProbe(netlink, config.ping_timeout),
        DnsProbe(config.resolver_hostname, config.dns_timeout),
        LinkManagerProbe(NetworkManagerClient(bus) if bus else None),
        NeighborProbe(netlink, lambda: [iface.name for iface in interfaces.discover()]),
        RouteProbe(netlink),
    ]
    return probes, bus


def _print_startup_banner(config: MonitorConfig) -> None:
    rows: list[list[object]] = [
        ["PID", os.getpid()],
        ["mode", config.mode],
        ["total timeout", f"{config.total_timeout:g}s"],
        ["run after success", f"{config.run_after_success:g}s"],
        ["poll interval", f"{config.poll_interval:g}s"],
        ["interface types", ", ".join(config.interface_types)],
        ["required interfaces", ", ".join(config.required_interfaces) or "(any)"],
        ["DNS resolver", f"{config.resolver_hostname} (timeout: {config.dns_timeout:g}s)"],
        ["ping timeout", f"{config.ping_timeout:g}s"],
        ["unavailable policy", config.unavailable_policy],
        ["log file", str(config.log_file) if config.log_file else "(stderr only)"],
        ["lock file", str(config.lock_file)],
    ]
    log_banner("NETWORK STARTUP MONITOR", rows)


def _setup(ns: argparse.Namespace, with_log_file: bool = True) -> MonitorConfig | None:
    try:
        config = config_from_args(ns)
    except ConfigError as e:
        print(f"netstartup: {e}", file=sys.stderr)
        return None
    try:
        configure_logging(log_file=config.log_file if with_log_file else None, level="DEBUG" if ns.verbose else None)
    except OSError as e:
        print(f"netstartup: cannot open log file {config.log_file}: {e}", file=sys.stderr)
        return None
    return config


def run_monitor(ns: argparse.Namespace) -> int:
    """Run the monitor loop under the instance lock. Returns the process exit code."""
    config = _setup(ns)
    if config is None:
        return 1

    try:
        with InstanceLock(config.lock_file):
            _print_startup_banner(config)
            probes, bus = build_probes(config)
            try:
                controller = LifecycleController(config, probes)
                controller.install_signal_handlers()
                reason = controller.run()
                logger.debug(f"Exit reason: {reason.value}")
            finally:
                if bus is not None:
                    bus.close()
                logger.info("Network monitor shutting down")
    except LockError as e:
        logger.error(str(e))
        return 1
    return 0


def run_check(ns: argparse.Namespace) -> int:
    """Run one cycle without the lock and print the flag table. 0 when complete, else 1."""
    config = _setup(ns, with_log_file=False)
    if config is None:
        return 1

    probes, bus = build_probes(config)
    try:
        controller = LifecycleController(config, probes)
        results = controller.run_cycle()
        complete = controller.aggregator.apply_results(results, controller.clock())
    finally:
        if bus is not None:
            bus.close()

    rows = [
        [flag.value, "READY" if controller.state.flags[flag] else "NOT READY", results[flag].outcome.value, results[flag].detail]
        for flag in Flag
    ]
    print(tabulate(rows, headers=["check", "state", "outcome", "detail"], tablefmt="simple"))
    print(f"\nnetwork {'COMPLETE' if complete else 'NOT COMPLETE'}")
    return 0 if complete else 1


def main(args: list[str] | None = None) -> None:
    """Entry point for ``netstartup monitor`` / ``netstartup-monitor``."""
    sys.exit(run_monitor(parse_args(args)))


def wait_main(args: list[str] | None = None) -> None:
    """Entry point for ``netstartup wait``: the monitor in blocking mode."""
    ns = parse_args(args, prog="netstartup wait")
    ns.blocking = True
    sys.exit(run_monitor(ns))


def check_main(args: list[str] | None = None) -> None:
    """Entry point for ``netstartup check``."""
    sys.exit(run_check(parse_args(args, prog="netstartup check")))


if __name__ == "__main__":
    main()
