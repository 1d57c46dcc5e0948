"""Command dispatcher for the netstartup sub-commands.

Sub-commands:
  monitor  Watch network readiness until the grace period or total timeout ends
  wait     Boot gate: block until the network is complete (monitor --blocking)
  check    Run a single readiness cycle and print the result
  bond     One-shot bond/LACP health table

Examples:
  netstartup monitor --interface-types ethernet,bond --run-after-success 2m

  netstartup wait --required-interfaces bond0 --total-timeout 5m

  netstartup check --no-log-file

  netstartup bond bond0
"""

from __future__ import annotations

import os
import sys

from netstartup import __version__, configure_logging, log_banner

COMMANDS = {
    "monitor": ("netstartup.monitor.cli", "main", "Monitor network readiness (logs status stream)"),
    "wait": ("netstartup.monitor.cli", "wait_main", "Block until the network is ready"),
    "check": ("netstartup.monitor.cli", "check_main", "Single readiness check"),
    "bond": ("netstartup.probes.cli", "main", "Bond/LACP health report"),
}


def _print_usage() -> None:
    print("usage: netstartup <command> [options]\n")
    print("Available commands:")
    for cmd, (_, _, desc) in COMMANDS.items():
        print(f"  {cmd:14s}  {desc}")
    print("\nRun 'netstartup <command> --help' for command-specific options.")


def _print_startup_banner() -> None:
    startup_rows: list[list[object]] = [
        ["version", __version__],
        ["pid", os.getpid()],
    ]

    for var in ("GITHUB_REF", "GITHUB_SHA", "BUILDTIME"):
        val = os.environ.get(var)
        if val and not val.endswith("_is_undefined"):
            startup_rows.append([var, val])

    log_banner("netstartup starting up", startup_rows)


def main() -> None:
    """Dispatch to the sub-command named in argv[1]."""
    configure_logging()
    _print_startup_banner()

    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        _print_usage()
        sys.exit(0 if len(sys.argv) >= 2 else 1)

    command = sys.argv[1]
    if command not in COMMANDS:
        print(f"netstartup: unknown command '{command}'\n", file=sys.stderr)
        _print_usage()
        sys.exit(1)

    module_path, func_name, _ = COMMANDS[command]

    # Import and call the sub-CLI's entry point, passing remaining args
    from importlib import import_module

    module = import_module(module_path)
    getattr(module, func_name)(sys.argv[2:])


if __name__ == "__main__":
    main()
