"""Network Startup Monitor.

Decides, during machine startup, whether the host network stack is fully
operational: interface carrier and bond/LACP health, network services, default
gateway, DNS, NetworkManager connectivity, ARP and routing tables. Runs either as
a monitoring service or as a blocking boot gate.
"""

__version__ = "0.7.0"

import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict

from loguru import logger as glogger
from tabulate import tabulate

glogger.disable(__name__)

LOG_ROTATION = "10 MB"
LOG_RETENTION = 5


def _loguru_skiplog_filter(record: dict) -> bool:  # type: ignore[type-arg]
    """Filter function to hide records with ``extra['skiplog']`` set."""
    return not record.get("extra", {}).get("skiplog", False)


def configure_logging(
    loguru_filter: Callable[[Dict[str, Any]], bool] = _loguru_skiplog_filter,
    log_file: Path | None = None,
    level: str | None = None,
) -> None:
    """Configure ``loguru`` sinks: coloured stderr plus an optional rotating log file.

    Raises:
        OSError: If the log file (or its directory) cannot be created.
    """
    os.environ["LOGURU_LEVEL"] = level or os.getenv("LOGURU_LEVEL", "INFO")
    glogger.remove()
    logger_fmt: str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>::<cyan>{extra[classname]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    glogger.add(sys.stderr, level=os.getenv("LOGURU_LEVEL"), format=logger_fmt, filter=loguru_filter)  # type: ignore[arg-type]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # Open once up front so an unwritable path fails here, not on the first record
        with open(log_file, "a"):
            pass
        glogger.add(
            str(log_file),
            level=os.getenv("LOGURU_LEVEL"),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} - {message}",
            filter=loguru_filter,  # type: ignore[arg-type]
            rotation=LOG_ROTATION,
            retention=LOG_RETENTION,
            enqueue=True,
        )

    glogger.configure(extra={"classname": "None", "skiplog": False})
    glogger.enable(__name__)


def log_banner(title: str, rows: list[list[Any]]) -> None:
    """Log ``rows`` as a ``mixed_grid`` table under a title bar, bypassing the log format."""
    lines = tabulate(rows, tablefmt="mixed_grid").split("\n")
    width = len(lines[0])
    header = [
        "┍" + "━" * (width - 2) + "┑",
        "│ " + title.center(width - 4) + " │",
        lines[0].replace("┍", "┝").replace("┑", "┥").replace("┯", "┿"),
    ]
    glogger.opt(raw=True).info("\n{}\n", "\n".join(header + lines[1:]))


from netstartup.exceptions import (  # noqa: E402
    BondRecordError,
    ConfigError,
    LockError,
    NetStartupError,
    ProbeError,
    ProbeTimeoutError,
    ServiceManagerError,
)

__all__ = [
    "glogger",
    "configure_logging",
    "log_banner",
    "NetStartupError",
    "ProbeError",
    "BondRecordError",
    "ProbeTimeoutError",
    "ServiceManagerError",
    "ConfigError",
    "LockError",
]
