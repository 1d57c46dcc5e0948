"""Exception hierarchy for the network startup monitor."""

from __future__ import annotations


class NetStartupError(Exception):
    """Base exception for all network startup monitor errors."""


class ProbeError(NetStartupError):
    """A probe could not complete this cycle."""


class BondRecordError(ProbeError):
    """No readable bonding record exists for the interface."""


class ProbeTimeoutError(ProbeError):
    """A bounded OS call did not finish within its timeout."""

    def __init__(self, message: str, timeout: float | None = None):
        self.timeout = timeout
        super().__init__(message)


class ServiceManagerError(ProbeError):
    """The service manager (systemd over D-Bus) query failed."""

    def __init__(self, message: str, error_name: str | None = None):
        self.error_name = error_name
        super().__init__(message)


class ConfigError(NetStartupError):
    """Invalid configuration value."""


class LockError(NetStartupError):
    """The single-instance lock could not be acquired."""

    def __init__(self, message: str, path: str = "", holder_pid: int | None = None):
        self.path = path
        self.holder_pid = holder_pid
        super().__init__(message)
