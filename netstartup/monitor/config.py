"""Monitor configuration: pydantic model layered from defaults, environment and CLI flags."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from netstartup.exceptions import ConfigError
from netstartup.probes.services import DEFAULT_NETWORK_SERVICES

INTERFACE_TYPES = ("ethernet", "bond", "wireless", "tunnel", "other", "all")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ms|s|m|h)?\s*$", re.IGNORECASE)
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

# environment variable -> field
ENV_VARS = {
    "TOTAL_TIMEOUT": "total_timeout",
    "RUN_AFTER_SUCCESS": "run_after_success",
    "SLEEP_INTERVAL": "poll_interval",
    "PING_TIMEOUT": "ping_timeout",
    "DNS_TIMEOUT": "dns_timeout",
    "PROBE_TIMEOUT": "probe_timeout",
    "INTERFACE_TYPES": "interface_types",
    "REQUIRED_INTERFACES": "required_interfaces",
    "NETWORK_SERVICES": "network_services",
    "RESOLVER_HOSTNAME": "resolver_hostname",
    "UNAVAILABLE_POLICY": "unavailable_policy",
    "LOG_FILE": "log_file",
    "LOCK_FILE": "lock_file",
}


def parse_duration(value: Any) -> float:
    """Parse ``1.5s``, ``500ms``, ``2m``, ``1h`` or bare seconds into seconds.

    Raises:
        ConfigError: If ``value`` is not a non-negative duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise ConfigError(f"invalid duration: {value!r}")
        seconds = float(match.group(1)) * _UNITS[(match.group(2) or "s").lower()]
    if seconds < 0:
        raise ConfigError(f"duration must not be negative: {value!r}")
    return seconds


def parse_list(value: Any) -> list[str]:
    """Split a space- and/or comma-separated string into a list; lists pass through."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item for item in re.split(r"[\s,]+", value) if item]
    return [str(item) for item in value]


def _is_root() -> bool:
    return os.geteuid() == 0


def _writable_home() -> Path | None:
    home = os.environ.get("HOME")
    if home and os.path.isdir(home) and os.access(home, os.W_OK):
        return Path(home)
    return None


def _default_path(system_path: str, stem: str, suffix: str) -> Path:
    if _is_root():
        return Path(system_path)
    home = _writable_home()
    if home is not None:
        return home / f"{stem}{suffix}"
    return Path(tempfile.gettempdir()) / f"{stem}_{os.getuid()}{suffix}"


def default_log_file() -> Path:
    return _default_path("/var/log/network_startup_monitor.log", "network_startup_monitor", ".log")


def default_lock_file() -> Path:
    return _default_path("/var/run/network_monitor.lock", "network_monitor", ".lock")


class MonitorConfig(BaseModel):
    """Validated, immutable monitor settings. Durations are seconds."""

    model_config = ConfigDict(frozen=True)

    total_timeout: float = 900.0
    run_after_success: float = 60.0
    poll_interval: float = 1.0
    ping_timeout: float = 1.0
    dns_timeout: float = 1.0
    probe_timeout: float = 5.0
    blocking: bool = False
    interface_types: list[str] = Field(default_factory=lambda: ["ethernet", "bond"])
    required_interfaces: list[str] = Field(default_factory=list)
    network_services: list[str] = Field(default_factory=lambda: list(DEFAULT_NETWORK_SERVICES))
    resolver_hostname: str = "google.com"
    log_file: Optional[Path] = Field(default_factory=default_log_file)
    lock_file: Path = Field(default_factory=default_lock_file)
    unavailable_policy: Literal["exclude", "fail"] = "exclude"
    sysfs_root: Path = Path("/")

    @field_validator(
        "total_timeout", "run_after_success", "poll_interval", "ping_timeout", "dns_timeout", "probe_timeout",
        mode="before",
    )
    @classmethod
    def _duration(cls, value: Any) -> float:
        try:
            return parse_duration(value)
        except ConfigError as e:
            raise ValueError(str(e)) from e

    @field_validator("poll_interval", "probe_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("interface_types", "required_interfaces", "network_services", mode="before")
    @classmethod
    def _list(cls, value: Any) -> list[str]:
        return parse_list(value)

    @field_validator("interface_types")
    @classmethod
    def _known_types(cls, value: list[str]) -> list[str]:
        value = [v.lower() for v in value]
        unknown = [v for v in value if v not in INTERFACE_TYPES]
        if unknown:
            raise ValueError(f"unknown interface type(s) {', '.join(unknown)}; valid: {', '.join(INTERFACE_TYPES)}")
        return value

    @field_validator("unavailable_policy", mode="before")
    @classmethod
    def _policy(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @model_validator(mode="before")
    @classmethod
    def _blocking_has_no_grace(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("blocking"):
            return {**data, "run_after_success": 0}
        return data

    @property
    def mode(self) -> str:
        return "blocking" if self.blocking else "monitoring"

    @classmethod
    def build(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> MonitorConfig:
        """Layer model defaults, then environment variables, then ``overrides`` (``None`` values are ignored).

        Raises:
            ConfigError: If any value fails validation.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for var, field in ENV_VARS.items():
            raw = environ.get(var)
            if raw is not None and raw != "":
                values[field] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}") from e
