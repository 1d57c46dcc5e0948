"""Read-only access to /sys/class/net and /proc/net/bonding.

Every method reads the filesystem on each call; nothing is cached because links
and bonds appear, disappear and get renamed while the system boots.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from netstartup.exceptions import BondRecordError
from netstartup.probes._util import _validate_interface_name


class SysfsReader:
    """Filesystem view of the kernel network state, rooted at ``root`` (``/`` in production)."""

    def __init__(self, root: Path | str = "/"):
        self.root = Path(root)

    @property
    def net_dir(self) -> Path:
        return self.root / "sys" / "class" / "net"

    @property
    def bonding_dir(self) -> Path:
        return self.root / "proc" / "net" / "bonding"

    def _link_attr(self, name: str, attr: str) -> str | None:
        if not _validate_interface_name(name):
            return None
        try:
            return (self.net_dir / name / attr).read_text().strip()
        except OSError:
            # carrier reads fail with EINVAL while the link is administratively down
            return None

    def list_links(self) -> list[str]:
        """Names under /sys/class/net, sorted."""
        try:
            return sorted(p.name for p in self.net_dir.iterdir())
        except OSError as e:
            logger.debug(f"Cannot list {self.net_dir}: {e}")
            return []

    def carrier(self, name: str) -> bool | None:
        value = self._link_attr(name, "carrier")
        if value is None:
            return None
        return value == "1"

    def operstate(self, name: str) -> str:
        return self._link_attr(name, "operstate") or "unknown"

    def is_wireless(self, name: str) -> bool:
        if not _validate_interface_name(name):
            return False
        link_dir = self.net_dir / name
        return (link_dir / "wireless").exists() or (link_dir / "phy80211").exists()

    def is_bond(self, name: str) -> bool:
        if not _validate_interface_name(name):
            return False
        return (self.bonding_dir / name).is_file()

    def list_bonds(self) -> list[str]:
        try:
            return sorted(p.name for p in self.bonding_dir.iterdir() if p.is_file())
        except OSError:
            return []

    def bond_record(self, name: str) -> str:
        """Return the raw kernel bonding record for ``name``.

        Raises:
            BondRecordError: If the record does not exist or cannot be read.
        """
        if not _validate_interface_name(name):
            raise BondRecordError(f"Invalid interface name: {name}")
        path = self.bonding_dir / name
        try:
            return path.read_text()
        except FileNotFoundError as e:
            raise BondRecordError(f"bond interface {name} not found ({path})") from e
        except OSError as e:
            raise BondRecordError(f"cannot read bonding record {path}: {e}") from e
