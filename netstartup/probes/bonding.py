"""Bond/LACP evaluation: parse /proc/net/bonding/<bond> and apply the per-mode health policy.

The parser and the policy are separate so that each bonding mode can be tested against
synthetic records without touching the OS.
"""

from __future__ import annotations

from loguru import logger

from netstartup.probes.models import BondMode, BondStatus, SlaveLACPState
from netstartup.probes.sysfs import SysfsReader

# sub-blocks inside a record that carry their own "state" lines
_ACTOR = "actor"
_PARTNER = "partner"
_OTHER = "other"


def _bond_mode(description: str) -> BondMode:
    if "802.3ad" in description:
        return BondMode.LACP
    if "active-backup" in description:
        return BondMode.ACTIVE_BACKUP
    return BondMode.OTHER


def _parse_state(key: str, value: str) -> int | None:
    """Parse an actor state value.

    ``0x``-prefixed values are hex. The kernel prints ``port state:`` in decimal; a bare
    ``state:`` field is hex.
    """
    value = value.strip().split()[0] if value.strip() else ""
    if not value:
        return None
    try:
        if value.lower().startswith("0x"):
            return int(value, 16)
        if key == "port state":
            return int(value, 10)
        return int(value, 16)
    except ValueError:
        return None


def _sub_block(key: str) -> str | None:
    if "lacp pdu" in key:
        if "actor" in key:
            return _ACTOR
        if "partner" in key:
            return _PARTNER
    if key in ("active aggregator info", "802.3ad info"):
        return _OTHER
    return None


def parse_bond_record(name: str, text: str) -> BondStatus:
    """Parse one kernel bonding record into a :class:`BondStatus`.

    ``lacp_complete`` is left ``False``; use :func:`assess_bond` to apply the health policy.
    """
    description = ""
    bond_mii: str | None = None
    active_slave: str | None = None
    has_active_field = False
    slaves: list[SlaveLACPState] = []

    current: SlaveLACPState | None = None
    block: str | None = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            block = None
            continue
        key, sep, value = line.partition(":")
        key = key.strip().lower()
        value = value.strip()

        sub = _sub_block(key)
        if sub is not None:
            block = sub
            continue
        if not sep:
            continue

        if key == "slave interface":
            current = SlaveLACPState(name=value)
            slaves.append(current)
            block = None
        elif key == "bonding mode":
            description = value
        elif key == "currently active slave":
            has_active_field = True
            active_slave = value or None
        elif key == "mii status":
            if current is None:
                if bond_mii is None:
                    bond_mii = value.lower()
            elif current.mii_status == "unknown":
                current.mii_status = value.lower()
        elif key in ("state", "port state") and current is not None and block == _ACTOR:
            if current.actor_state is None:
                current.actor_state = _parse_state(key, value)

    return BondStatus(
        name=name,
        mode=_bond_mode(description),
        mode_description=description,
        mii_status=bond_mii or "unknown",
        active_slave=active_slave,
        has_active_slave_field=has_active_field,
        slaves=slaves,
    )


def evaluate_bond_health(status: BondStatus) -> tuple[bool, str]:
    """Apply the health policy for the bond's mode.

    Returns:
        ``(healthy, reason)``; ``reason`` is empty when healthy.
    """
    if status.total_slaves == 0:
        return False, "no slaves"
    if status.mii_status != "up":
        return False, f"MII status {status.mii_status}"

    if status.mode == BondMode.LACP:
        pending = [s.name for s in status.slaves if not s.negotiated]
        if pending:
            return False, f"LACP not negotiated on {', '.join(pending)}"
        return True, ""

    if status.mode == BondMode.ACTIVE_BACKUP:
        if status.active_slave is None or status.active_slave == "None":
            return False, "no active slave"
        return True, ""

    if status.slaves_up == 0:
        return False, "no slave with MII up"
    if status.has_active_slave_field and (status.active_slave is None or status.active_slave == "None"):
        return False, "no active slave"
    return True, ""


def assess_bond(status: BondStatus) -> BondStatus:
    """Return a copy of ``status`` with ``lacp_complete`` set from :func:`evaluate_bond_health`."""
    healthy, _ = evaluate_bond_health(status)
    return status.model_copy(update={"lacp_complete": healthy})


def _fmt_state(state: int | None) -> str:
    return "n/a" if state is None else f"0x{state:02x}"


class BondEvaluator:
    """Reads a bond's kernel record and evaluates it."""

    def __init__(self, sysfs: SysfsReader):
        self.sysfs = sysfs

    def evaluate(self, name: str) -> BondStatus:
        """Read, parse and assess bond ``name``.

        Raises:
            BondRecordError: If the bonding record cannot be read.
        """
        status = parse_bond_record(name, self.sysfs.bond_record(name))
        healthy, reason = evaluate_bond_health(status)

        logger.info(
            f"Bond {name}: mode={status.mode_description or status.mode.value}, "
            f"mii_status={status.mii_status}, active_slave={status.active_slave or 'None'}, "
            f"slaves={status.slaves_up}/{status.total_slaves}"
        )
        if status.mode == BondMode.LACP:
            for slave in status.slaves:
                if slave.negotiated:
                    logger.info(f"Bond {name} slave {slave.name}: LACP negotiated (state: {_fmt_state(slave.actor_state)})")
                else:
                    logger.info(
                        f"Bond {name} slave {slave.name}: LACP NOT negotiated "
                        f"(state: {_fmt_state(slave.actor_state)}, collecting={slave.collecting}, "
                        f"distributing={slave.distributing})"
                    )
        if healthy:
            logger.info(f"Bond {name}: HEALTHY")
        else:
            logger.info(f"Bond {name}: UNHEALTHY ({reason})")
        return status.model_copy(update={"lacp_complete": healthy})
