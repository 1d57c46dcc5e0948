"""Run-wide readiness state and the per-cycle aggregator that mutates it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from loguru import logger

from netstartup.probes.models import Flag, ProbeOutcome, ProbeResult

# flag -> (became ready, stopped being ready)
TRANSITIONS: dict[Flag, tuple[str, str]] = {
    Flag.INTERFACES: ("*** INTERFACES ARE NOW READY ***", "*** INTERFACES NO LONGER READY ***"),
    Flag.GATEWAY: ("*** GATEWAY IS NOW REACHABLE ***", "*** GATEWAY IS NO LONGER REACHABLE ***"),
    Flag.SERVICES: ("*** NETWORK SERVICES ARE NOW READY ***", "*** NETWORK SERVICES NO LONGER READY ***"),
    Flag.DNS: ("*** DNS RESOLUTION IS NOW WORKING ***", "*** DNS RESOLUTION NO LONGER WORKING ***"),
    Flag.LINK_MANAGER: (
        "*** NETWORKMANAGER CONNECTIVITY IS NOW FULL ***",
        "*** NETWORKMANAGER CONNECTIVITY NO LONGER FULL ***",
    ),
    Flag.NEIGHBORS: ("*** ARP TABLE IS NOW VALID ***", "*** ARP TABLE NO LONGER VALID ***"),
    Flag.ROUTES: ("*** ROUTING TABLE IS NOW VALID ***", "*** ROUTING TABLE NO LONGER VALID ***"),
}

# flag -> (summary key, true label, false label)
SUMMARY: list[tuple[Flag, str, str, str]] = [
    (Flag.INTERFACES, "Interfaces", "UP", "DOWN"),
    (Flag.GATEWAY, "Gateway", "UP", "DOWN"),
    (Flag.SERVICES, "Services", "READY", "NOT_READY"),
    (Flag.DNS, "DNS", "OK", "FAIL"),
    (Flag.LINK_MANAGER, "NetworkManager", "FULL", "LIMITED"),
    (Flag.NEIGHBORS, "ARP", "VALID", "INVALID"),
    (Flag.ROUTES, "Routing", "VALID", "INVALID"),
]

COMPLETE_COMPONENTS = "services + interfaces + gateway + DNS + NetworkManager connectivity + ARP table + routing table"


@dataclass
class ReadinessState:
    """The only state carried from one polling cycle to the next."""

    started_at: float
    flags: dict[Flag, bool] = field(default_factory=lambda: {flag: False for flag in Flag})
    complete_since: float | None = None
    cycles: int = 0

    @property
    def complete(self) -> bool:
        return all(self.flags[flag] for flag in Flag)

    def summary(self) -> str:
        parts = [f"{key}={on if self.flags[flag] else off}" for flag, key, on, off in SUMMARY]
        return "Status: " + " ".join(parts)


def outcome_to_flag(result: ProbeResult, unavailable_policy: str = "exclude") -> bool:
    """Map a probe outcome to the flag value. ``unavailable`` counts as ready under ``exclude``."""
    if result.outcome == ProbeOutcome.READY:
        return True
    if result.outcome == ProbeOutcome.UNAVAILABLE:
        return unavailable_policy == "exclude"
    return False


class Aggregator:
    """Applies one cycle of flag values to a :class:`ReadinessState`.

    Each flag change is logged exactly once; unchanged flags log nothing. The composite
    "complete" edge sets or clears ``complete_since``.
    """

    def __init__(
        self,
        state: ReadinessState,
        blocking: bool = False,
        run_after_success: float = 60.0,
        unavailable_policy: str = "exclude",
    ):
        self.state = state
        self.blocking = blocking
        self.run_after_success = run_after_success
        self.unavailable_policy = unavailable_policy

    def flags_from_results(self, results: Mapping[Flag, ProbeResult]) -> dict[Flag, bool]:
        """Missing results count as not ready."""
        return {
            flag: outcome_to_flag(results[flag], self.unavailable_policy) if flag in results else False
            for flag in Flag
        }

    def apply(self, values: Mapping[Flag, bool], now: float) -> bool:
        """Update the state with this cycle's values. Returns the composite readiness."""
        was_complete = self.state.complete
        for flag in Flag:
            new = bool(values.get(flag, False))
            if new == self.state.flags[flag]:
                continue
            became, lost = TRANSITIONS[flag]
            logger.info(became if new else lost)
            self.state.flags[flag] = new
        self.state.cycles += 1

        complete = self.state.complete
        if complete and not was_complete:
            self.state.complete_since = now
            if self.blocking:
                logger.info("*** NETWORK IS READY - UNBLOCKING BOOT PROCESS ***")
            else:
                logger.info(
                    f"*** NETWORK SETUP COMPLETE ({COMPLETE_COMPONENTS}) *** "
                    f"(will exit in {self.run_after_success:g}s)"
                )
        elif was_complete and not complete:
            self.state.complete_since = None
            if self.blocking:
                logger.info("*** NETWORK NO LONGER COMPLETE - CONTINUING TO BLOCK ***")
            else:
                logger.info("*** NETWORK NO LONGER COMPLETE - RESETTING SUCCESS TIMER ***")

        logger.info(self.state.summary())
        return complete

    def apply_results(self, results: Mapping[Flag, ProbeResult], now: float) -> bool:
        return self.apply(self.flags_from_results(results), now)
