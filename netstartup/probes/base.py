"""Abstract base probe."""

from __future__ import annotations

from abc import ABC, abstractmethod

from loguru import logger

from netstartup.exceptions import ProbeError
from netstartup.probes.models import Flag, ProbeOutcome, ProbeResult


class BaseProbe(ABC):
    """One readiness check, feeding exactly one :class:`Flag`.

    Subclasses implement :meth:`check`. Callers use :meth:`probe`, which never raises:
    any failure becomes an ``error`` result for this cycle.
    """

    flag: Flag

    @abstractmethod
    def check(self) -> ProbeResult:
        """Run the check against live OS state."""

    def probe(self) -> ProbeResult:
        try:
            return self.check()
        except ProbeError as e:
            logger.warning(f"{self.flag.value} probe failed: {e}")
            return self.error(str(e))
        except OSError as e:
            logger.warning(f"{self.flag.value} probe OS error: {e}")
            return self.error(str(e))
        except Exception as e:
            logger.opt(exception=e).error(f"{self.flag.value} probe crashed: {e}")
            return self.error(f"unexpected error: {e}")

    def result(self, ready: bool, detail: str = "") -> ProbeResult:
        return ProbeResult(flag=self.flag, outcome=ProbeOutcome.READY if ready else ProbeOutcome.NOT_READY, detail=detail)

    def unavailable(self, detail: str = "") -> ProbeResult:
        return ProbeResult(flag=self.flag, outcome=ProbeOutcome.UNAVAILABLE, detail=detail)

    def error(self, detail: str = "") -> ProbeResult:
        return ProbeResult(flag=self.flag, outcome=ProbeOutcome.ERROR, detail=detail)

    def close(self) -> None:
        """Release any collaborator held across cycles."""
