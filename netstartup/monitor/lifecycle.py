"""Lifecycle controller: the polling loop, the two exit timers and signal shutdown."""

from __future__ import annotations

import queue
import signal
import threading
import time
from enum import Enum
from types import FrameType
from typing import Callable, Sequence

from loguru import logger

from netstartup.monitor.config import MonitorConfig
from netstartup.monitor.state import Aggregator, ReadinessState
from netstartup.probes.base import BaseProbe
from netstartup.probes.models import Flag, ProbeOutcome, ProbeResult


class ExitReason(str, Enum):
    TOTAL_TIMEOUT = "total_timeout"
    GRACE_ELAPSED = "grace_elapsed"
    READY = "ready"
    SIGNAL = "signal"


def evaluate_exit(
    state: ReadinessState,
    now: float,
    total_timeout: float,
    run_after_success: float,
    blocking: bool,
) -> ExitReason | None:
    """Decide whether the run is over. The total timeout is checked first."""
    if now - state.started_at >= total_timeout:
        return ExitReason.TOTAL_TIMEOUT
    if state.complete_since is not None:
        if blocking:
            return ExitReason.READY
        if now - state.complete_since >= run_after_success:
            return ExitReason.GRACE_ELAPSED
    return None


def _run_probe(probe: BaseProbe, results: queue.Queue[ProbeResult]) -> None:
    try:
        result = probe.probe()
    except Exception as e:
        logger.opt(exception=e).error(f"{probe.flag.value} probe raised: {e}")
        result = ProbeResult(flag=probe.flag, outcome=ProbeOutcome.ERROR, detail=str(e))
    results.put(result)


class LifecycleController:
    """Runs polling cycles until a timer expires or a termination signal arrives.

    ``clock`` and ``wait`` are injectable; ``wait(seconds)`` returns ``True`` when the
    sleep was interrupted by a stop request.
    """

    def __init__(
        self,
        config: MonitorConfig,
        probes: Sequence[BaseProbe],
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], bool] | None = None,
    ):
        self.config = config
        self.probes = list(probes)
        self.clock = clock
        self.stop_event = threading.Event()
        self.wait = wait or self.stop_event.wait
        self.received_signal: str | None = None
        self.workers: dict[Flag, threading.Thread] = {}
        self.state = ReadinessState(started_at=clock())
        self.aggregator = Aggregator(
            self.state,
            blocking=config.blocking,
            run_after_success=config.run_after_success,
            unavailable_policy=config.unavailable_policy,
        )

    # ── signals ───────────────────────────────────────────────────────

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        self.received_signal = signal.Signals(signum).name
        self.stop_event.set()

    def install_signal_handlers(self) -> None:
        """Request a stop on SIGTERM and SIGINT. Must be called from the main thread."""
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

    def stop(self, reason: str = "stop requested") -> None:
        self.received_signal = reason
        self.stop_event.set()

    # ── one cycle ─────────────────────────────────────────────────────

    def run_cycle(self) -> dict[Flag, ProbeResult]:
        """Run every probe concurrently and collect this cycle's results.

        Results arrive through a queue created for this cycle only. Probes that miss
        the shared deadline are reported as errors; their late results are never read.
        The deadline is ``probe_timeout``, capped at the time left before the total
        timeout. A probe whose previous worker is still blocked is not started again
        and reports an error instead.
        """
        logger.info(f"=== Network Status Check === (cycle {self.state.cycles + 1})")
        collector: queue.Queue[ProbeResult] = queue.Queue()
        results: dict[Flag, ProbeResult] = {}
        for probe in self.probes:
            previous = self.workers.get(probe.flag)
            if previous is not None and previous.is_alive():
                logger.warning(f"{probe.flag.value} check from an earlier cycle is still running - not restarted")
                results[probe.flag] = ProbeResult(
                    flag=probe.flag, outcome=ProbeOutcome.ERROR, detail="previous call still running"
                )
                continue
            worker = threading.Thread(
                target=_run_probe,
                args=(probe, collector),
                name=f"netstartup-probe-{probe.flag.value}",
                daemon=True,
            )
            worker.start()
            self.workers[probe.flag] = worker

        # never wait past the total timeout
        remaining = self.state.started_at + self.config.total_timeout - self.clock()
        budget = max(0.0, min(self.config.probe_timeout, remaining))
        deadline = time.monotonic() + budget
        while len(results) < len(self.probes):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                result = collector.get(timeout=remaining)
            except queue.Empty:
                break
            results[result.flag] = result

        for probe in self.probes:
            if probe.flag not in results:
                logger.warning(f"{probe.flag.value} probe timed out after {budget:g}s")
                results[probe.flag] = ProbeResult(flag=probe.flag, outcome=ProbeOutcome.ERROR, detail="timed out")
        return results

    def step(self) -> bool:
        """Run one cycle and apply it to the state. Returns the composite readiness."""
        results = self.run_cycle()
        return self.aggregator.apply_results(results, self.clock())

    # ── loop ──────────────────────────────────────────────────────────

    def _exit_reason(self) -> ExitReason | None:
        return evaluate_exit(
            self.state,
            self.clock(),
            self.config.total_timeout,
            self.config.run_after_success,
            self.config.blocking,
        )

    def _sleep_time(self) -> float:
        now = self.clock()
        sleep = min(self.config.poll_interval, self.state.started_at + self.config.total_timeout - now)
        if self.state.complete_since is not None and not self.config.blocking:
            sleep = min(sleep, self.state.complete_since + self.config.run_after_success - now)
        return max(sleep, 0.0)

    def _log_exit(self, reason: ExitReason) -> None:
        if reason == ExitReason.TOTAL_TIMEOUT:
            logger.info(f"*** TOTAL TIMEOUT REACHED ({self.config.total_timeout:g}s) - EXITING ***")
        elif reason == ExitReason.GRACE_ELAPSED:
            logger.info(f"*** RUN-AFTER-SUCCESS PERIOD COMPLETE ({self.config.run_after_success:g}s) - EXITING ***")
        elif reason == ExitReason.READY:
            logger.info("Network ready in blocking mode - exiting")
        else:
            logger.info(f"Received signal {self.received_signal or 'unknown'}, shutting down")

    def _next_reason(self) -> ExitReason | None:
        if self.stop_event.is_set():
            return ExitReason.SIGNAL
        return self._exit_reason()

    def run(self) -> ExitReason:
        """Poll until an exit condition holds and return it."""
        while True:
            reason = self._next_reason()
            if reason is None:
                self.step()
                reason = self._next_reason()
            if reason is None and self.wait(self._sleep_time()):
                reason = ExitReason.SIGNAL
            if reason is not None:
                break
        self._log_exit(reason)
        return reason
