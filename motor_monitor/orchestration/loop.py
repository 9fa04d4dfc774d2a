"""Fixed-period acquisition, persistence and rendering loop."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from motor_monitor.instrumentation import TransportError
from motor_monitor.render import ChartRenderer, RenderError
from motor_monitor.sensors import AcquisitionAdapter, AcquisitionError, DisconnectedError
from motor_monitor.storage import MotorDataStore, StoreError
from motor_monitor.telemetry import MotorData, MotorSpecs

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Lifecycle of a monitoring loop."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class CycleOutcome(Enum):
    """How far one cycle got."""

    OK = "ok"
    DEGRADED = "degraded"  # sample acquired, at least one sink failed
    SKIPPED = "skipped"  # no sample for this cycle


@dataclass
class LoopConfig:
    """Timing and failure policy for the monitoring loop."""

    period_s: float = 1.0
    acquisition_retries: int = 2
    retry_backoff_s: float = 0.1
    backoff_multiplier: float = 2.0
    max_backoff_s: float = 1.0
    reconnect_attempts: int = 3
    reconnect_backoff_s: float = 1.0
    max_reconnect_backoff_s: float = 30.0
    max_consecutive_store_failures: int = 5

    def __post_init__(self) -> None:
        if not self.period_s > 0:
            raise ValueError("period_s must be positive")
        if self.acquisition_retries < 0 or self.reconnect_attempts < 0:
            raise ValueError("retry counts must not be negative")
        if self.retry_backoff_s < 0 or self.reconnect_backoff_s < 0:
            raise ValueError("backoff delays must not be negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be at least 1.0")
        if self.max_consecutive_store_failures < 0:
            raise ValueError("max_consecutive_store_failures must not be negative")


@dataclass
class Backoff:
    """Exponential delay sequence capped at ``maximum``."""

    initial: float
    multiplier: float = 2.0
    maximum: float = 30.0
    _current: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        self._current = self.initial

    def next_delay(self) -> float:
        delay = min(self._current, self.maximum)
        self._current = min(self._current * self.multiplier, self.maximum)
        return delay

    def reset(self) -> None:
        self._current = self.initial


@dataclass
class CycleReport:
    """What happened during one cycle; handed to the observer."""

    index: int
    sample: Optional[MotorData] = None
    attempts: int = 0
    acquisition_error: Optional[AcquisitionError] = None
    store_error: Optional[StoreError] = None
    render_error: Optional[RenderError] = None
    limit_violations: List[str] = field(default_factory=list)
    fatal: Optional[str] = None

    @property
    def outcome(self) -> CycleOutcome:
        if self.sample is None:
            return CycleOutcome.SKIPPED
        if self.store_error is not None or self.render_error is not None:
            return CycleOutcome.DEGRADED
        return CycleOutcome.OK


@dataclass
class RunSummary:
    """Counters and the final verdict of one run."""

    clean: bool = True
    reason: str = "stop requested"
    cycles: int = 0
    successful: int = 0
    degraded: int = 0
    skipped: int = 0
    store_failures: int = 0
    render_failures: int = 0
    limit_breaches: int = 0

    def record(self, report: CycleReport) -> None:
        self.cycles += 1
        outcome = report.outcome
        if outcome is CycleOutcome.OK:
            self.successful += 1
        elif outcome is CycleOutcome.DEGRADED:
            self.degraded += 1
        else:
            self.skipped += 1
        if report.store_error is not None:
            self.store_failures += 1
        if report.render_error is not None:
            self.render_failures += 1
        if report.limit_violations:
            self.limit_breaches += 1

    def fail(self, reason: str) -> None:
        self.clean = False
        self.reason = reason


class MonitoringLoop:
    """Drives acquire -> convert -> {persist, render} once per period.

    Only one cycle is in flight at a time. Blocking work runs in worker threads
    and is awaited before the next cycle starts, so the transport session is
    never used from two threads at once and samples reach both sinks in
    acquisition order.
    """

    def __init__(
        self,
        adapter: AcquisitionAdapter,
        store: MotorDataStore,
        renderer: ChartRenderer,
        config: Optional[LoopConfig] = None,
        observer: Optional[Callable[[CycleReport], None]] = None,
        specs: Optional[MotorSpecs] = None,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.adapter = adapter
        self.store = store
        self.renderer = renderer
        self.config = config or LoopConfig()
        self.observer = observer
        self.specs = specs
        self._monotonic = monotonic
        self._sleep = sleep
        self._state = LoopState.IDLE
        self._stop_requested = False
        self._wakeup: Optional[asyncio.Event] = None
        self._store_failures = 0

    # ------------------------------------------------------------------
    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def consecutive_store_failures(self) -> int:
        return self._store_failures

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def stop(self) -> None:
        """Request a cooperative stop; honored at the end of the current cycle.

        Must be called from the thread running the event loop.
        """
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()

    # ------------------------------------------------------------------
    async def run(self, max_cycles: Optional[int] = None) -> RunSummary:
        """Run until stopped, a fatal failure, or ``max_cycles`` cycles."""
        if self._state is not LoopState.IDLE:
            raise RuntimeError(f"Monitoring loop cannot be started from state {self._state.value}")
        if max_cycles is not None and max_cycles < 0:
            raise ValueError(f"max_cycles must not be negative, got {max_cycles}")
        summary = RunSummary()
        self._wakeup = asyncio.Event()
        if self._stop_requested:
            self._wakeup.set()

        try:
            await asyncio.to_thread(self.store.setup)
        except StoreError as exc:
            logger.error("Cannot prepare sample store: %s", exc)
            summary.fail(f"schema setup failed: {exc}")
            await self._shutdown(summary)
            return summary

        try:
            await asyncio.to_thread(self.adapter.connect)
        except TransportError as exc:
            logger.warning("Initial transport connect failed: %s", exc)

        self._state = LoopState.RUNNING
        logger.info("Monitoring started (period %.3fs)", self.config.period_s)
        deadline = self._monotonic()
        index = 0
        try:
            while not self._stop_requested:
                if max_cycles is not None and index >= max_cycles:
                    summary.reason = f"completed {max_cycles} cycles"
                    break
                await self._wait_until(deadline)
                if self._stop_requested:
                    break
                report = await self.run_cycle(index)
                summary.record(report)
                if self.observer is not None:
                    self.observer(report)
                if report.fatal:
                    summary.fail(report.fatal)
                    break
                index += 1
                deadline = self.next_deadline(deadline, widen=report.outcome is CycleOutcome.SKIPPED)
        except Exception as exc:
            summary.fail(f"unexpected error: {exc}")
            raise
        finally:
            await self._shutdown(summary)
        return summary

    async def run_cycle(self, index: int = 0) -> CycleReport:
        """Acquire one sample and fan it out to both sinks."""
        report = CycleReport(index=index)
        sample = await self._acquire(report)
        if sample is None:
            if report.fatal is None:
                logger.warning(
                    "Cycle %d skipped after %d attempt(s): %s",
                    index,
                    report.attempts,
                    report.acquisition_error,
                )
            return report

        report.sample = sample
        if self.specs is not None:
            report.limit_violations = self.specs.limit_violations(sample)
            if report.limit_violations:
                logger.warning(
                    "Cycle %d: outside motor ratings: %s", index, ", ".join(report.limit_violations)
                )
        await asyncio.gather(self._persist(sample, report), self._render(sample, report))

        if self._store_failures > self.config.max_consecutive_store_failures:
            report.fatal = f"{self._store_failures} consecutive store write failures"
            logger.error("Cycle %d: %s, stopping", index, report.fatal)
        elif report.outcome is CycleOutcome.OK:
            logger.debug(
                "Cycle %d ok: power=%.3f kW speed=%.1f rpm heat=%.1f",
                index,
                sample.current_power,
                sample.current_speed,
                sample.current_heat,
            )
        return report

    def next_deadline(self, deadline: float, widen: bool = False) -> float:
        """Next period boundary after ``deadline``; boundaries already passed are skipped."""
        period = self.config.period_s
        deadline += period * (2 if widen else 1)
        now = self._monotonic()
        if deadline < now:
            missed = math.ceil((now - deadline) / period)
            logger.warning("Cycle overran its period, skipping %d boundary(ies)", missed)
            deadline += missed * period
        return deadline

    # ------------------------------------------------------------------
    async def _wait_until(self, deadline: float) -> None:
        delay = deadline - self._monotonic()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _acquire(self, report: CycleReport) -> Optional[MotorData]:
        cfg = self.config
        backoff = Backoff(cfg.retry_backoff_s, cfg.backoff_multiplier, cfg.max_backoff_s)
        attempts = cfg.acquisition_retries + 1
        for attempt in range(1, attempts + 1):
            report.attempts = attempt
            try:
                return await asyncio.to_thread(self.adapter.read_sample)
            except DisconnectedError as exc:
                report.acquisition_error = exc
                logger.warning("Cycle %d: %s", report.index, exc)
                if not await self._reconnect():
                    report.fatal = (
                        f"transport unrecoverable after {cfg.reconnect_attempts} reconnect attempt(s)"
                    )
                    logger.error("Cycle %d: %s", report.index, report.fatal)
                    return None
            except AcquisitionError as exc:
                report.acquisition_error = exc
                if attempt < attempts:
                    delay = backoff.next_delay()
                    logger.warning(
                        "Cycle %d: acquisition attempt %d/%d failed (%s), retrying in %.2fs",
                        report.index,
                        attempt,
                        attempts,
                        exc,
                        delay,
                    )
                    await self._sleep(delay)
        return None

    async def _reconnect(self) -> bool:
        cfg = self.config
        backoff = Backoff(cfg.reconnect_backoff_s, cfg.backoff_multiplier, cfg.max_reconnect_backoff_s)
        for attempt in range(1, cfg.reconnect_attempts + 1):
            delay = backoff.next_delay()
            logger.info(
                "Reconnecting transport (attempt %d/%d, wait %.2fs)",
                attempt,
                cfg.reconnect_attempts,
                delay,
            )
            await self._sleep(delay)
            if await asyncio.to_thread(self.adapter.reconnect):
                return True
        return False

    async def _persist(self, sample: MotorData, report: CycleReport) -> None:
        try:
            await asyncio.to_thread(self.store.insert, sample)
        except StoreError as exc:
            report.store_error = exc
            self._store_failures += 1
            logger.warning(
                "Cycle %d: store write failed (%d consecutive): %s",
                report.index,
                self._store_failures,
                exc,
            )
            return
        if self._store_failures:
            logger.info("Store recovered after %d failed write(s)", self._store_failures)
        self._store_failures = 0

    async def _render(self, sample: MotorData, report: CycleReport) -> None:
        self.renderer.push(sample)
        try:
            await asyncio.to_thread(self.renderer.render)
        except RenderError as exc:
            report.render_error = exc
            logger.warning("Cycle %d: chart render failed: %s", report.index, exc)

    async def _shutdown(self, summary: RunSummary) -> None:
        self._state = LoopState.STOPPING
        for name, close in (
            ("renderer", self.renderer.close),
            ("store", self.store.close),
            ("transport", self.adapter.close),
        ):
            try:
                await asyncio.to_thread(close)
            except Exception as exc:
                logger.error("Failed to close %s: %s", name, exc)
                if summary.clean:
                    summary.fail(f"failed to close {name}: {exc}")
        self._state = LoopState.STOPPED
        if summary.clean:
            logger.info(
                "Monitoring stopped cleanly (%s): %d cycles, %d ok, %d degraded, %d skipped",
                summary.reason,
                summary.cycles,
                summary.successful,
                summary.degraded,
                summary.skipped,
            )
        else:
            logger.error(
                "Monitoring stopped after failure (%s): %d cycles, %d ok, %d degraded, %d skipped",
                summary.reason,
                summary.cycles,
                summary.successful,
                summary.degraded,
                summary.skipped,
            )
