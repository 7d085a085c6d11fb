"""
Merge Gate Orchestrator - Core Wait Loop

Polls every configured check until the aggregate verdict is terminal or the
wait budget runs out, then reports the verdict exactly once.

State machine:
  RUNNING --tick, SUCCESS--> SUCCEEDED
  RUNNING --tick, FAILURE--> FAILED
  RUNNING --tick, PENDING, now >= deadline--> TIMED_OUT
  RUNNING --tick, PENDING, now <  deadline--> RUNNING (sleep, repeat)

A cancelled run stops polling and reports nothing.
"""

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from . import aggregator
from .checkpoint import Checkpoint, CheckpointStore
from .main import (
    CheckState,
    GateCancelledError,
    GateConfig,
    GateError,
    RunState,
    RunStatus,
    Verdict,
)
from .metrics import MetricsCollector
from .polling import PollingLoop
from .registry import CheckRegistry
from .reporting.base import GateReport, ResultReporter
from .sources.base import CheckStatusSource

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RunOutcome:
    """What a run (or a single step) ended with"""
    run_id: str
    status: RunStatus
    report: Optional[GateReport] = None

    @property
    def exit_code(self) -> int:
        return self.status.exit_code


class GateOrchestrator:
    """
    Owns one gating run.

    Each tick fetches every check (concurrently), reduces the snapshot to a
    verdict, and either stops or sleeps for the poll interval. Reporting
    happens only after RunState.settle() succeeds, so a second terminal
    transition raises instead of publishing twice.
    """

    def __init__(
        self,
        config: GateConfig,
        source: CheckStatusSource,
        reporter: ResultReporter,
        metrics: Optional[MetricsCollector] = None,
        checkpoints: Optional[CheckpointStore] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.config = config.validate()
        self.registry = CheckRegistry.build(config.required_checks, config.optional_checks)
        self.source = source
        self.reporter = reporter
        self.metrics = metrics
        self.checkpoints = checkpoints

        self._clock = clock or time.time
        self._sleep = sleep
        self._polling = PollingLoop(config.fetch_timeout_ms, metrics)
        self._abort = asyncio.Event()
        self._event_handlers: Dict[str, List[Callable]] = {}
        self._state: Optional[RunState] = None

        logger.info(
            f"Merge gate configured: required={self.registry.required_names} "
            f"optional={self.registry.optional_names} max_wait={config.max_wait_ms}ms "
            f"interval={config.poll_interval_ms}ms"
        )

    @property
    def state(self) -> Optional[RunState]:
        return self._state

    # =========================================================================
    # Long-lived loop
    # =========================================================================

    async def run(self) -> RunOutcome:
        """
        Poll until a terminal verdict, then report it.

        Raises GateCancelledError if cancel() is called first; cancelling the
        surrounding asyncio task propagates CancelledError. Neither reports.
        """
        if self._state is not None:
            raise GateError("An orchestrator drives exactly one run")

        started_at = self._clock()
        state = RunState(
            run_id=_new_run_id(),
            specs=self.registry.specs,
            started_at=started_at,
            deadline=started_at + self.config.max_wait_seconds,
        )
        self._state = state
        await self._run_started(state)

        try:
            while True:
                self._raise_if_cancelled(state)

                verdict = await self._tick(state)
                self._raise_if_cancelled(state)
                if verdict.is_terminal:
                    return await self._conclude(state, verdict)

                now = self._clock()
                if now >= state.deadline:
                    return await self._conclude(state, Verdict.TIMEOUT)

                await self._pause(min(self.config.poll_interval_seconds, state.deadline - now))

        except (asyncio.CancelledError, GateCancelledError):
            if not state.is_terminal:
                await self._run_cancelled(state)
            raise

    def cancel(self) -> None:
        """Abort the run: no further ticks and no report"""
        if not self._abort.is_set():
            logger.warning("Merge gate cancellation requested")
        self._abort.set()

    @property
    def cancelled(self) -> bool:
        return self._abort.is_set()

    # =========================================================================
    # Re-invocation mode
    # =========================================================================

    async def step(self) -> RunOutcome:
        """
        Perform a single tick against a persisted checkpoint.

        Returns RUNNING while the gate is still waiting. The reported flag is
        persisted before publishing, so a step never reports twice even if the
        process dies mid-publish.
        """
        if self.checkpoints is None:
            raise GateError("step() requires a checkpoint store")

        checkpoint = self.checkpoints.load()
        if checkpoint is None:
            checkpoint = self._new_checkpoint()
            self.checkpoints.save(checkpoint)
        elif checkpoint.specs != self.registry.specs:
            logger.warning(
                f"[{checkpoint.run_id}] Configured checks differ from the checkpoint; "
                f"keeping the checkpoint's {[spec.name for spec in checkpoint.specs]}"
            )

        if checkpoint.reported or checkpoint.verdict.is_terminal:
            logger.info(
                f"[{checkpoint.run_id}] Already reported as "
                f"{RunStatus.from_verdict(checkpoint.verdict).value}; nothing to do"
            )
            return RunOutcome(
                run_id=checkpoint.run_id,
                status=RunStatus.from_verdict(checkpoint.verdict),
            )

        state = RunState(
            run_id=checkpoint.run_id,
            specs=checkpoint.specs,
            started_at=checkpoint.started_at,
            deadline=checkpoint.deadline,
            ticks=checkpoint.ticks,
        )
        self._state = state
        self._raise_if_cancelled(state)

        verdict = await self._tick(state)
        self._raise_if_cancelled(state)
        if not verdict.is_terminal and self._clock() >= state.deadline:
            verdict = Verdict.TIMEOUT

        checkpoint.ticks = state.ticks
        checkpoint.last_states = {obs.name: obs.state.value for obs in state.snapshot()}

        if not verdict.is_terminal:
            self.checkpoints.save(checkpoint)
            remaining = max(0.0, state.deadline - self._clock())
            logger.info(f"[{state.run_id}] Still waiting ({remaining:.0f}s left)")
            return RunOutcome(run_id=state.run_id, status=RunStatus.RUNNING)

        checkpoint.verdict = verdict
        checkpoint.reported = True
        self.checkpoints.save(checkpoint)
        return await self._conclude(state, verdict)

    def _new_checkpoint(self) -> Checkpoint:
        started_at = self._clock()
        checkpoint = Checkpoint(
            run_id=_new_run_id(),
            started_at=started_at,
            deadline=started_at + self.config.max_wait_seconds,
            specs=self.registry.specs,
        )
        if self.metrics:
            self.metrics.run_started(checkpoint.run_id, len(checkpoint.specs))
        logger.info(f"[{checkpoint.run_id}] New checkpointed run started")
        return checkpoint

    # =========================================================================
    # Tick / conclude
    # =========================================================================

    async def _tick(self, state: RunState) -> Verdict:
        """Fetch all, then reduce. The aggregator sees one tick's snapshot only."""
        tick = await self._polling.tick(state.specs, self.source, state.run_id)
        state.record_tick(tick.observations)

        verdict = aggregator.reduce(state.specs, state.latest)

        counts = {s.value: tick.count(s) for s in CheckState}
        logger.info(
            f"[{state.run_id}] tick {state.ticks}: verdict={verdict.value} "
            f"({tick.duration_ms}ms) "
            + " ".join(f"{k}={v}" for k, v in counts.items() if v)
        )
        await self._emit_event(
            "tick.completed",
            state,
            verdict=verdict,
            counts=counts,
            blocking=aggregator.blocking_checks(state.specs, state.latest),
        )
        return verdict

    async def _conclude(self, state: RunState, verdict: Verdict) -> RunOutcome:
        """Settle the run and publish its report. Runs once per RunState."""
        state.settle(verdict, self._clock())

        report = GateReport(
            run_id=state.run_id,
            verdict=verdict,
            specs=state.specs,
            snapshot=state.snapshot(),
            started_at=state.started_at,
            finished_at=state.finished_at,
            ticks=state.ticks,
        )
        status = state.status

        log = logger.info if status is RunStatus.SUCCEEDED else logger.warning
        log(f"[{state.run_id}] Merge gate {status.value.upper()}: {report.summary()}")

        if self.metrics:
            self.metrics.run_finished(state.run_id, status.value)
        await self._emit_event(f"run.{status.value}", state, report=report)

        await self.reporter.publish(report)
        return RunOutcome(run_id=state.run_id, status=status, report=report)

    async def _pause(self, seconds: float) -> None:
        """Inter-tick sleep; returns early if the run is cancelled"""
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._abort.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _raise_if_cancelled(self, state: RunState) -> None:
        if self._abort.is_set():
            raise GateCancelledError(f"Run {state.run_id} cancelled after {state.ticks} tick(s)")

    async def _run_started(self, state: RunState) -> None:
        logger.info(
            f"[{state.run_id}] Merge gate started: waiting on "
            f"{len(self.registry.required_names)} required check(s) "
            f"for up to {self.config.max_wait_seconds:.0f}s"
        )
        if self.metrics:
            self.metrics.run_started(state.run_id, len(state.specs))
        await self._emit_event("run.started", state)

    async def _run_cancelled(self, state: RunState) -> None:
        logger.warning(f"[{state.run_id}] Merge gate cancelled; no verdict reported")
        if self.metrics:
            self.metrics.run_finished(state.run_id, "cancelled")
        await self._emit_event("run.cancelled", state)

    # =========================================================================
    # Event System
    # =========================================================================

    def on(self, event: str, handler: Callable) -> None:
        """Register event handler"""
        if event not in self._event_handlers:
            self._event_handlers[event] = []
        self._event_handlers[event].append(handler)

    async def _emit_event(self, event: str, state: RunState, **kwargs) -> None:
        """Call registered handlers; a failing handler never breaks the run"""
        for handler in self._event_handlers.get(event, []):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(event, state, **kwargs)
                else:
                    handler(event, state, **kwargs)
            except Exception as e:
                logger.error(f"Event handler error for {event}: {e}")


def _new_run_id() -> str:
    return str(uuid.uuid4())[:8]
