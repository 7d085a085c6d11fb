"""
Base Result Reporter
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..main import CheckObservation, CheckSpec, CheckState, RunStatus, Verdict

# GitHub rejects commit status descriptions longer than this
MAX_SUMMARY_LENGTH = 140


@dataclass
class GateReport:
    """
    Final outcome of one run, as handed to reporters.

    The snapshot names every configured check with its last-known state.
    """
    run_id: str
    verdict: Verdict
    specs: Tuple[CheckSpec, ...]
    snapshot: List[CheckObservation]
    started_at: float
    finished_at: float
    ticks: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> RunStatus:
        return RunStatus.from_verdict(self.verdict)

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at) * 1000)

    @property
    def required_names(self) -> List[str]:
        return [spec.name for spec in self.specs if spec.required]

    def state_of(self, check_name: str) -> Optional[CheckState]:
        for observation in self.snapshot:
            if observation.name == check_name:
                return observation.state
        return None

    def names_in(self, *states: CheckState, required_only: bool = True) -> List[str]:
        required = set(self.required_names)
        return [
            obs.name
            for obs in self.snapshot
            if obs.state in states and (not required_only or obs.name in required)
        ]

    def summary(self) -> str:
        """One-line description, short enough for a commit status"""
        total = len(self.required_names)

        if self.status is RunStatus.SUCCEEDED:
            text = f"All {total} required check{'s' if total != 1 else ''} passed"
        elif self.status is RunStatus.FAILED:
            failed = self.names_in(CheckState.FAILURE)
            text = f"{len(failed)} of {total} required checks failed: {', '.join(failed)}"
        elif self.status is RunStatus.TIMED_OUT:
            waiting = [
                name for name in self.required_names
                if self.state_of(name) is not CheckState.SUCCESS
            ]
            minutes = self.duration_ms / 60000
            text = f"Timed out after {minutes:.1f}m waiting on: {', '.join(waiting)}"
        else:
            text = f"Waiting on {total} required checks"

        if len(text) > MAX_SUMMARY_LENGTH:
            text = text[:MAX_SUMMARY_LENGTH - 3] + "..."
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "verdict": self.verdict.value,
            "summary": self.summary(),
            "checks": [
                {**obs.to_dict(), "required": obs.name in self.required_names}
                for obs in self.snapshot
            ],
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "duration_ms": self.duration_ms,
            "ticks": self.ticks,
            "metadata": self.metadata,
        }


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class ResultReporter(ABC):
    """Publishes a run's final verdict. Called at most once per run."""

    name: str = "base"

    @abstractmethod
    async def publish(self, report: GateReport) -> None:
        """Emit the outward status for this report"""
        pass


class CompositeReporter(ResultReporter):
    """Publishes one report to several reporters, in order"""

    name = "composite"

    def __init__(self, reporters: Sequence[ResultReporter]):
        self.reporters = list(reporters)

    async def publish(self, report: GateReport) -> None:
        for reporter in self.reporters:
            await reporter.publish(report)
