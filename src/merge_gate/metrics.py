"""
Metrics Tracking

Tracks gate metrics for monitoring and analysis.
"""

import json
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .main import CheckObservation, CheckState


@dataclass
class RunMetrics:
    """Metrics for a single gating run"""
    run_id: str
    checks: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: int = 0
    status: str = "running"
    ticks: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "checks": self.checks,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "ticks": self.ticks,
        }


class MetricsCollector:
    """
    Collects metrics for gate runs.

    Provides real-time statistics and JSON export.
    """

    def __init__(self, metrics_path: Optional[Path] = None):
        self.metrics_path = metrics_path or Path(
            os.getenv("GATE_METRICS_PATH", ".merge-gate/metrics")
        )

        self._run_metrics: Dict[str, RunMetrics] = {}
        self._start_time = datetime.now()

        self._counters = {
            "runs_started": 0,
            "runs_succeeded": 0,
            "runs_failed": 0,
            "runs_timed_out": 0,
            "runs_cancelled": 0,
            "ticks": 0,
            "observations": 0,
            "fetch_errors": 0,
            "fetch_timeouts": 0,
            "not_found_observations": 0,
        }

        self._timing = {
            "tick_duration_ms": [],
            "run_duration_ms": [],
        }

    # =========================================================================
    # Run Tracking
    # =========================================================================

    def run_started(self, run_id: str, checks: int) -> None:
        """Record run start"""
        self._run_metrics[run_id] = RunMetrics(
            run_id=run_id,
            checks=checks,
            started_at=datetime.now(),
        )
        self._counters["runs_started"] += 1

    def tick_recorded(
        self,
        duration_ms: int,
        observations: Iterable[CheckObservation],
        run_id: Optional[str] = None,
    ) -> None:
        """Record one polling tick, credited to run_id when given"""
        self._counters["ticks"] += 1
        self._timing["tick_duration_ms"].append(duration_ms)

        for observation in observations:
            self._counters["observations"] += 1
            if observation.state is CheckState.ERROR:
                self._counters["fetch_errors"] += 1
            elif observation.state is CheckState.NOT_FOUND:
                self._counters["not_found_observations"] += 1

        if run_id in self._run_metrics:
            self._run_metrics[run_id].ticks += 1

    def fetch_timeout_recorded(self) -> None:
        """Record a fetch that outlived its timeout"""
        self._counters["fetch_timeouts"] += 1

    def run_finished(self, run_id: str, status: str) -> None:
        """Record run completion (succeeded, failed, timed_out, cancelled)"""
        counter = f"runs_{status}"
        if counter in self._counters:
            self._counters[counter] += 1

        metrics = self._run_metrics.get(run_id)
        if metrics:
            metrics.completed_at = datetime.now()
            metrics.status = status
            metrics.duration_ms = int(
                (metrics.completed_at - metrics.started_at).total_seconds() * 1000
            )
            self._timing["run_duration_ms"].append(metrics.duration_ms)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics"""
        uptime_seconds = (datetime.now() - self._start_time).total_seconds()

        tick_durations = self._timing["tick_duration_ms"]
        run_durations = self._timing["run_duration_ms"]
        finished = (
            self._counters["runs_succeeded"]
            + self._counters["runs_failed"]
            + self._counters["runs_timed_out"]
        )

        return {
            "uptime_seconds": int(uptime_seconds),
            "counters": self._counters.copy(),
            "rates": {
                "success_rate": (
                    self._counters["runs_succeeded"] / finished if finished > 0 else 0
                ),
                "timeout_rate": (
                    self._counters["runs_timed_out"] / finished if finished > 0 else 0
                ),
                "fetch_error_rate": (
                    self._counters["fetch_errors"] / self._counters["observations"]
                    if self._counters["observations"] > 0 else 0
                ),
            },
            "timing": {
                "avg_tick_duration_ms": (
                    sum(tick_durations) / len(tick_durations) if tick_durations else 0
                ),
                "max_tick_duration_ms": max(tick_durations) if tick_durations else 0,
                "avg_run_duration_ms": (
                    sum(run_durations) / len(run_durations) if run_durations else 0
                ),
            },
        }

    def get_run_metrics(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get metrics for a specific run"""
        if run_id in self._run_metrics:
            return self._run_metrics[run_id].to_dict()
        return None

    # =========================================================================
    # Export
    # =========================================================================

    def export_metrics(self, filename: Optional[str] = None) -> Path:
        """Export metrics to JSON file"""
        if filename is None:
            filename = f"metrics_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"

        self.metrics_path.mkdir(parents=True, exist_ok=True)
        filepath = self.metrics_path / filename

        data = {
            "exported_at": datetime.now().isoformat(),
            "summary": self.get_summary(),
            "runs": [m.to_dict() for m in self._run_metrics.values()],
        }

        with open(filepath, "w") as f:
            json.dump(data, f, indent=2)

        return filepath

    def reset(self) -> None:
        """Reset all metrics"""
        self._run_metrics.clear()
        self._start_time = datetime.now()
        for key in self._counters:
            self._counters[key] = 0
        for key in self._timing:
            self._timing[key] = []


# Global instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector"""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
