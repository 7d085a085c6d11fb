"""
Tests for Metrics Tracking
"""

import json

from merge_gate.main import CheckObservation, CheckState
from merge_gate.metrics import MetricsCollector, get_metrics


def _observations(*states):
    return [CheckObservation(f"check-{i}", state) for i, state in enumerate(states)]


class TestMetricsCollector:
    """Tests for MetricsCollector"""

    def test_run_lifecycle(self, tmp_path):
        metrics = MetricsCollector(tmp_path)
        metrics.run_started("run-1", checks=3)
        first = _observations(CheckState.PENDING, CheckState.ERROR, CheckState.SUCCESS)
        second = _observations(CheckState.SUCCESS, CheckState.NOT_FOUND, CheckState.SUCCESS)
        metrics.tick_recorded(120, first, run_id="run-1")
        metrics.tick_recorded(80, second, run_id="run-1")
        metrics.run_finished("run-1", "succeeded")

        summary = metrics.get_summary()
        assert summary["counters"]["runs_started"] == 1
        assert summary["counters"]["runs_succeeded"] == 1
        assert summary["counters"]["ticks"] == 2
        assert summary["counters"]["observations"] == 6
        assert summary["counters"]["fetch_errors"] == 1
        assert summary["counters"]["not_found_observations"] == 1
        assert summary["rates"]["success_rate"] == 1.0
        assert summary["timing"]["avg_tick_duration_ms"] == 100
        assert summary["timing"]["max_tick_duration_ms"] == 120

        run = metrics.get_run_metrics("run-1")
        assert run["status"] == "succeeded"
        assert run["ticks"] == 2
        assert run["completed_at"] is not None

    def test_ticks_credited_to_their_own_run(self):
        """Should keep tick counts separate for runs sharing one collector"""
        metrics = MetricsCollector()
        metrics.run_started("run-a", checks=1)
        metrics.run_started("run-b", checks=1)
        metrics.tick_recorded(10, _observations(CheckState.PENDING), run_id="run-a")
        metrics.tick_recorded(10, _observations(CheckState.PENDING), run_id="run-a")
        metrics.tick_recorded(10, _observations(CheckState.PENDING), run_id="run-b")

        assert metrics.get_run_metrics("run-a")["ticks"] == 2
        assert metrics.get_run_metrics("run-b")["ticks"] == 1
        assert metrics.get_summary()["counters"]["ticks"] == 3

    def test_rates(self):
        metrics = MetricsCollector()
        for run_id, status in [("a", "succeeded"), ("b", "timed_out"), ("c", "failed"), ("d", "timed_out")]:
            metrics.run_started(run_id, checks=1)
            metrics.run_finished(run_id, status)

        rates = metrics.get_summary()["rates"]
        assert rates["success_rate"] == 0.25
        assert rates["timeout_rate"] == 0.5

    def test_cancelled_runs_not_in_rates(self):
        metrics = MetricsCollector()
        metrics.run_started("a", checks=1)
        metrics.run_finished("a", "cancelled")

        summary = metrics.get_summary()
        assert summary["counters"]["runs_cancelled"] == 1
        assert summary["rates"]["success_rate"] == 0

    def test_export(self, tmp_path):
        metrics = MetricsCollector(tmp_path / "metrics")
        metrics.run_started("run-1", checks=2)
        metrics.run_finished("run-1", "failed")

        path = metrics.export_metrics("out.json")
        data = json.loads(path.read_text())
        assert data["summary"]["counters"]["runs_failed"] == 1
        assert data["runs"][0]["run_id"] == "run-1"

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.run_started("run-1", checks=1)
        metrics.fetch_timeout_recorded()
        metrics.reset()

        summary = metrics.get_summary()
        assert all(value == 0 for value in summary["counters"].values())
        assert metrics.get_run_metrics("run-1") is None

    def test_global_instance(self):
        assert get_metrics() is get_metrics()
