"""
Tests for the Aggregator
"""

import itertools

import pytest

from merge_gate.aggregator import blocking_checks, reduce
from merge_gate.main import CheckObservation, CheckSpec, CheckState, ConfigurationError, Verdict


def _latest(**states):
    return {name: CheckObservation(name, state) for name, state in states.items()}


SPECS = (CheckSpec("build"), CheckSpec("scan"))


class TestReduce:
    """Tests for reduce()"""

    def test_all_success(self):
        """Should succeed when every required check succeeded"""
        latest = _latest(build=CheckState.SUCCESS, scan=CheckState.SUCCESS)
        assert reduce(SPECS, latest) == Verdict.SUCCESS

    def test_failure_wins_over_pending(self):
        """Should fail fast even while other checks are still running"""
        latest = _latest(build=CheckState.FAILURE, scan=CheckState.PENDING)
        assert reduce(SPECS, latest) == Verdict.FAILURE

    def test_failure_wins_over_error(self):
        """Should fail even when another check had a fetch error"""
        latest = _latest(build=CheckState.ERROR, scan=CheckState.FAILURE)
        assert reduce(SPECS, latest) == Verdict.FAILURE

    @pytest.mark.parametrize("waiting", [
        CheckState.PENDING,
        CheckState.IN_PROGRESS,
        CheckState.ERROR,
        CheckState.NOT_FOUND,
    ])
    def test_waiting_states_are_pending(self, waiting):
        """Should keep waiting on any non-terminal state, including ERROR"""
        latest = _latest(build=CheckState.SUCCESS, scan=waiting)
        assert reduce(SPECS, latest) == Verdict.PENDING

    def test_missing_observation_is_pending(self):
        """Should treat a check with no observation as pending"""
        latest = _latest(build=CheckState.SUCCESS)
        assert reduce(SPECS, latest) == Verdict.PENDING

    def test_optional_checks_do_not_gate(self):
        """Should ignore optional checks entirely"""
        specs = SPECS + (CheckSpec("lint", required=False),)
        latest = _latest(
            build=CheckState.SUCCESS,
            scan=CheckState.SUCCESS,
            lint=CheckState.FAILURE,
        )
        assert reduce(specs, latest) == Verdict.SUCCESS

    def test_optional_pending_does_not_hold_the_gate(self):
        """Should not wait on an optional check"""
        specs = SPECS + (CheckSpec("lint", required=False),)
        latest = _latest(build=CheckState.SUCCESS, scan=CheckState.SUCCESS)
        assert reduce(specs, latest) == Verdict.SUCCESS

    def test_no_required_checks_rejected(self):
        """Should refuse to aggregate with nothing required"""
        with pytest.raises(ConfigurationError):
            reduce((CheckSpec("lint", required=False),), {})

    def test_idempotent(self):
        """Should return the same verdict for the same snapshot"""
        latest = _latest(build=CheckState.SUCCESS, scan=CheckState.IN_PROGRESS)
        assert reduce(SPECS, latest) == reduce(SPECS, latest)
        assert latest["scan"].state == CheckState.IN_PROGRESS

    def test_every_combination_of_two_checks(self):
        """Should follow fail > pending > success across all state pairs"""
        for a, b in itertools.product(CheckState, repeat=2):
            verdict = reduce(SPECS, _latest(build=a, scan=b))
            if CheckState.FAILURE in (a, b):
                assert verdict == Verdict.FAILURE, (a, b)
            elif a == b == CheckState.SUCCESS:
                assert verdict == Verdict.SUCCESS, (a, b)
            else:
                assert verdict == Verdict.PENDING, (a, b)

    def test_never_returns_timeout(self):
        """Should leave TIMEOUT to the orchestrator"""
        for a, b in itertools.product(CheckState, repeat=2):
            assert reduce(SPECS, _latest(build=a, scan=b)) != Verdict.TIMEOUT


class TestBlockingChecks:
    """Tests for blocking_checks()"""

    def test_lists_required_checks_not_yet_successful(self):
        specs = SPECS + (CheckSpec("lint", required=False),)
        latest = _latest(build=CheckState.SUCCESS, lint=CheckState.PENDING)
        assert blocking_checks(specs, latest) == ["scan"]
