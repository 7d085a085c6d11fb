"""
Aggregator

Reduces one snapshot of check observations to a single verdict.

Rules, first match wins:
1. Any required check is FAILURE -> FAILURE (fail fast, no waiting on the rest)
2. Any required check is missing, NOT_FOUND, PENDING, IN_PROGRESS or ERROR -> PENDING
3. Otherwise every required check is SUCCESS -> SUCCESS

ERROR is a transient fetch problem and is retried on the next tick; it never
fails the gate by itself. Optional checks never influence the verdict.
"""

from typing import Iterable, Mapping

from .main import CheckObservation, CheckSpec, CheckState, ConfigurationError, Verdict

# States that mean "keep waiting"
WAITING_STATES = frozenset({
    CheckState.PENDING,
    CheckState.IN_PROGRESS,
    CheckState.ERROR,
    CheckState.NOT_FOUND,
})


def reduce(
    specs: Iterable[CheckSpec],
    latest: Mapping[str, CheckObservation],
) -> Verdict:
    """Map the latest observations of the required checks to a verdict"""
    required = [spec for spec in specs if spec.required]
    if not required:
        raise ConfigurationError("Cannot aggregate a run with no required checks")

    states = [_state_of(spec.name, latest) for spec in required]

    if CheckState.FAILURE in states:
        return Verdict.FAILURE

    if any(state in WAITING_STATES for state in states):
        return Verdict.PENDING

    return Verdict.SUCCESS


def blocking_checks(
    specs: Iterable[CheckSpec],
    latest: Mapping[str, CheckObservation],
) -> list:
    """Names of required checks that are not yet SUCCESS"""
    return [
        spec.name
        for spec in specs
        if spec.required and _state_of(spec.name, latest) is not CheckState.SUCCESS
    ]


def _state_of(name: str, latest: Mapping[str, CheckObservation]) -> CheckState:
    observation = latest.get(name)
    if observation is None:
        return CheckState.NOT_FOUND
    return observation.state
