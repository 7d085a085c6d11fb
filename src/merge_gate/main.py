"""
Configuration and Types for the Merge Gate

Data model shared by every component: check states, verdicts, run state
and the run configuration.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple


# =========================================================================
# Errors
# =========================================================================

class GateError(Exception):
    """Base exception for merge gate errors"""
    pass


class ConfigurationError(GateError):
    """Invalid or empty required-check set, or bad durations"""
    pass


class VerdictAlreadySettledError(GateError):
    """A run tried to leave a terminal state"""
    pass


class GateCancelledError(GateError):
    """The run was aborted from outside before reaching a verdict"""
    pass


class ReportingError(GateError):
    """A reporter could not publish the verdict"""
    pass


class CheckpointError(GateError):
    """Checkpoint file is unreadable or corrupt"""
    pass


# =========================================================================
# Enums
# =========================================================================

class CheckState(Enum):
    """State of a single check as reported by the status source"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    NOT_FOUND = "not_found"


class Verdict(Enum):
    """Aggregate decision for a run"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self is not Verdict.PENDING


class RunStatus(Enum):
    """Orchestrator state machine"""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @classmethod
    def from_verdict(cls, verdict: Verdict) -> "RunStatus":
        return _VERDICT_TO_STATUS[verdict]

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_VERDICT_TO_STATUS = {
    Verdict.PENDING: RunStatus.RUNNING,
    Verdict.SUCCESS: RunStatus.SUCCEEDED,
    Verdict.FAILURE: RunStatus.FAILED,
    Verdict.TIMEOUT: RunStatus.TIMED_OUT,
}

# RUNNING only surfaces from a single re-invocation step ("try again later")
_EXIT_CODES = {
    RunStatus.SUCCEEDED: 0,
    RunStatus.FAILED: 1,
    RunStatus.TIMED_OUT: 2,
    RunStatus.RUNNING: 75,
}

EXIT_CONFIGURATION_ERROR = 3
EXIT_REPORTING_ERROR = 4
EXIT_CANCELLED = 130


# =========================================================================
# Data model
# =========================================================================

@dataclass(frozen=True)
class CheckSpec:
    """A configured check; immutable for the run's lifetime"""
    name: str
    required: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "required": self.required}


@dataclass(frozen=True)
class CheckObservation:
    """Most recently fetched state of one check"""
    name: str
    state: CheckState
    observed_at: Optional[datetime] = None
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "observed_at": self.observed_at.isoformat() if self.observed_at else None,
            "detail": self.detail,
        }


@dataclass
class RunState:
    """
    State of one gating run.

    Owned by a single orchestrator. `latest` is replaced wholesale after each
    tick, and `verdict` moves from PENDING to a terminal value exactly once.
    """
    run_id: str
    specs: Tuple[CheckSpec, ...]
    started_at: float
    deadline: float
    latest: Dict[str, CheckObservation] = field(default_factory=dict)
    verdict: Verdict = Verdict.PENDING
    ticks: int = 0
    finished_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.verdict.is_terminal

    @property
    def status(self) -> RunStatus:
        return RunStatus.from_verdict(self.verdict)

    def record_tick(self, observations: Dict[str, CheckObservation]) -> None:
        """Replace the latest-known observations with one tick's snapshot"""
        if self.is_terminal:
            raise VerdictAlreadySettledError(
                f"Run {self.run_id} is already {self.verdict.value}; no further ticks"
            )
        known = {spec.name for spec in self.specs}
        self.latest.update(
            {name: obs for name, obs in observations.items() if name in known}
        )
        self.ticks += 1

    def settle(self, verdict: Verdict, finished_at: float) -> None:
        """Move to a terminal verdict. Raises if one was already set."""
        if not verdict.is_terminal:
            raise ValueError(f"Cannot settle a run on {verdict.value}")
        if self.is_terminal:
            raise VerdictAlreadySettledError(
                f"Run {self.run_id} already settled as {self.verdict.value}"
            )
        self.verdict = verdict
        self.finished_at = finished_at

    def snapshot(self) -> List[CheckObservation]:
        """Latest observation for every configured check, in configuration order"""
        return [
            self.latest.get(spec.name) or CheckObservation(spec.name, CheckState.NOT_FOUND)
            for spec in self.specs
        ]


# =========================================================================
# Configuration
# =========================================================================

def parse_check_names(raw: Optional[str]) -> List[str]:
    """Split a comma-separated check list, dropping blanks"""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer number of milliseconds, got {raw!r}")


@dataclass
class GateConfig:
    """
    Configuration for one merge gate run.

    Durations are integer milliseconds. Call validate() before polling.
    """
    # Which checks gate the merge
    required_checks: List[str] = field(
        default_factory=lambda: parse_check_names(os.getenv("GATE_REQUIRED_CHECKS"))
    )
    optional_checks: List[str] = field(
        default_factory=lambda: parse_check_names(os.getenv("GATE_OPTIONAL_CHECKS"))
    )

    # Timing
    max_wait_ms: int = 1800000        # 30 minutes
    poll_interval_ms: int = 30000     # 30 seconds
    fetch_timeout_ms: int = 10000     # 10 seconds

    # GitHub integration
    repository: str = field(default_factory=lambda: os.getenv("GITHUB_REPOSITORY", ""))
    ref: str = field(
        default_factory=lambda: os.getenv("GATE_REF") or os.getenv("GITHUB_SHA", "")
    )
    token: str = field(default_factory=lambda: os.getenv("GITHUB_TOKEN", ""), repr=False)
    api_url: str = field(
        default_factory=lambda: os.getenv("GITHUB_API_URL", "https://api.github.com")
    )
    status_context: str = field(
        default_factory=lambda: os.getenv("GATE_STATUS_CONTEXT", "merge-gate")
    )
    target_url: Optional[str] = field(default_factory=lambda: os.getenv("GATE_TARGET_URL"))

    # Paths
    checkpoint_path: Path = field(
        default_factory=lambda: Path(os.getenv("GATE_CHECKPOINT_PATH", ".merge-gate/checkpoint.json"))
    )
    metrics_path: Path = field(
        default_factory=lambda: Path(os.getenv("GATE_METRICS_PATH", ".merge-gate/metrics"))
    )

    @property
    def max_wait_seconds(self) -> float:
        return self.max_wait_ms / 1000

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def fetch_timeout_seconds(self) -> float:
        return self.fetch_timeout_ms / 1000

    def validate(self) -> "GateConfig":
        """Raise ConfigurationError if the run cannot be gated meaningfully"""
        for name in ("max_wait_ms", "poll_interval_ms", "fetch_timeout_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

        if self.fetch_timeout_ms >= self.poll_interval_ms:
            raise ConfigurationError(
                f"fetch_timeout_ms ({self.fetch_timeout_ms}) must be shorter than "
                f"poll_interval_ms ({self.poll_interval_ms})"
            )

        if not [name for name in self.required_checks if name and name.strip()]:
            raise ConfigurationError("At least one required check must be configured")

        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view, without the token"""
        return {
            "required_checks": list(self.required_checks),
            "optional_checks": list(self.optional_checks),
            "max_wait_ms": self.max_wait_ms,
            "poll_interval_ms": self.poll_interval_ms,
            "fetch_timeout_ms": self.fetch_timeout_ms,
            "repository": self.repository,
            "ref": self.ref,
            "api_url": self.api_url,
            "status_context": self.status_context,
            "target_url": self.target_url,
            "checkpoint_path": str(self.checkpoint_path),
            "metrics_path": str(self.metrics_path),
        }

    @classmethod
    def from_yaml(cls, path: str) -> "GateConfig":
        """Load config from YAML file; unset keys fall back to the environment"""
        import yaml

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"{path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a mapping at the top level")

        for key in ("required_checks", "optional_checks"):
            if isinstance(data.get(key), str):
                data[key] = parse_check_names(data[key])
        for key in ("checkpoint_path", "metrics_path"):
            if key in data:
                data[key] = Path(data[key])

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"{path}: {e}")

    @classmethod
    def from_env(cls) -> "GateConfig":
        """Load config from environment variables"""
        return cls(
            max_wait_ms=_env_int("GATE_MAX_WAIT_MS", 1800000),
            poll_interval_ms=_env_int("GATE_POLL_INTERVAL_MS", 30000),
            fetch_timeout_ms=_env_int("GATE_FETCH_TIMEOUT_MS", 10000),
        )

    def with_checks(
        self,
        required: Optional[Iterable[str]] = None,
        optional: Optional[Iterable[str]] = None,
    ) -> "GateConfig":
        """Override the configured check lists in place and return self"""
        if required is not None:
            self.required_checks = list(required)
        if optional is not None:
            self.optional_checks = list(optional)
        return self
