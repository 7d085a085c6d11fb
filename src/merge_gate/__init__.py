"""
Merge Gate

Waits on a configured set of independently-running checks (build, scan,
AI review, container validation, human review), reduces their states to a
single pass/fail verdict within a bounded wait, and publishes that verdict
exactly once.

The gate never runs the checks itself; it only reads the states they
report into the shared status system.
"""

__version__ = "1.0.0"

# Types and configuration
from .main import (
    CheckObservation,
    CheckSpec,
    CheckState,
    CheckpointError,
    ConfigurationError,
    GateCancelledError,
    GateConfig,
    GateError,
    ReportingError,
    RunState,
    RunStatus,
    Verdict,
    VerdictAlreadySettledError,
)

# Core engine
from .registry import CheckRegistry
from .aggregator import reduce
from .polling import PollingLoop, TickResult
from .orchestrator import GateOrchestrator, RunOutcome
from .checkpoint import Checkpoint, CheckpointStore

# Collaborator boundaries
from .sources import CheckStatusSource, GitHubChecksSource, ScriptedStatusSource
from .reporting import (
    CompositeReporter,
    ConsoleReporter,
    GateReport,
    GitHubStatusReporter,
    ResultReporter,
)

__all__ = [
    # Types
    "CheckObservation",
    "CheckSpec",
    "CheckState",
    "RunState",
    "RunStatus",
    "Verdict",
    "GateConfig",
    # Errors
    "GateError",
    "ConfigurationError",
    "VerdictAlreadySettledError",
    "GateCancelledError",
    "ReportingError",
    "CheckpointError",
    # Engine
    "CheckRegistry",
    "reduce",
    "PollingLoop",
    "TickResult",
    "GateOrchestrator",
    "RunOutcome",
    "Checkpoint",
    "CheckpointStore",
    # Sources
    "CheckStatusSource",
    "GitHubChecksSource",
    "ScriptedStatusSource",
    # Reporting
    "ResultReporter",
    "GateReport",
    "ConsoleReporter",
    "GitHubStatusReporter",
    "CompositeReporter",
    # Meta
    "__version__",
]
