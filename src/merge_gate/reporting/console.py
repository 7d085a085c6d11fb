"""
Console Reporter

Colored terminal output for the verdict and per-check breakdown.
"""

import sys
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, Optional, TextIO

from .base import GateReport, ResultReporter
from ..main import CheckState, RunStatus


class OutputLevel(IntEnum):
    """Output verbosity levels"""
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


class ConsoleReporter(ResultReporter):
    """
    Console reporter with colored output.

    Uses ANSI escape codes for colors in terminal environments.
    Falls back to plain text when not in a TTY.
    """

    name = "console"

    # ANSI color codes
    COLORS = {
        "reset": "\033[0m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "red": "\033[31m",
        "blue": "\033[34m",
        "cyan": "\033[36m",
        "magenta": "\033[35m",
    }

    SYMBOLS = {
        CheckState.PENDING: "○",
        CheckState.IN_PROGRESS: "◔",
        CheckState.SUCCESS: "●",
        CheckState.FAILURE: "✗",
        CheckState.ERROR: "!",
        CheckState.NOT_FOUND: "?",
    }

    STATE_COLORS = {
        CheckState.PENDING: "yellow",
        CheckState.IN_PROGRESS: "cyan",
        CheckState.SUCCESS: "green",
        CheckState.FAILURE: "red",
        CheckState.ERROR: "magenta",
        CheckState.NOT_FOUND: "dim",
    }

    STATUS_COLORS = {
        RunStatus.SUCCEEDED: "green",
        RunStatus.FAILED: "red",
        RunStatus.TIMED_OUT: "yellow",
        RunStatus.RUNNING: "blue",
    }

    def __init__(
        self,
        level: OutputLevel = OutputLevel.NORMAL,
        use_colors: bool = True,
        stream: Optional[TextIO] = None,
    ):
        self.level = level
        self.stream = stream or sys.stdout
        self.use_colors = use_colors and self.stream.isatty()

    def _c(self, color: str, text: str) -> str:
        """Apply color to text"""
        if self.use_colors:
            return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"
        return text

    def _print(self, text: str = "") -> None:
        print(text, file=self.stream)

    def _timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _check_line(self, name: str, state: CheckState, required: bool, detail: str = "") -> str:
        color = self.STATE_COLORS.get(state, "dim")
        symbol = self._c(color, self.SYMBOLS.get(state, "○"))
        label = self._c(color, state.value.upper())
        suffix = "" if required else self._c("dim", " (optional)")
        line = f"  {symbol} {name:<28} {label}{suffix}"
        if detail and self.level >= OutputLevel.VERBOSE:
            line += f"  {self._c('dim', detail)}"
        return line

    def run_started(self, run_id: str, check_names: list, deadline_in_s: float) -> None:
        """Announce a new run"""
        if self.level < OutputLevel.NORMAL:
            return
        ts = self._c("dim", f"[{self._timestamp()}]")
        self._print(
            f"{ts} {self._c('cyan', run_id)} gating on {len(check_names)} check(s), "
            f"waiting up to {deadline_in_s:.0f}s"
        )

    def tick_progress(self, tick: int, counts: Dict[str, int]) -> None:
        """One-line progress after each tick"""
        if self.level < OutputLevel.VERBOSE:
            return
        ts = self._c("dim", f"[{self._timestamp()}]")
        parts = ", ".join(f"{state}={n}" for state, n in sorted(counts.items()) if n)
        self._print(f"  {ts} tick {tick}: {parts}")

    async def publish(self, report: GateReport) -> None:
        """Print the verdict banner and the per-check breakdown"""
        status = report.status
        color = self.STATUS_COLORS.get(status, "dim")
        required = set(report.required_names)

        self._print()
        self._print(self._c("bold", "═" * 50))
        self._print(f"  {self._c('bold', 'MERGE GATE')} {self._c(color, status.value.upper())}")
        self._print(self._c("bold", "═" * 50))

        for observation in report.snapshot:
            self._print(self._check_line(
                observation.name,
                observation.state,
                observation.name in required,
                observation.detail,
            ))

        seconds = report.duration_ms / 1000
        self._print()
        self._print(f"  {report.summary()}")
        self._print(self._c("dim", f"  run={report.run_id} ticks={report.ticks} ({seconds:.1f}s)"))
        self._print(self._c("bold", "═" * 50))

    def summary(self, stats: Dict[str, Any]) -> None:
        """Format metrics summary"""
        if self.level < OutputLevel.VERBOSE:
            return

        counters = stats.get("counters", {})
        timing = stats.get("timing", {})

        self._print(f"\n  {self._c('bold', 'Polling:')}")
        self._print(f"    Ticks:          {counters.get('ticks', 0)}")
        self._print(f"    Fetch errors:   {self._c('magenta', str(counters.get('fetch_errors', 0)))}")
        self._print(f"    Fetch timeouts: {self._c('yellow', str(counters.get('fetch_timeouts', 0)))}")
        self._print(f"    Avg tick:       {timing.get('avg_tick_duration_ms', 0):.0f}ms")
