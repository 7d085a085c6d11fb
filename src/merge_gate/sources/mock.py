"""
Scripted Status Source

An in-memory source for tests and dry runs without a real status API.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Union

from .base import CheckStatusSource
from ..main import CheckObservation, CheckState

logger = logging.getLogger(__name__)

ScriptEntry = Union[CheckState, Exception]


class ScriptedStatusSource(CheckStatusSource):
    """
    Replays a per-check script of states, one entry per fetch.

    The last entry repeats once the script is exhausted. An Exception entry is
    raised from fetch() to simulate a broken source. Checks without a script
    report NOT_FOUND.
    """

    name = "scripted"

    def __init__(
        self,
        script: Optional[Dict[str, Sequence[ScriptEntry]]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.script: Dict[str, List[ScriptEntry]] = {
            name: list(entries) for name, entries in (script or {}).items()
        }
        self.delays = delays or {}
        self.calls: Dict[str, int] = {}

    @classmethod
    def static(cls, states: Dict[str, CheckState]) -> "ScriptedStatusSource":
        """Source whose checks never change state"""
        return cls({name: [state] for name, state in states.items()})

    def set_state(self, check_name: str, state: ScriptEntry) -> None:
        """Replace a check's script with a single repeating entry"""
        self.script[check_name] = [state]
        self.calls[check_name] = 0

    async def fetch(self, check_name: str) -> CheckObservation:
        """Return the next scripted state for the check"""
        index = self.calls.get(check_name, 0)
        self.calls[check_name] = index + 1

        delay = self.delays.get(check_name)
        if delay:
            await asyncio.sleep(delay)

        entries = self.script.get(check_name)
        if not entries:
            return self._observe(check_name, CheckState.NOT_FOUND, "not scripted")

        entry = entries[min(index, len(entries) - 1)]
        if isinstance(entry, Exception):
            raise entry

        return self._observe(check_name, entry)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def health_check(self):
        return {
            "status": "healthy",
            "source": self.name,
            "scripted_checks": sorted(self.script),
        }
