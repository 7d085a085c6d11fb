"""
Base Check Status Source

All status sources must implement this interface.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict

from ..main import CheckObservation, CheckState

logger = logging.getLogger(__name__)


class CheckStatusSource(ABC):
    """
    Read-only gateway to an external status-reporting system.

    fetch() must not have side effects visible to the gate. Implementations
    should map transport and API failures to an ERROR observation for that
    single check instead of raising; the polling loop also guards against
    anything that slips through.
    """

    name: str = "base"

    @abstractmethod
    async def fetch(self, check_name: str) -> CheckObservation:
        """Return the current state of one named check"""
        pass

    async def health_check(self) -> Dict[str, Any]:
        """Check source connectivity"""
        return {"status": "healthy", "source": self.name}

    async def close(self) -> None:
        """Clean up resources"""
        logger.debug(f"Status source {self.name} closed")

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _observe(self, check_name: str, state: CheckState, detail: str = "") -> CheckObservation:
        return CheckObservation(
            name=check_name,
            state=state,
            observed_at=datetime.now(timezone.utc),
            detail=detail,
        )
