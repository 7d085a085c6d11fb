"""
Polling Loop

One tick: fetch every registered check concurrently and hand back a single
snapshot. The loop has no timing of its own beyond the per-fetch timeout;
the orchestrator sleeps between ticks.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from .main import CheckObservation, CheckSpec, CheckState
from .metrics import MetricsCollector
from .sources.base import CheckStatusSource

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Snapshot collected in one tick"""
    observations: Dict[str, CheckObservation] = field(default_factory=dict)
    duration_ms: int = 0

    def count(self, state: CheckState) -> int:
        return sum(1 for obs in self.observations.values() if obs.state is state)


class PollingLoop:
    """Fans out one fetch per check and fans the results back in"""

    def __init__(
        self,
        fetch_timeout_ms: int,
        metrics: Optional[MetricsCollector] = None,
    ):
        if fetch_timeout_ms <= 0:
            raise ValueError(f"fetch_timeout_ms must be positive, got {fetch_timeout_ms}")
        self.fetch_timeout_ms = fetch_timeout_ms
        self._metrics = metrics

    async def tick(
        self,
        specs: Iterable[CheckSpec],
        source: CheckStatusSource,
        run_id: Optional[str] = None,
    ) -> TickResult:
        """
        Fetch every spec's current state.

        A fetch that raises or outlives the fetch timeout becomes an ERROR
        observation for that check only. Cancellation propagates.
        """
        start_time = time.time()
        specs = list(specs)

        results = await asyncio.gather(
            *(self._fetch_one(spec.name, source) for spec in specs)
        )
        observations = {obs.name: obs for obs in results}

        tick = TickResult(
            observations=observations,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        if self._metrics:
            self._metrics.tick_recorded(tick.duration_ms, tick.observations.values(), run_id)
        return tick

    async def _fetch_one(self, check_name: str, source: CheckStatusSource) -> CheckObservation:
        try:
            observation = await asyncio.wait_for(
                source.fetch(check_name),
                timeout=self.fetch_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[{check_name}] fetch timed out after {self.fetch_timeout_ms}ms"
            )
            if self._metrics:
                self._metrics.fetch_timeout_recorded()
            return _error(check_name, f"fetch timed out after {self.fetch_timeout_ms}ms")
        except Exception as e:
            logger.warning(f"[{check_name}] fetch error: {e}")
            return _error(check_name, f"fetch error: {e}")

        if observation.name != check_name:
            logger.warning(
                f"[{check_name}] source answered for {observation.name!r}; treating as error"
            )
            return _error(check_name, f"source answered for {observation.name!r}")

        return observation


def _error(check_name: str, detail: str) -> CheckObservation:
    return CheckObservation(
        name=check_name,
        state=CheckState.ERROR,
        observed_at=datetime.now(timezone.utc),
        detail=detail,
    )
