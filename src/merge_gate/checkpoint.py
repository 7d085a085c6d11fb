"""
Checkpoint Store

Persists the small amount of run state needed to resume a gate across
separate process invocations: run identity, timing, the fixed check
registry, and whether the verdict was already reported.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .main import CheckSpec, CheckpointError, Verdict

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 1


@dataclass
class Checkpoint:
    """Persisted run state for re-invocation mode"""
    run_id: str
    started_at: float
    deadline: float
    specs: Tuple[CheckSpec, ...]
    verdict: Verdict = Verdict.PENDING
    reported: bool = False
    ticks: int = 0
    last_states: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CHECKPOINT_VERSION,
            "run_id": self.run_id,
            "started_at": self.started_at,
            "deadline": self.deadline,
            "checks": [spec.to_dict() for spec in self.specs],
            "verdict": self.verdict.value,
            "reported": self.reported,
            "ticks": self.ticks,
            "last_states": self.last_states,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        try:
            checks: List[Dict[str, Any]] = data["checks"]
            return cls(
                run_id=str(data["run_id"]),
                started_at=float(data["started_at"]),
                deadline=float(data["deadline"]),
                specs=tuple(
                    CheckSpec(name=c["name"], required=bool(c.get("required", True)))
                    for c in checks
                ),
                verdict=Verdict(data.get("verdict", Verdict.PENDING.value)),
                reported=bool(data.get("reported", False)),
                ticks=int(data.get("ticks", 0)),
                last_states=dict(data.get("last_states", {})),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CheckpointError(f"Malformed checkpoint: {e}") from e


class CheckpointStore:
    """JSON file holding one Checkpoint"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[Checkpoint]:
        """Return the stored checkpoint, or None if there is none"""
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CheckpointError(f"Cannot read checkpoint {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise CheckpointError(f"Checkpoint {self.path} is not a JSON object")
        return Checkpoint.from_dict(data)

    def save(self, checkpoint: Checkpoint) -> None:
        """Write the checkpoint atomically"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(checkpoint.to_dict(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
        logger.debug(f"Checkpoint saved: {self.path} (run={checkpoint.run_id})")

    def clear(self) -> None:
        """Remove the checkpoint so the next step starts a fresh run"""
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Checkpoint cleared: {self.path}")
