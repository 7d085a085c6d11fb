"""
Check Registry

Fixed set of checks a run waits on, built once from configuration.
"""

import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from .main import CheckSpec, ConfigurationError

logger = logging.getLogger(__name__)


class CheckRegistry:
    """
    Ordered, de-duplicated set of CheckSpec.

    Every configured name is required unless it is listed as optional. A
    name listed in both is required. Once built, the registry is immutable.
    """

    def __init__(self, specs: Iterable[CheckSpec]):
        self._specs: Tuple[CheckSpec, ...] = tuple(specs)

    @classmethod
    def build(
        cls,
        configured_names: Iterable[str],
        optional_names: Optional[Iterable[str]] = None,
    ) -> "CheckRegistry":
        """
        Build the registry from configured check names.

        Names are de-duplicated by exact (case-sensitive) match, keeping the
        first occurrence. Names are not trimmed; blank names are skipped.
        Raises ConfigurationError if no required check remains.
        """
        required = _dedupe(configured_names)
        if not required:
            raise ConfigurationError("No required checks configured; refusing to gate on nothing")

        seen = set(required)
        specs: List[CheckSpec] = [CheckSpec(name=name, required=True) for name in required]
        for name in _dedupe(optional_names or []):
            if name in seen:
                continue
            specs.append(CheckSpec(name=name, required=False))

        registry = cls(specs)
        logger.debug(
            f"Check registry built: required={registry.required_names} "
            f"optional={registry.optional_names}"
        )
        return registry

    @property
    def specs(self) -> Tuple[CheckSpec, ...]:
        return self._specs

    @property
    def required_names(self) -> List[str]:
        return [spec.name for spec in self._specs if spec.required]

    @property
    def optional_names(self) -> List[str]:
        return [spec.name for spec in self._specs if not spec.required]

    def __iter__(self) -> Iterator[CheckSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return any(spec.name == name for spec in self._specs)

    def __repr__(self) -> str:
        return f"CheckRegistry({[spec.name for spec in self._specs]!r})"


def _dedupe(names: Iterable[str]) -> List[str]:
    result: List[str] = []
    for name in names:
        if name is None or not name.strip():
            continue
        if name not in result:
            result.append(name)
    return result
