"""Stage taxonomies: ordered deal stages with their scoring parameters.

A taxonomy is pure data. The scoring engine only ever asks a ``StageTaxonomy``
for stage parameters, so adding a taxonomy means adding a table here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from dealpulse.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class StageDefinition:
    """Scoring parameters for one deal stage."""

    name: str
    priority: int
    base_score: int
    variance: int
    typical_duration: str
    success_probability: int
    stall_threshold_days: int
    stall_penalty: float
    terminal: bool = False
    won: bool = False


def _closed(name: str, won: bool = False) -> StageDefinition:
    return StageDefinition(
        name=name,
        priority=0,
        base_score=100 if won else 0,
        variance=0,
        typical_duration="n/a",
        success_probability=100 if won else 0,
        stall_threshold_days=0,
        stall_penalty=1.0,
        terminal=True,
        won=won,
    )


class StageTaxonomy:
    """An ordered list of stages, looked up by (normalized) stage name."""

    def __init__(self, name: str, stages: Sequence[StageDefinition]):
        self.name = name
        self.stages: Tuple[StageDefinition, ...] = tuple(stages)
        self._by_name: Dict[str, StageDefinition] = {s.name: s for s in self.stages}
        self.active_stages: Tuple[StageDefinition, ...] = tuple(
            s for s in self.stages if not s.terminal
        )

    def __repr__(self) -> str:
        return f"StageTaxonomy({self.name!r}, stages={[s.name for s in self.stages]})"

    def get(self, status: Optional[str]) -> Optional[StageDefinition]:
        if not status:
            return None
        return self._by_name.get(status.strip().lower())

    def is_active(self, status: Optional[str]) -> bool:
        """True for stages of this taxonomy that are not closed."""
        stage = self.get(status)
        return stage is not None and not stage.terminal

    def progress(self, status: str) -> Tuple[List[str], List[str], int]:
        """Return (completed, upcoming, percent complete) for an active stage."""
        names = [s.name for s in self.active_stages]
        if status not in names:
            return [], [], 0
        index = names.index(status)
        percent = round(index / len(names) * 100)
        return names[:index], names[index + 1 :], percent


DEFAULT_TAXONOMY = StageTaxonomy(
    "default",
    [
        StageDefinition("prospecting", 1, 25, 3, "2-3 weeks", 25, 30, 0.9),
        StageDefinition("qualified", 2, 45, 4, "3-4 weeks", 45, 30, 0.9),
        StageDefinition("proposal", 3, 65, 5, "4-6 weeks", 65, 30, 0.85),
        StageDefinition("negotiation", 4, 80, 5, "2-4 weeks", 80, 21, 0.8),
        _closed("closed_won", won=True),
        _closed("closed_lost"),
    ],
)

ENTERPRISE_TAXONOMY = StageTaxonomy(
    "enterprise",
    [
        StageDefinition("discovery", 1, 20, 3, "2-4 weeks", 15, 30, 0.9),
        StageDefinition("qualification", 2, 35, 4, "3-4 weeks", 30, 30, 0.9),
        StageDefinition("solution", 3, 50, 5, "4-6 weeks", 45, 45, 0.9),
        StageDefinition("proposal", 4, 65, 5, "3-5 weeks", 60, 30, 0.85),
        StageDefinition("contract", 5, 80, 5, "2-4 weeks", 75, 21, 0.8),
        _closed("closed"),
    ],
)

SOLUTION_TAXONOMY = StageTaxonomy(
    "solution",
    [
        StageDefinition("identify", 1, 20, 3, "1-2 weeks", 15, 21, 0.9),
        StageDefinition("validate", 2, 35, 4, "2-3 weeks", 30, 30, 0.9),
        StageDefinition("design", 3, 50, 5, "3-5 weeks", 45, 45, 0.9),
        StageDefinition("propose", 4, 65, 5, "2-4 weeks", 60, 30, 0.85),
        StageDefinition("finalize", 5, 80, 5, "1-3 weeks", 75, 21, 0.8),
        _closed("closed"),
    ],
)

TAXONOMIES: Dict[str, StageTaxonomy] = {
    t.name: t for t in (DEFAULT_TAXONOMY, ENTERPRISE_TAXONOMY, SOLUTION_TAXONOMY)
}


def get_taxonomy(name: Optional[str]) -> StageTaxonomy:
    """Look up a registered taxonomy by name."""
    key = (name or "default").strip().lower()
    try:
        return TAXONOMIES[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown stage taxonomy '{name}'",
            details={"available": sorted(TAXONOMIES)},
        ) from None
