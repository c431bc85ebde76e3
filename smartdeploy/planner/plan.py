from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from smartdeploy.analyzer.decision import DecisionSource


class Phase(Enum):
    """Deployment phases, declared in execution order."""
    SOURCE_SYNC = "source_sync"
    BACKEND_INSTALL = "backend_install"
    FRONTEND_INSTALL = "frontend_install"
    FRONTEND_BUILD = "frontend_build"
    FRAMEWORK_OPTIMIZE = "framework_optimize"
    MIGRATION = "migration"
    SERVICE_RESTART = "service_restart"

    @property
    def order(self) -> int:
        return _PHASE_ORDER[self]


_PHASE_ORDER = {phase: index for index, phase in enumerate(Phase)}


@dataclass(frozen=True)
class PlannedCommand:
    phase: Phase
    command: str

    @property
    def category(self) -> str:
        return self.phase.value

    def to_dict(self) -> Dict[str, str]:
        return {"category": self.category, "command": self.command}


@dataclass(frozen=True)
class CommandPlan:
    """
    Ordered, phase-grouped list of shell commands.

    Phases never go backwards: a later phase never precedes an earlier one.
    """
    commands: Tuple[PlannedCommand, ...] = ()
    source: DecisionSource = DecisionSource.DIFF
    project_type: Optional[str] = None
    notes: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self):
        last = -1
        for planned in self.commands:
            if planned.phase.order < last:
                raise ValueError(
                    f"Phase order violated: '{planned.command}' ({planned.category}) "
                    f"is planned after a later phase"
                )
            last = planned.phase.order

    def __len__(self) -> int:
        return len(self.commands)

    def __iter__(self) -> Iterator[PlannedCommand]:
        return iter(self.commands)

    def __bool__(self) -> bool:
        return bool(self.commands)

    @property
    def command_lines(self) -> List[str]:
        return [planned.command for planned in self.commands]

    @property
    def phases(self) -> List[Phase]:
        return [planned.phase for planned in self.commands]

    def index_of(self, phase: Phase) -> int:
        """Index of the first command in `phase`, or -1."""
        for index, planned in enumerate(self.commands):
            if planned.phase is phase:
                return index
        return -1

    def to_dict(self) -> Dict[str, object]:
        return {
            "source": self.source.value,
            "project_type": self.project_type,
            "commands": [planned.to_dict() for planned in self.commands],
            "notes": list(self.notes),
        }
