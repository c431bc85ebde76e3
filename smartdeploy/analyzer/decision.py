from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple

from .changes import FileChange


class DecisionSource(Enum):
    """Where a decision (or plan) came from."""
    DIFF = "diff"
    FALLBACK = "fallback"
    EXTERNAL_PLAN = "external_plan"


NEED_FLAGS = (
    "needs_source_sync",
    "needs_backend_install",
    "needs_frontend_install",
    "needs_frontend_build",
    "needs_framework_optimize",
    "needs_migration",
    "needs_service_restart",
)


@dataclass(frozen=True)
class DeploymentDecision:
    """
    Which maintenance actions a change set requires, and why.

    Attributes:
        needs_*: one flag per deployment phase
        reasons: one entry per matched (category, path), in file-list order
        source: DIFF for a real diff, FALLBACK for the degraded
            "assume everything" decision
        changes: the classified paths the decision was derived from
    """
    needs_source_sync: bool = False
    needs_backend_install: bool = False
    needs_frontend_install: bool = False
    needs_frontend_build: bool = False
    needs_framework_optimize: bool = False
    needs_migration: bool = False
    needs_service_restart: bool = False
    reasons: Tuple[str, ...] = ()
    source: DecisionSource = DecisionSource.DIFF
    changes: Tuple[FileChange, ...] = field(default=(), compare=False)

    @property
    def any_needed(self) -> bool:
        return any(getattr(self, name) for name in NEED_FLAGS)

    def flags(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name in NEED_FLAGS}

    def to_dict(self) -> Dict[str, object]:
        return {
            **self.flags(),
            "reasons": list(self.reasons),
            "source": self.source.value,
        }
