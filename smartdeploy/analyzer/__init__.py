from __future__ import annotations

from .changes import ChangeCategory, FileChange
from .classify import NO_CHANGES_REASON, classify, fallback_decision
from .decision import DecisionSource, DeploymentDecision
from .detect import ProjectInfo, detect_project

__all__ = [
    "ChangeCategory",
    "FileChange",
    "DecisionSource",
    "DeploymentDecision",
    "NO_CHANGES_REASON",
    "ProjectInfo",
    "classify",
    "detect_project",
    "fallback_decision",
]
