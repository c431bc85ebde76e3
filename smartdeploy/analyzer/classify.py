from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .changes import ChangeCategory, FileChange, rule_label
from .decision import DecisionSource, DeploymentDecision

logger = logging.getLogger(__name__)

NO_CHANGES_REASON = "no changes detected"


def fallback_decision(reason: str) -> DeploymentDecision:
    """
    Degraded decision used when the change set cannot be determined.

    Every flag is set so a deployment never silently does nothing.
    """
    logger.warning(f"Change analysis unavailable, planning a full deployment: {reason}")
    return DeploymentDecision(
        needs_source_sync=True,
        needs_backend_install=True,
        needs_frontend_install=True,
        needs_frontend_build=True,
        needs_framework_optimize=True,
        needs_migration=True,
        needs_service_restart=True,
        reasons=(f"Change analysis unavailable ({reason}); running full deployment",),
        source=DecisionSource.FALLBACK,
    )


def classify(changed_paths: Optional[Sequence[str]], project_type: Optional[str] = None) -> DeploymentDecision:
    """
    Tag each changed path with deployment categories and derive need-flags.

    Args:
        changed_paths: paths that differ between the previous and current
            revision, or None when the diff could not be obtained
        project_type: optional hint ("laravel", "node", "django", ...);
            node-family projects treat their whole source tree as
            frontend sources

    Returns:
        DeploymentDecision with one reason per matched (category, path)
    """
    if changed_paths is None:
        return fallback_decision("changed files could not be listed")

    paths = [p for p in changed_paths if p and p.strip()]
    if not paths:
        logger.info("No changed files; nothing to deploy")
        return DeploymentDecision(reasons=(NO_CHANGES_REASON,), source=DecisionSource.DIFF)

    flags: Dict[str, bool] = {
        "needs_backend_install": False,
        "needs_frontend_install": False,
        "needs_frontend_build": False,
        "needs_framework_optimize": False,
        "needs_migration": False,
        "needs_service_restart": False,
    }
    reasons: List[str] = []
    changes: List[FileChange] = []

    for path in paths:
        change = FileChange.from_path(path, project_type)
        changes.append(change)
        for category in change.categories:
            if category is ChangeCategory.DEPENDENCY_MANIFEST:
                if change.manifest_kind == "backend":
                    flags["needs_backend_install"] = True
                else:
                    flags["needs_frontend_install"] = True
            elif category is ChangeCategory.FRAMEWORK_CONFIG:
                flags["needs_framework_optimize"] = True
            elif category is ChangeCategory.MIGRATION:
                flags["needs_migration"] = True
            elif category is ChangeCategory.FRONTEND_ASSET:
                flags["needs_frontend_build"] = True
            elif category is ChangeCategory.SYSTEM_CONFIG:
                flags["needs_service_restart"] = True
            reasons.append(f"{rule_label(category, change)} changed ({path})")

    relevant = sum(1 for c in changes if c.relevant)
    logger.info(f"Classified {len(changes)} changed files: {relevant} deployment-relevant")

    return DeploymentDecision(
        needs_source_sync=any(flags.values()),
        reasons=tuple(reasons),
        source=DecisionSource.DIFF,
        changes=tuple(changes),
        **flags,
    )
