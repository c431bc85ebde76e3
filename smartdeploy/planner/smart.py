from __future__ import annotations

import logging
from typing import List, Optional

from smartdeploy.analyzer.decision import DeploymentDecision
from .plan import CommandPlan, Phase, PlannedCommand
from .recipes import manifest_install_commands, select_recipe

logger = logging.getLogger(__name__)

# flag -> phase, in phase order; source sync and the restart coupling are handled separately
_FLAG_PHASES = (
    ("needs_backend_install", Phase.BACKEND_INSTALL),
    ("needs_frontend_install", Phase.FRONTEND_INSTALL),
    ("needs_frontend_build", Phase.FRONTEND_BUILD),
    ("needs_framework_optimize", Phase.FRAMEWORK_OPTIMIZE),
    ("needs_migration", Phase.MIGRATION),
)


def source_sync_command(branch: str = "main") -> str:
    return f"git pull origin {branch}"


def plan(
    decision: DeploymentDecision,
    project_type: Optional[str],
    *,
    branch: str = "main",
    package_manager: str = "npm",
    php_version: Optional[str] = None,
) -> CommandPlan:
    """
    Map a DeploymentDecision to an ordered CommandPlan. Pure: no I/O.

    Phases are emitted in fixed order and only when flagged. Backend installs
    use the tool named by the changed manifests. Rebuilt frontend artifacts or
    new node dependencies also restart the process manager. System services
    restart last.
    """
    recipe = select_recipe(project_type)
    commands: List[PlannedCommand] = []
    notes: List[str] = []

    if not decision.any_needed:
        return CommandPlan(commands=(), source=decision.source, project_type=project_type)

    commands.append(PlannedCommand(Phase.SOURCE_SYNC, source_sync_command(branch)))

    for flag, phase in _FLAG_PHASES:
        if not getattr(decision, flag):
            continue
        if phase is Phase.BACKEND_INSTALL:
            # the changed manifests name the tool; the recipe covers fallback decisions
            phase_commands = manifest_install_commands(
                c.path for c in decision.changes if c.manifest_kind == "backend"
            ) or recipe.backend_install()
        else:
            phase_commands = recipe.phase_commands(phase, package_manager, php_version)
        if not phase_commands:
            notes.append(f"{phase.value} requested but the {recipe.name} recipe has no command for it")
            continue
        commands.extend(PlannedCommand(phase, cmd) for cmd in phase_commands)

    if decision.needs_frontend_build or decision.needs_frontend_install:
        commands.append(PlannedCommand(Phase.SERVICE_RESTART, recipe.process_manager_restart))

    if decision.needs_service_restart:
        commands.extend(
            PlannedCommand(Phase.SERVICE_RESTART, cmd)
            for cmd in recipe.service_restart(php_version)
            if cmd != recipe.process_manager_restart
        )

    for note in notes:
        logger.warning(note)
    logger.info(f"Planned {len(commands)} commands ({recipe.name} recipe, source={decision.source.value})")
    return CommandPlan(commands=tuple(commands), source=decision.source,
                       project_type=project_type, notes=tuple(notes))
