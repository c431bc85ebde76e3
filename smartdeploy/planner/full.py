"""
Full deploy planning from an externally proposed command set.

Proposals come from persisted configuration or a language model and are
treated as untrusted: they are parsed and shape-checked here, and anything
malformed is replaced by the project type's hard-coded default plan.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from smartdeploy.analyzer.decision import DecisionSource
from smartdeploy.errors import PlanningDegradation
from .plan import CommandPlan, Phase, PlannedCommand
from .recipes import select_recipe
from .smart import source_sync_command

logger = logging.getLogger(__name__)

CATEGORIES = ("git", "frontend", "backend", "database", "docker", "system")

CATEGORY_PHASES = {
    "git": Phase.SOURCE_SYNC,
    "backend": Phase.BACKEND_INSTALL,
    "frontend": Phase.FRONTEND_BUILD,
    "database": Phase.MIGRATION,
    "docker": Phase.SERVICE_RESTART,
    "system": Phase.SERVICE_RESTART,
}

# First match wins; checked before the category default.
PHASE_PATTERNS: List[Tuple[re.Pattern, Phase]] = [
    (re.compile(r"^git\s+(pull|fetch|checkout|reset|merge)\b"), Phase.SOURCE_SYNC),
    (re.compile(r"\bmigrate\b"), Phase.MIGRATION),
    (re.compile(r"^(npm|yarn|pnpm)\s+(install|ci|i)\b"), Phase.FRONTEND_INSTALL),
    (re.compile(r"^(npm|yarn|pnpm)\s+(run\s+)?(build|prod|production)\b"), Phase.FRONTEND_BUILD),
    (re.compile(r"^(composer\s+(install|update)|pip3?\s+install|poetry\s+install|bundle\s+install|go\s+mod\s+download)\b"),
     Phase.BACKEND_INSTALL),
    (re.compile(r"artisan\s+(optimize|config:|route:|view:|event:|cache:|filament:upgrade)|collectstatic"),
     Phase.FRAMEWORK_OPTIMIZE),
    (re.compile(r"(systemctl|^service\s|^pm2\s|supervisorctl|queue:restart|docker[\s-]compose)"), Phase.SERVICE_RESTART),
]

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


class CommandProposal(BaseModel):
    """Per-category command lists, as found in persisted config or model output."""
    model_config = ConfigDict(extra="ignore")

    git: List[str] = []
    frontend: List[str] = []
    backend: List[str] = []
    database: List[str] = []
    docker: List[str] = []
    system: List[str] = []

    @field_validator(*CATEGORIES, mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value

    @field_validator(*CATEGORIES)
    @classmethod
    def _non_empty_commands(cls, value: List[str]) -> List[str]:
        cleaned = []
        for command in value:
            command = command.strip()
            if not command:
                raise ValueError("commands must be non-empty strings")
            cleaned.append(command)
        return cleaned

    def is_empty(self) -> bool:
        return not any(getattr(self, category) for category in CATEGORIES)


def parse_proposal(raw: Any) -> CommandProposal:
    """
    Parse untrusted proposal data.

    Accepts a JSON string (optionally wrapped in a markdown code fence), or a
    mapping with the per-category lists either at the top level or under a
    "commands" key.

    Raises:
        PlanningDegradation: on any parse or shape failure, or an empty proposal
    """
    if raw is None:
        raise PlanningDegradation("no command proposal available")

    data = raw
    if isinstance(raw, str):
        text = _FENCE.sub("", raw.strip())
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PlanningDegradation(f"command proposal is not valid JSON: {e.msg}")

    if not isinstance(data, dict):
        raise PlanningDegradation(f"command proposal must be an object, got {type(data).__name__}")

    if isinstance(data.get("commands"), dict):
        data = data["commands"]

    try:
        proposal = CommandProposal.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise PlanningDegradation(f"command proposal has invalid shape at '{where}': {first.get('msg')}")

    if proposal.is_empty():
        raise PlanningDegradation("command proposal contains no commands")
    return proposal


def infer_phase(command: str, category: str) -> Phase:
    for pattern, phase in PHASE_PATTERNS:
        if pattern.search(command):
            return phase
    return CATEGORY_PHASES.get(category, Phase.SERVICE_RESTART)


def _build(commands_by_category: Dict[str, List[str]], branch: str) -> Tuple[List[PlannedCommand], List[str]]:
    planned: List[PlannedCommand] = []
    notes: List[str] = []
    for category in CATEGORIES:
        for command in commands_by_category.get(category, []) or []:
            planned.append(PlannedCommand(infer_phase(command, category), command))

    if not any(p.phase is Phase.SOURCE_SYNC for p in planned):
        planned.insert(0, PlannedCommand(Phase.SOURCE_SYNC, source_sync_command(branch)))
        notes.append("source sync added ahead of the proposed commands")

    # stable: keeps proposal order within a phase
    planned.sort(key=lambda p: p.phase.order)
    return planned, notes


def default_full_plan(project_type: Optional[str], *, branch: str = "main",
                      php_version: Optional[str] = None, reason: str = "") -> CommandPlan:
    recipe = select_recipe(project_type)
    planned, notes = _build(recipe.default_full_commands(php_version), branch)
    if reason:
        notes.insert(0, f"default {recipe.name} plan used: {reason}")
    return CommandPlan(commands=tuple(planned), source=DecisionSource.FALLBACK,
                       project_type=project_type, notes=tuple(notes))


def plan_full(
    proposal: Any,
    project_type: Optional[str],
    *,
    branch: str = "main",
    php_version: Optional[str] = None,
) -> CommandPlan:
    """
    Plan a full deployment from an external proposal.

    Malformed output never propagates: on any failure the per-project-type
    default plan is returned with source=FALLBACK.
    """
    try:
        parsed = parse_proposal(proposal)
    except PlanningDegradation as e:
        logger.warning(f"Falling back to default full plan: {e.reason}")
        return default_full_plan(project_type, branch=branch, php_version=php_version, reason=e.reason)

    planned, notes = _build(parsed.model_dump(), branch)
    logger.info(f"Planned {len(planned)} commands from external proposal")
    return CommandPlan(commands=tuple(planned), source=DecisionSource.EXTERNAL_PLAN,
                       project_type=project_type, notes=tuple(notes))
