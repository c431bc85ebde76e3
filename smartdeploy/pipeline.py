"""
End-to-end wiring: changes -> decision -> plan -> validated execution.

Each stage is a plain function so the CLI (or another caller) can stop after
planning, print the plan and ask for confirmation before executing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .analyzer import DeploymentDecision, ProjectInfo, classify, detect_project, fallback_decision
from .analyzer.detect import node_package_manager
from .config import DeployConfig
from .errors import PlanningDegradation
from .planner import CommandPlan, CommandProposer, ConfigProposer, LLMProposer, plan, plan_full
from .remote import DeploymentExecutor, ExecutionReport, FailurePolicy
from .remote.executor import ConfirmContinue, SessionFactory
from . import vcs

logger = logging.getLogger(__name__)


@dataclass
class SmartPlan:
    decision: DeploymentDecision
    plan: CommandPlan
    project: ProjectInfo


def project_type_for(info: ProjectInfo, config: DeployConfig) -> str:
    """A configured projectType overrides detection."""
    return config.project_type or info.project_type


def plan_smart(
    project_root: str | Path,
    config: DeployConfig,
    base: str = "HEAD~1",
    head: str = "HEAD",
) -> SmartPlan:
    """
    Plan only what the latest change set requires.

    When git cannot produce a diff the decision degrades to a full
    deployment (source=FALLBACK) instead of an empty plan.
    """
    info = detect_project(str(project_root))
    project_type = project_type_for(info, config)

    try:
        paths = vcs.changed_paths(project_root, base, head)
    except PlanningDegradation as e:
        decision = fallback_decision(e.reason)
    else:
        decision = classify(paths, project_type)

    logger.info(f"Decision ({decision.source.value}): {'; '.join(decision.reasons)}")
    command_plan = plan(
        decision,
        project_type,
        branch=config.branch,
        package_manager=node_package_manager(info.files),
        php_version=info.php_version,
    )
    return SmartPlan(decision=decision, plan=command_plan, project=info)


def plan_full_deploy(
    project_root: str | Path,
    config: DeployConfig,
    proposer: Optional[CommandProposer] = None,
    use_llm: bool = False,
) -> CommandPlan:
    """
    Plan a full deployment.

    Proposal sources, in order: an explicit proposer, the configured
    per-category commands, then (with use_llm) the LLM proposer. Anything
    unusable falls back to the project type's default plan.
    """
    info = detect_project(str(project_root))
    if proposer is None:
        if config.commands and any(config.commands.values()):
            proposer = ConfigProposer(config.commands)
        elif use_llm:
            proposer = LLMProposer()

    proposal = proposer.propose(info) if proposer is not None else None
    return plan_full(
        proposal,
        project_type_for(info, config),
        branch=config.branch,
        php_version=info.php_version,
    )


def execute_plan(
    config: DeployConfig,
    command_plan: CommandPlan,
    policy: Optional[FailurePolicy] = None,
    confirm_continue: Optional[ConfirmContinue] = None,
    session_factory: Optional[SessionFactory] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ExecutionReport:
    """Validate and run `command_plan` against the configured server."""
    executor = DeploymentExecutor(
        config.server,
        policy=policy or FailurePolicy.from_name(config.failure_policy),
        session_factory=session_factory,
        confirm_continue=confirm_continue,
        environ=environ,
    )
    return executor.execute(command_plan)
