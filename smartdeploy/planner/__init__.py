"""
Command planning: smart (diff-driven) and full (proposal-driven) deploys.
"""

from .plan import CommandPlan, Phase, PlannedCommand
from .recipes import Recipe, select_recipe
from .smart import plan
from .full import CommandProposal, default_full_plan, parse_proposal, plan_full
from .proposer import CommandProposer, ConfigProposer, LLMProposer

__all__ = [
    "CommandPlan",
    "Phase",
    "PlannedCommand",
    "Recipe",
    "select_recipe",
    "plan",
    "CommandProposal",
    "default_full_plan",
    "parse_proposal",
    "plan_full",
    "CommandProposer",
    "ConfigProposer",
    "LLMProposer",
]
