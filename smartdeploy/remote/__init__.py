"""
Remote execution: one SSH session per deployment, commands run in plan order.
"""

from .executor import DeploymentExecutor, ExecutorState
from .policy import FailurePolicy
from .report import ExecutionReport, ExecutionResult, Verdict
from .session import CommandOutcome, RemoteSession, SSHSession

__all__ = [
    "DeploymentExecutor",
    "ExecutorState",
    "FailurePolicy",
    "ExecutionReport",
    "ExecutionResult",
    "Verdict",
    "CommandOutcome",
    "RemoteSession",
    "SSHSession",
]
