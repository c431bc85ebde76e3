"""
Deployment executor.

Runs a validated CommandPlan over a single remote session:

    IDLE -> VALIDATING -> INVALID
                       -> CONNECTING -> EXECUTING -> DISCONNECTING -> REPORTED

Validation happens before any connection attempt. Commands run strictly in
plan order; what happens after a failure is decided by the FailurePolicy.
"""

from __future__ import annotations

import functools
import logging
import shlex
import time
from enum import Enum
from typing import Callable, List, Mapping, Optional

from smartdeploy.config import ServerConnectionConfig
from smartdeploy.errors import CommandError, TransportError
from smartdeploy.planner.plan import CommandPlan, PlannedCommand
from smartdeploy.redact import redact_text
from smartdeploy.validator import validate
from .policy import FailurePolicy
from .report import ExecutionReport, ExecutionResult
from .session import RemoteSession, SSHSession

logger = logging.getLogger(__name__)

STDERR_TAIL = 500

SessionFactory = Callable[[ServerConnectionConfig], RemoteSession]
ConfirmContinue = Callable[[ExecutionResult], bool]


class ExecutorState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"
    CONNECTING = "connecting"
    EXECUTING = "executing"
    DISCONNECTING = "disconnecting"
    REPORTED = "reported"


def remote_command_line(remote_path: str, command: str) -> str:
    return f"cd {shlex.quote(remote_path)} && {command}"


class DeploymentExecutor:
    """
    Execute one plan against one host. Instances are single-use.

    Args:
        config: connection block; None is reported as a validation error
        policy: behaviour after a failed command
        session_factory: opens the session (defaults to SSHSession.connect)
        confirm_continue: asked after each failure under PROMPT_ON_FAILURE;
            without it the run stops at the first failure
        environ: environment for credential lookup (defaults to os.environ)
    """

    def __init__(
        self,
        config: Optional[ServerConnectionConfig],
        policy: FailurePolicy = FailurePolicy.CONTINUE_ALL,
        session_factory: Optional[SessionFactory] = None,
        confirm_continue: Optional[ConfirmContinue] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config = config
        self.policy = policy
        self.session_factory = session_factory or functools.partial(SSHSession.connect, environ=environ)
        self.confirm_continue = confirm_continue
        self.environ = environ
        self.state = ExecutorState.IDLE

    def execute(self, plan: CommandPlan) -> ExecutionReport:
        if self.state is not ExecutorState.IDLE:
            raise RuntimeError(f"Executor already used (state={self.state.value})")

        report = ExecutionReport(host=self.config.host if self.config else "")
        commands = list(plan)

        self.state = ExecutorState.VALIDATING
        errors = validate(self.config, plan, self.environ)
        if errors:
            for error in errors:
                logger.error(error)
            report.validation_errors = errors
            report.skipped = commands
            self.state = ExecutorState.INVALID
            return report

        if not commands:
            logger.info("Nothing to deploy; not connecting")
            self.state = ExecutorState.REPORTED
            return report

        self.state = ExecutorState.CONNECTING
        try:
            session = self.session_factory(self.config)
        except TransportError as e:
            logger.error(str(e))
            report.transport_error = self._redact(e.message)
            report.skipped = commands
            self.state = ExecutorState.REPORTED
            return report

        self.state = ExecutorState.EXECUTING
        try:
            for index, planned in enumerate(commands):
                result = self._run_one(session, planned)
                report.results.append(result)

                if result.transport_error is not None:
                    report.transport_error = result.transport_error
                    report.skipped = commands[index + 1:]
                    break
                if result.success:
                    continue

                self._log_failure(result)
                if not self._should_continue(result):
                    report.aborted = True
                    report.skipped = commands[index + 1:]
                    if report.skipped:
                        logger.warning(f"Stopping after failure; {len(report.skipped)} commands skipped")
                    break
        finally:
            self.state = ExecutorState.DISCONNECTING
            session.close()

        self.state = ExecutorState.REPORTED
        logger.info(
            f"Deployment to {report.host} finished: {report.succeeded} succeeded, "
            f"{report.failed} failed, {len(report.skipped)} skipped ({report.verdict.value})"
        )
        return report

    def _run_one(self, session: RemoteSession, planned: PlannedCommand) -> ExecutionResult:
        logger.info(f"[{planned.category}] {planned.command}")
        line = remote_command_line(self.config.remote_project_path, planned.command)
        started = time.monotonic()
        try:
            outcome = session.run(line, timeout=self.config.command_timeout)
        except TransportError as e:
            logger.error(str(e))
            return ExecutionResult(
                command=planned.command,
                category=planned.category,
                success=False,
                transport_error=self._redact(e.message),
                duration_s=time.monotonic() - started,
            )

        result = ExecutionResult(
            command=planned.command,
            category=planned.category,
            success=outcome.exit_code == 0 and not outcome.timed_out,
            stdout=self._redact(outcome.stdout),
            stderr=self._redact(outcome.stderr),
            exit_code=outcome.exit_code,
            timed_out=outcome.timed_out,
            duration_s=time.monotonic() - started,
        )
        if result.success:
            logger.info(f"[{planned.category}] ok ({result.duration_s:.1f}s)")
        return result

    def _log_failure(self, result: ExecutionResult) -> None:
        error = CommandError(result.command, result.category, result.exit_code, result.stderr)
        if result.timed_out:
            logger.warning(f"{error} on {self.config.host}: timed out after {self.config.command_timeout}s")
        else:
            logger.warning(f"{error} on {self.config.host}: {result.stderr[-STDERR_TAIL:].strip()}")

    def _should_continue(self, result: ExecutionResult) -> bool:
        if self.policy is FailurePolicy.CONTINUE_ALL:
            return True
        if self.policy is FailurePolicy.PROMPT_ON_FAILURE and self.confirm_continue is not None:
            return bool(self.confirm_continue(result))
        return False

    def _redact(self, text: Optional[str]) -> str:
        secrets: List[str] = []
        password = self.config.resolve_password(self.environ) if self.config else None
        if password:
            secrets.append(password)
        return redact_text(text, secrets)
