"""
Tests for the deployment executor, using a fake remote session.
"""

from unittest.mock import Mock

import pytest

from smartdeploy.config import ServerConnectionConfig
from smartdeploy.errors import TransportError
from smartdeploy.planner import CommandPlan, Phase, PlannedCommand
from smartdeploy.remote import (
    CommandOutcome,
    DeploymentExecutor,
    ExecutorState,
    FailurePolicy,
    Verdict,
)


class FakeSession:
    """Records commands; returns scripted outcomes keyed by a substring of the command."""

    def __init__(self, outcomes=None, host="h"):
        self.host = host
        self.outcomes = outcomes or {}
        self.commands = []
        self.timeouts = []
        self.closed = False

    def run(self, command, timeout=None):
        self.commands.append(command)
        self.timeouts.append(timeout)
        for needle, outcome in self.outcomes.items():
            if needle in command:
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        return CommandOutcome(exit_code=0, stdout="ok\n", stderr="")

    def close(self):
        self.closed = True


CONFIG = ServerConnectionConfig(
    host="h",
    user="u",
    key_path="/k",
    remote_project_path="/var/www/app",
    whitelist=("git", "composer", "php artisan"),
)

PLAN = CommandPlan(commands=(
    PlannedCommand(Phase.SOURCE_SYNC, "git pull origin main"),
    PlannedCommand(Phase.BACKEND_INSTALL, "composer install --no-dev"),
    PlannedCommand(Phase.MIGRATION, "php artisan migrate --force"),
))

FAILED = CommandOutcome(exit_code=1, stdout="", stderr="Your requirements could not be resolved")


def make_executor(session, config=CONFIG, **kwargs):
    factory = Mock(return_value=session)
    return DeploymentExecutor(config, session_factory=factory, environ={}, **kwargs), factory


class TestExecution:
    """Test the happy path and session handling."""

    def test_all_commands_succeed(self):
        session = FakeSession()
        executor, factory = make_executor(session)

        report = executor.execute(PLAN)

        factory.assert_called_once_with(CONFIG)
        assert report.ok
        assert report.verdict is Verdict.SUCCEEDED
        assert report.succeeded == 3
        assert session.commands == [
            "cd /var/www/app && git pull origin main",
            "cd /var/www/app && composer install --no-dev",
            "cd /var/www/app && php artisan migrate --force",
        ]
        assert session.closed
        assert executor.state is ExecutorState.REPORTED

    def test_remote_path_is_quoted(self):
        session = FakeSession()
        config = ServerConnectionConfig(host="h", user="u", key_path="/k", remote_project_path="/srv/my app",
                                        whitelist=("git",))
        executor, _ = make_executor(session, config=config)

        executor.execute(CommandPlan(commands=(PlannedCommand(Phase.SOURCE_SYNC, "git pull origin main"),)))

        assert session.commands == ["cd '/srv/my app' && git pull origin main"]

    def test_command_timeout_passed_to_session(self):
        session = FakeSession()
        executor, _ = make_executor(session)
        executor.execute(PLAN)
        assert session.timeouts == [900.0, 900.0, 900.0]

    def test_empty_plan_never_connects(self):
        executor, factory = make_executor(FakeSession())
        report = executor.execute(CommandPlan())
        factory.assert_not_called()
        assert report.ok
        assert len(report) == 0

    def test_executor_is_single_use(self):
        executor, _ = make_executor(FakeSession())
        executor.execute(PLAN)
        with pytest.raises(RuntimeError):
            executor.execute(PLAN)


class TestFailurePolicy:
    """Test what happens after a failed command."""

    def test_continue_all_runs_every_command(self):
        session = FakeSession({"composer": FAILED})
        executor, _ = make_executor(session)

        report = executor.execute(PLAN)

        assert len(report) == 3
        assert [r.success for r in report.results] == [True, False, True]
        assert report.results[1].exit_code == 1
        assert report.results[1].category == "backend_install"
        assert "could not be resolved" in report.results[1].stderr
        assert report.failed == 1
        assert not report.ok
        assert report.verdict is Verdict.NEEDS_REVIEW

    def test_abort_skips_remaining(self):
        session = FakeSession({"composer": FAILED})
        executor, _ = make_executor(session, policy=FailurePolicy.ABORT)

        report = executor.execute(PLAN)

        assert len(report) == 2
        assert report.aborted
        assert [p.command for p in report.skipped] == ["php artisan migrate --force"]
        assert len(session.commands) == 2
        assert session.closed

    def test_prompt_asks_callback(self):
        confirm = Mock(return_value=True)
        executor, _ = make_executor(FakeSession({"composer": FAILED}),
                                    policy=FailurePolicy.PROMPT_ON_FAILURE, confirm_continue=confirm)

        report = executor.execute(PLAN)

        confirm.assert_called_once()
        assert confirm.call_args[0][0].command == "composer install --no-dev"
        assert len(report) == 3

    def test_prompt_without_callback_aborts(self):
        executor, _ = make_executor(FakeSession({"composer": FAILED}), policy=FailurePolicy.PROMPT_ON_FAILURE)
        report = executor.execute(PLAN)
        assert report.aborted
        assert len(report) == 2

    def test_first_command_failure_is_failed_verdict(self):
        executor, _ = make_executor(FakeSession({"git pull": FAILED}), policy=FailurePolicy.ABORT)
        report = executor.execute(PLAN)
        assert report.verdict is Verdict.FAILED

    def test_timed_out_command_fails(self):
        timed_out = CommandOutcome(exit_code=None, stdout="partial", stderr="", timed_out=True)
        executor, _ = make_executor(FakeSession({"migrate": timed_out}))

        report = executor.execute(PLAN)

        result = report.results[2]
        assert result.timed_out
        assert not result.success
        assert result.exit_code is None
        assert result.stdout == "partial"

    def test_policy_from_config_name(self):
        assert FailurePolicy.from_name("abort") is FailurePolicy.ABORT
        assert FailurePolicy.from_name("continue") is FailurePolicy.CONTINUE_ALL
        assert FailurePolicy.from_name("Prompt") is FailurePolicy.PROMPT_ON_FAILURE
        with pytest.raises(ValueError):
            FailurePolicy.from_name("retry")


class TestValidationAndTransport:
    """Test the states that stop a run before or during execution."""

    def test_invalid_config_never_connects(self):
        config = ServerConnectionConfig(host="h", user="u", key_path="/k", whitelist=("npm",))
        plan = CommandPlan(commands=(PlannedCommand(Phase.SERVICE_RESTART, "rm -rf /"),))
        executor, factory = make_executor(FakeSession(), config=config)

        report = executor.execute(plan)

        factory.assert_not_called()
        assert executor.state is ExecutorState.INVALID
        assert report.verdict is Verdict.INVALID
        assert report.validation_errors == ["Command not permitted by whitelist: rm -rf / (service_restart)"]
        assert [p.command for p in report.skipped] == ["rm -rf /"]

    def test_missing_server_block(self):
        executor, factory = make_executor(FakeSession(), config=None)
        report = executor.execute(PLAN)
        factory.assert_not_called()
        assert report.validation_errors == ["Server configuration is missing"]

    def test_connection_failure(self):
        factory = Mock(side_effect=TransportError("h", "Connection refused"))
        executor = DeploymentExecutor(CONFIG, session_factory=factory, environ={})

        report = executor.execute(PLAN)

        assert report.transport_error == "Connection refused"
        assert report.results == []
        assert len(report.skipped) == 3
        assert report.verdict is Verdict.FAILED

    def test_transport_error_mid_run_keeps_partial_results(self):
        session = FakeSession({"composer": TransportError("h", "Connection reset by peer")})
        executor, _ = make_executor(session)

        report = executor.execute(PLAN)

        assert len(report) == 2
        assert report.results[0].success
        assert report.results[1].transport_error == "Connection reset by peer"
        assert report.transport_error == "Connection reset by peer"
        assert [p.command for p in report.skipped] == ["php artisan migrate --force"]
        assert report.verdict is Verdict.NEEDS_REVIEW
        assert session.closed

    def test_password_redacted_from_output(self):
        config = ServerConnectionConfig(host="h", user="u", whitelist=("git",))
        session = FakeSession({"git": CommandOutcome(exit_code=1, stdout="", stderr="bad credential hunter22")})
        executor = DeploymentExecutor(config, session_factory=Mock(return_value=session),
                                      environ={"SSH_PASSWORD": "hunter22"})

        report = executor.execute(CommandPlan(commands=(PlannedCommand(Phase.SOURCE_SYNC, "git pull origin main"),)))

        assert "hunter22" not in report.results[0].stderr
        assert "hunter22" not in str(report.to_dict())
