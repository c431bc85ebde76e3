"""Main CLI entrypoint for smartdeploy."""

import json
import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..config import DeployConfig, load_config
from ..errors import ConfigurationError
from ..pipeline import execute_plan, plan_full_deploy, plan_smart
from ..planner import CommandPlan
from ..remote import ExecutionReport, ExecutionResult, FailurePolicy, Verdict

LOCK_FILENAME = ".smart-deploy.lock"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


@click.group()
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.option('--verbose', '-v', is_flag=True, help='Log progress at INFO level')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Deployment config file')
@click.option('--repo', default='.', type=click.Path(file_okay=False), help='Project repository root')
@click.pass_context
def main(ctx, output_json, verbose, config_path, repo):
    """smartdeploy - run only the deployment steps your changes need."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['json'] = output_json
    ctx.obj['config_path'] = config_path
    ctx.obj['repo'] = repo


def _json_output(data: Dict[str, Any]) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=None))


def _human_output(message: str) -> None:
    """Output human-readable message."""
    if not click.get_current_context().obj.get('json', False):
        click.echo(message)


def _fail(message: str, code: int, errors: Optional[list] = None) -> None:
    if click.get_current_context().obj.get('json', False):
        _json_output({'error': message, 'errors': errors or []})
    else:
        click.echo(f"❌ {message}", err=True)
        for error in errors or []:
            click.echo(f"   - {error}", err=True)
    sys.exit(code)


def _load(ctx) -> DeployConfig:
    try:
        return load_config(ctx.obj['repo'], ctx.obj['config_path'])
    except ConfigurationError as e:
        _fail("Invalid deployment configuration", EXIT_CONFIG, e.errors)


@contextmanager
def deploy_lock(repo: str):
    """Advisory lock so two deployments of the same checkout never overlap."""
    path = Path(repo) / LOCK_FILENAME
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        _fail(f"Another deployment is in progress (remove {path} if it is stale)", EXIT_FAILED)
    try:
        os.write(fd, str(os.getpid()).encode())
        os.close(fd)
        yield path
    finally:
        path.unlink(missing_ok=True)


def _print_plan(plan: CommandPlan, title: str) -> None:
    _human_output(f"\n📋 {title} ({plan.source.value}, {len(plan)} commands)")
    for index, planned in enumerate(plan, 1):
        _human_output(f"  {index}. [{planned.category}] {planned.command}")
    for note in plan.notes:
        _human_output(f"  note: {note}")


def _print_report(report: ExecutionReport) -> None:
    for result in report.results:
        mark = "✅" if result.success else "❌"
        suffix = " (timed out)" if result.timed_out else ""
        _human_output(f"{mark} [{result.category}] {result.command}{suffix}")
        if not result.success:
            detail = result.transport_error or result.stderr.strip() or result.stdout.strip()
            if detail:
                _human_output(f"   {detail[-500:]}")
    for planned in report.skipped:
        _human_output(f"⏭  [{planned.category}] {planned.command} (skipped)")
    for error in report.validation_errors:
        _human_output(f"❌ {error}")
    if report.transport_error and not report.results:
        _human_output(f"❌ Connection failed: {report.transport_error}")
    _human_output(
        f"\n📊 {report.succeeded} succeeded, {report.failed} failed, "
        f"{len(report.skipped)} skipped: {report.verdict.value}"
    )
    if report.verdict is Verdict.NEEDS_REVIEW:
        _human_output("⚠️  The server was partly updated; review its state before redeploying.")


def _prompt_continue(result: ExecutionResult) -> bool:
    return click.confirm(f"'{result.command}' failed. Continue with the remaining commands?",
                         default=False, err=True)


def _execute(ctx, config: DeployConfig, plan: CommandPlan, yes: bool, policy_name: Optional[str],
             extra: Dict[str, Any]) -> None:
    output_json = ctx.obj['json']
    if not config.enabled:
        _fail("Server commands are disabled in the deployment configuration", EXIT_CONFIG)

    if not plan:
        if output_json:
            _json_output({**extra, 'plan': plan.to_dict(), 'report': None})
        else:
            _human_output("✅ No deployment steps required.")
        sys.exit(EXIT_OK)

    _print_plan(plan, "Deployment plan")
    auto = yes or config.auto_execute or bool(config.server and config.server.auto_execute)
    if not auto and not click.confirm("Run these commands on the server?", default=False, err=True):
        _human_output("Deployment cancelled.")
        sys.exit(EXIT_OK)

    policy = FailurePolicy.from_name(policy_name) if policy_name else None
    with deploy_lock(ctx.obj['repo']):
        report = execute_plan(config, plan, policy=policy, confirm_continue=_prompt_continue)

    if output_json:
        _json_output({**extra, 'plan': plan.to_dict(), 'report': report.to_dict()})
    else:
        _print_report(report)

    if report.verdict is Verdict.INVALID:
        sys.exit(EXIT_CONFIG)
    sys.exit(EXIT_OK if report.ok else EXIT_FAILED)


@main.command()
@click.option('--full', is_flag=True, help='Plan a full deployment instead of a smart one')
@click.option('--llm', is_flag=True, help='Ask the configured LLM for full-deploy commands')
@click.option('--base', default='HEAD~1', help='Revision to diff from')
@click.option('--head', default='HEAD', help='Revision to diff to')
@click.pass_context
def plan(ctx, full, llm, base, head):
    """Show the commands a deployment would run, without running them."""
    config = _load(ctx)
    if full:
        command_plan = plan_full_deploy(ctx.obj['repo'], config, use_llm=llm)
        extra: Dict[str, Any] = {}
    else:
        smart = plan_smart(ctx.obj['repo'], config, base, head)
        command_plan = smart.plan
        extra = {'decision': smart.decision.to_dict()}
        for reason in smart.decision.reasons:
            _human_output(f"🔎 {reason}")

    if ctx.obj['json']:
        _json_output({**extra, 'plan': command_plan.to_dict()})
    elif command_plan:
        _print_plan(command_plan, "Deployment plan")
    else:
        _human_output("✅ No deployment steps required.")


@main.command()
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.option('--policy', type=click.Choice([p.value for p in FailurePolicy]), help='Behaviour after a failed command')
@click.option('--llm', is_flag=True, help='Ask the configured LLM for commands when none are configured')
@click.pass_context
def deploy(ctx, yes, policy, llm):
    """Run a full deployment."""
    config = _load(ctx)
    _human_output("🚀 Full deployment")
    command_plan = plan_full_deploy(ctx.obj['repo'], config, use_llm=llm)
    _execute(ctx, config, command_plan, yes, policy, {})


@main.command('deploy-smart')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.option('--policy', type=click.Choice([p.value for p in FailurePolicy]), help='Behaviour after a failed command')
@click.option('--base', default='HEAD~1', help='Revision to diff from')
@click.option('--head', default='HEAD', help='Revision to diff to')
@click.pass_context
def deploy_smart(ctx, yes, policy, base, head):
    """Run only the deployment steps the latest changes require."""
    config = _load(ctx)
    _human_output("🚀 Smart deployment")
    smart = plan_smart(ctx.obj['repo'], config, base, head)
    for reason in smart.decision.reasons:
        _human_output(f"🔎 {reason}")
    _execute(ctx, config, smart.plan, yes, policy, {'decision': smart.decision.to_dict()})


if __name__ == '__main__':
    main()
