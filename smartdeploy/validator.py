"""
Pre-flight validation of connection settings and command safety.

Runs before any network activity; the executor refuses to connect unless
validate() returns no errors.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional

from .config import ServerConnectionConfig
from .errors import ConfigurationError
from .planner.plan import CommandPlan

CHAIN_SPLIT = re.compile(r"\s*(?:&&|\|\||;|\n|\||(?<![<>&])&(?![>&]))\s*")
SUBSTITUTION = re.compile(r"`|\$\(")


def command_segments(command: str) -> List[str]:
    """Split a shell line into the individual commands it chains."""
    return [segment for segment in CHAIN_SPLIT.split(command.strip()) if segment]


def prefix_allows(prefix: str, segment: str) -> bool:
    # "npm" allows "npm run build" but not "npmx"
    prefix = prefix.strip()
    if not prefix:
        return False
    if segment == prefix:
        return True
    return segment.startswith(prefix) and segment[len(prefix)].isspace()


def is_permitted(command: str, whitelist: Iterable[str]) -> bool:
    if SUBSTITUTION.search(command):
        return False
    prefixes = [p for p in whitelist if p and p.strip()]
    segments = command_segments(command)
    if not segments:
        return False
    return all(any(prefix_allows(prefix, segment) for prefix in prefixes) for segment in segments)


def validate(
    config: Optional[ServerConnectionConfig],
    plan: CommandPlan,
    environ: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """
    Check connection completeness and whitelist conformance.

    Args:
        config: connection block, or None when the persisted config has none
        plan: commands that are about to run
        environ: environment used to look up the password variable
            (defaults to os.environ)

    Returns:
        List of error strings; empty means valid
    """
    errors: List[str] = []

    if config is None:
        errors.append("Server configuration is missing")
        return errors

    if not config.host:
        errors.append("Server host is required")
    if not config.user:
        errors.append("Server user is required")
    if not 1 <= config.port <= 65535:
        errors.append(f"Server port must be between 1 and 65535 (got {config.port})")
    if not config.remote_project_path:
        errors.append("Remote project path is required")

    if not config.key_path and not config.resolve_password(environ):
        errors.append(
            f"Either an SSH key path or the {config.password_env} environment variable is required"
        )

    if plan and not any(p.strip() for p in config.whitelist):
        errors.append("Command whitelist is empty; no command may run")

    for planned in plan:
        if SUBSTITUTION.search(planned.command):
            errors.append(f"Command substitution is not permitted: {planned.command}")
        elif not is_permitted(planned.command, config.whitelist):
            errors.append(f"Command not permitted by whitelist: {planned.command} ({planned.category})")

    return errors


def ensure_valid(
    config: Optional[ServerConnectionConfig],
    plan: CommandPlan,
    environ: Optional[Mapping[str, str]] = None,
) -> None:
    """Raise ConfigurationError unless validate() passes."""
    errors = validate(config, plan, environ)
    if errors:
        raise ConfigurationError(errors)
