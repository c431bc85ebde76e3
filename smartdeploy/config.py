"""
Deployment configuration.

The persisted document (`.smart-deploy.json` or `.smart-deploy.yml` in the
project root) is owned by the operator; this module only reads it. Values are
loaded into frozen dataclasses and passed explicitly to each component.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".smart-deploy.json", ".smart-deploy.yml", ".smart-deploy.yaml")
DEFAULT_REMOTE_PATH = "/var/www/html"
DEFAULT_PASSWORD_ENV = "SSH_PASSWORD"
DEFAULT_COMMAND_TIMEOUT = 900.0


@dataclass(frozen=True)
class ServerConnectionConfig:
    """
    Remote connection parameters.

    The password is never stored here: `password_env` names the environment
    variable that holds it, and it is read only when the session opens.
    """
    host: str = ""
    user: str = ""
    port: int = 22
    key_path: Optional[str] = None
    password_env: str = DEFAULT_PASSWORD_ENV
    remote_project_path: str = DEFAULT_REMOTE_PATH
    whitelist: Tuple[str, ...] = ()
    auto_execute: bool = False
    connect_timeout: float = 10.0
    command_timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT
    strict_host_keys: bool = False

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"

    def resolve_password(self, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        env = os.environ if environ is None else environ
        return env.get(self.password_env) or None

    def expanded_key_path(self) -> Optional[str]:
        return os.path.expanduser(self.key_path) if self.key_path else None


@dataclass(frozen=True)
class DeployConfig:
    enabled: bool = True
    auto_execute: bool = False
    project_path: str = DEFAULT_REMOTE_PATH
    server: Optional[ServerConnectionConfig] = None
    commands: Dict[str, List[str]] = field(default_factory=dict)
    whitelist: Tuple[str, ...] = ()
    project_type: Optional[str] = None
    branch: str = "main"
    failure_policy: str = "continue"


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    # accepts camelCase and snake_case spellings
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_bool(value: Any, name: str, errors: List[str]) -> bool:
    if isinstance(value, bool):
        return value
    errors.append(f"{name} must be a boolean")
    return False


def _as_str_list(value: Any, name: str, errors: List[str]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        errors.append(f"{name} must be a list of strings")
        return ()
    return tuple(item.strip() for item in value if item.strip())


def _as_timeout(value: Any, name: str, errors: List[str]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        errors.append(f"{name} must be a positive number or null")
        return None
    return float(value)


def parse_config(data: Mapping[str, Any]) -> DeployConfig:
    """
    Build a DeployConfig from a loaded document.

    Raises:
        ConfigurationError: on wrongly typed fields
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(["Configuration must be an object"])
    if isinstance(data.get("serverCommands"), Mapping):
        data = data["serverCommands"]

    errors: List[str] = []
    enabled = _as_bool(_pick(data, "enabled", default=True), "enabled", errors)
    auto_execute = _as_bool(_pick(data, "autoExecute", "auto_execute", default=False), "autoExecute", errors)
    project_path = _pick(data, "projectPath", "project_path", default=DEFAULT_REMOTE_PATH)
    if not isinstance(project_path, str) or not project_path.strip():
        errors.append("projectPath must be a non-empty string")
        project_path = DEFAULT_REMOTE_PATH
    whitelist = _as_str_list(_pick(data, "whitelist"), "whitelist", errors)

    commands_raw = _pick(data, "commands", default={})
    commands: Dict[str, List[str]] = {}
    if not isinstance(commands_raw, Mapping):
        errors.append("commands must be an object of command lists")
    else:
        for category, value in commands_raw.items():
            commands[str(category)] = list(_as_str_list(value, f"commands.{category}", errors))

    server = None
    server_raw = _pick(data, "server")
    if server_raw is not None:
        if not isinstance(server_raw, Mapping):
            errors.append("server must be an object")
        else:
            port = _pick(server_raw, "port", default=22)
            if isinstance(port, bool) or not isinstance(port, int):
                errors.append("server.port must be an integer")
                port = 22
            # an explicit null disables the per-command timeout
            if "commandTimeout" in server_raw or "command_timeout" in server_raw:
                command_timeout = _as_timeout(_pick(server_raw, "commandTimeout", "command_timeout"),
                                              "server.commandTimeout", errors)
            else:
                command_timeout = DEFAULT_COMMAND_TIMEOUT
            server = ServerConnectionConfig(
                host=str(_pick(server_raw, "host", default="")).strip(),
                user=str(_pick(server_raw, "user", default="")).strip(),
                port=port,
                key_path=_pick(server_raw, "keyPath", "key_path"),
                password_env=str(_pick(server_raw, "passwordEnv", "password_env", default=DEFAULT_PASSWORD_ENV)),
                remote_project_path=project_path,
                whitelist=whitelist,
                auto_execute=auto_execute,
                connect_timeout=_as_timeout(_pick(server_raw, "connectTimeout", "connect_timeout", default=10.0),
                                            "server.connectTimeout", errors) or 10.0,
                command_timeout=command_timeout,
                strict_host_keys=_as_bool(_pick(server_raw, "strictHostKeys", "strict_host_keys", default=False),
                                          "server.strictHostKeys", errors),
            )

    policy = _pick(data, "failurePolicy", "failure_policy", default="continue")
    if policy not in ("abort", "continue", "prompt"):
        errors.append("failurePolicy must be one of: abort, continue, prompt")
        policy = "continue"

    if errors:
        raise ConfigurationError(errors)

    return DeployConfig(
        enabled=enabled,
        auto_execute=auto_execute,
        project_path=project_path,
        server=server,
        commands=commands,
        whitelist=whitelist,
        project_type=_pick(data, "projectType", "project_type"),
        branch=str(_pick(data, "branch", default="main")),
        failure_policy=policy,
    )


def find_config(project_root: str | Path) -> Optional[Path]:
    override = os.environ.get("SMARTDEPLOY_CONFIG")
    if override:
        return Path(override).expanduser()
    for name in CONFIG_FILENAMES:
        candidate = Path(project_root) / name
        if candidate.exists():
            return candidate
    return None


def load_config(project_root: str | Path = ".", path: Optional[str | Path] = None) -> DeployConfig:
    """
    Load the persisted deployment configuration.

    Args:
        project_root: directory searched for CONFIG_FILENAMES
        path: explicit config file, takes precedence over the search

    Raises:
        ConfigurationError: if no file is found or it cannot be parsed
    """
    config_path = Path(path) if path else find_config(project_root)
    if config_path is None or not config_path.exists():
        raise ConfigurationError([
            f"No deployment configuration found (looked for {', '.join(CONFIG_FILENAMES)} in {project_root})"
        ])

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigurationError([f"Cannot read {config_path}: {e}"])

    try:
        if config_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError([f"Cannot parse {config_path}: {e}"])

    logger.debug(f"Loaded deployment configuration from {config_path}")
    return parse_config(data)
