"""
Deployment exceptions.

Custom exceptions for deployment failures with actionable error messages.
"""

from typing import List, Optional


class SmartDeployError(Exception):
    """Base class for all smartdeploy errors."""
    pass


class ConfigurationError(SmartDeployError):
    """
    Raised when connection settings are incomplete or a planned command
    violates the whitelist.

    Always raised before any connection attempt.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid deployment configuration:\n  - " + "\n  - ".join(self.errors))


class TransportError(SmartDeployError):
    """
    Raised when the remote session cannot be opened or drops mid-run.

    Examples:
        - connection refused / host unreachable
        - authentication failure
        - session closed by the remote side
    """

    def __init__(self, host: str, message: str):
        self.host = host
        self.message = message
        super().__init__(f"SSH transport error on {host}: {message}")


class CommandError(SmartDeployError):
    """
    A remote command exited non-zero.

    The executor records these in the report instead of raising; callers
    that want stricter semantics can raise it from a report result.
    """

    def __init__(self, command: str, category: str, exit_code: Optional[int], stderr: str = ""):
        self.command = command
        self.category = category
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"[{category}] '{command}' failed with exit code {exit_code}")


class PlanningDegradation(SmartDeployError):
    """
    Analysis could not produce a reasoned plan (diff unavailable, external
    plan malformed). Never shown to the user as a failure: callers log it and
    substitute a conservative fallback.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
