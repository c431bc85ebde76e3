from __future__ import annotations

from enum import Enum


class FailurePolicy(str, Enum):
    """What the executor does after a command fails."""
    ABORT = "abort"
    CONTINUE_ALL = "continue"
    PROMPT_ON_FAILURE = "prompt"

    @classmethod
    def from_name(cls, name: str) -> "FailurePolicy":
        """Map a persisted config value ("abort", "continue", "prompt")."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown failure policy '{name}' (expected one of: {choices})")
