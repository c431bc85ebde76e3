"""
Execution results.

One ExecutionResult per command that was attempted; commands never started
(abort, transport loss) are listed in ExecutionReport.skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from smartdeploy.planner.plan import PlannedCommand


class Verdict(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"
    INVALID = "invalid"


@dataclass
class ExecutionResult:
    command: str
    category: str
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    transport_error: Optional[str] = None
    timed_out: bool = False
    duration_s: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "category": self.category,
            "success": self.success,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "transport_error": self.transport_error,
            "timed_out": self.timed_out,
            "duration_s": round(self.duration_s, 3),
        }


@dataclass
class ExecutionReport:
    """
    Outcome of one executor run.

    Results keep plan order. A run that changed the server and then failed
    or stopped early has no rollback, so its verdict is NEEDS_REVIEW.
    """
    host: str
    results: List[ExecutionResult] = field(default_factory=list)
    skipped: List[PlannedCommand] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    transport_error: Optional[str] = None
    aborted: bool = False

    def __len__(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def ok(self) -> bool:
        return (
            not self.validation_errors
            and self.transport_error is None
            and not self.skipped
            and self.failed == 0
        )

    @property
    def verdict(self) -> Verdict:
        if self.validation_errors:
            return Verdict.INVALID
        if self.ok:
            return Verdict.SUCCEEDED
        # source sync alone changes the tree, so any success counts
        if self.succeeded:
            return Verdict.NEEDS_REVIEW
        return Verdict.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "verdict": self.verdict.value,
            "ok": self.ok,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "aborted": self.aborted,
            "transport_error": self.transport_error,
            "validation_errors": list(self.validation_errors),
            "results": [r.to_dict() for r in self.results],
            "skipped": [p.to_dict() for p in self.skipped],
        }
