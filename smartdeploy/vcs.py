"""
Read-only git queries used by smart deploys.

Failures (not a repository, shallow history without HEAD~1, git missing)
surface as PlanningDegradation so the caller can fall back to a full deploy.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

from .errors import PlanningDegradation

logger = logging.getLogger(__name__)


def _git(repo: str | Path, *args: str) -> str:
    try:
        r = subprocess.run(["git", "-C", str(repo), *args], capture_output=True, text=True, check=True)
    except FileNotFoundError:
        raise PlanningDegradation("git executable not found")
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip().splitlines()
        raise PlanningDegradation(f"git {args[0]} failed: {detail[-1] if detail else e.returncode}")
    return r.stdout


def repo_root(path: str | Path = ".") -> Path:
    """Top-level directory of the working tree containing `path`."""
    return Path(_git(path, "rev-parse", "--show-toplevel").strip())


def changed_paths(repo: str | Path, base: str = "HEAD~1", head: str = "HEAD") -> List[str]:
    """
    Repository-relative paths changed between `base` and `head`, in git's order.

    Raises:
        PlanningDegradation: when the diff cannot be computed
    """
    output = _git(repo, "diff", "--name-only", base, head)
    paths = [line.strip() for line in output.splitlines() if line.strip()]
    logger.debug(f"{len(paths)} paths changed between {base} and {head}")
    return paths
