from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional


IGNORE_DIRS = {
    ".git",
    "node_modules",
    "vendor",
    ".venv",
    "venv",
    "__pycache__",
    ".next",
    "build",
    "dist",
}


def read_text(path: str | Path, limit_bytes: int = 1_000_000) -> str:
    p = Path(path)
    try:
        if p.stat().st_size > limit_bytes:
            return ""  # too large, skip content
    except OSError:
        return ""

    for enc in ("utf-8", "utf-8-sig", "latin-1"):
        try:
            with open(p, "r", encoding=enc, errors="ignore") as f:
                return f.read()
        except (OSError, UnicodeError):
            continue
    return ""


def read_json(path: str | Path) -> Optional[dict]:
    text = read_text(path)
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def list_root(root: str | Path) -> tuple[List[str], List[str]]:
    """Top-level file names and (non-hidden, non-ignored) directory names."""
    files: List[str] = []
    dirs: List[str] = []
    try:
        entries = sorted(Path(root).iterdir())
    except OSError:
        return files, dirs
    for entry in entries:
        if entry.is_file():
            files.append(entry.name)
        elif entry.is_dir() and not entry.name.startswith(".") and entry.name not in IGNORE_DIRS:
            dirs.append(entry.name)
    return files, dirs
