"""
Project-metadata collaborators that propose a full-deploy command set.

Whatever they return is untrusted and goes through planner.full.plan_full.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from smartdeploy.analyzer.detect import ProjectInfo
from smartdeploy.redact import redact_text

logger = logging.getLogger(__name__)

DEFAULT_LLM_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_LLM_MODEL = "gpt-4o-mini"


class CommandProposer(ABC):
    """Source of a candidate full-deploy command set."""

    @abstractmethod
    def propose(self, info: ProjectInfo) -> Optional[Any]:
        """Return raw proposal data, or None when nothing can be proposed."""
        pass


class ConfigProposer(CommandProposer):
    """Per-category command lists taken from persisted configuration."""

    def __init__(self, commands: Optional[Dict[str, Any]]):
        self.commands = commands

    def propose(self, info: ProjectInfo) -> Optional[Any]:
        if not self.commands:
            return None
        return self.commands


def build_prompt(info: ProjectInfo) -> str:
    lines: List[str] = [
        "You are a DevOps expert. Generate server deployment commands for this project.",
        "",
        "PROJECT ANALYSIS:",
        f"- Type: {info.type}",
        f"- Framework: {info.framework or 'none'}",
        f"- Package Manager: {info.package_manager or 'none'}",
        f"- Has Frontend Build: {info.has_frontend}",
        f"- Has Docker: {info.has_docker}",
        f"- Has Database: {info.has_database}",
    ]
    if info.php_version:
        lines.append(f"- PHP Version: {info.php_version}")
    lines += [
        "",
        "PROJECT FILES:",
        *[f"- {name}" for name in info.files[:20]],
        *[f"- {name}/" for name in info.directories[:20]],
        "",
        "Return ONLY valid JSON (no explanations, no markdown) with this shape:",
        json.dumps({
            "commands": {
                "git": ["git pull origin main"],
                "frontend": [],
                "backend": [],
                "database": [],
                "docker": [],
                "system": [],
            }
        }, indent=2),
    ]
    return "\n".join(lines)


class LLMProposer(CommandProposer):
    """
    Ask an OpenAI-compatible chat-completions endpoint for a command set.

    Any HTTP or transport failure yields None so the planner falls back to
    its default plan.
    """

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None,
                 model: Optional[str] = None, timeout_s: float = 30.0):
        self.api_key = api_key or os.getenv("SMARTDEPLOY_LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
        self.url = url or os.getenv("SMARTDEPLOY_LLM_URL", DEFAULT_LLM_URL)
        self.model = model or os.getenv("SMARTDEPLOY_LLM_MODEL", DEFAULT_LLM_MODEL)
        self.timeout_s = timeout_s

    def propose(self, info: ProjectInfo) -> Optional[Any]:
        if not self.api_key:
            logger.warning("No LLM API key configured; skipping command proposal")
            return None

        try:
            response = requests.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": build_prompt(info)}],
                    "temperature": 0.2,
                    "max_tokens": 1500,
                },
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.warning(f"LLM request failed: {redact_text(str(e), [self.api_key])}")
            return None

        if response.status_code != 200:
            logger.warning(f"LLM API error: {response.status_code} - {redact_text(response.text[:200], [self.api_key])}")
            return None

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Unexpected LLM response shape: {e}")
            return None
