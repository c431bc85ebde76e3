from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .walk import list_root, read_json, read_text

logger = logging.getLogger(__name__)


@dataclass
class ProjectInfo:
    type: str = "unknown"                  # php | node | python | java | unknown
    framework: Optional[str] = None        # laravel | symfony | nextjs | nuxt | angular | vue | django | flask | fastapi
    package_manager: Optional[str] = None  # composer | npm | yarn | pnpm | pip | maven | gradle
    has_docker: bool = False
    has_database: bool = False
    has_frontend: bool = False
    php_version: Optional[str] = None
    files: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    rationale: List[str] = field(default_factory=list)

    @property
    def project_type(self) -> str:
        """Planner hint: the framework where one drives the recipe, else the runtime."""
        if self.framework in ("laravel", "django"):
            return self.framework
        return self.type

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "framework": self.framework,
            "package_manager": self.package_manager,
            "has_docker": self.has_docker,
            "has_database": self.has_database,
            "has_frontend": self.has_frontend,
            "php_version": self.php_version,
            "project_type": self.project_type,
        }


def _php_version(constraint: str) -> Optional[str]:
    # "^8.2" / ">=8.1" / "~8.3.0" -> "8.2" / "8.1" / "8.3"
    digits = "".join(ch for ch in constraint if ch.isdigit() or ch == ".").strip(".")
    parts = [p for p in digits.split(".") if p]
    if len(parts) >= 2:
        return f"{parts[0]}.{parts[1]}"
    return None


def node_package_manager(files: List[str]) -> str:
    if "pnpm-lock.yaml" in files:
        return "pnpm"
    if "yarn.lock" in files:
        return "yarn"
    return "npm"


def detect_project(app_root: str) -> ProjectInfo:
    """
    Static look at the project root to infer runtime, framework and tooling.
    Never executes project code.
    """
    root = Path(app_root)
    files, directories = list_root(root)
    info = ProjectInfo(files=files, directories=directories)

    pkg = read_json(root / "package.json") if "package.json" in files else None

    if "composer.json" in files:
        info.type = "php"
        info.package_manager = "composer"
        composer = read_json(root / "composer.json") or {}
        require = composer.get("require", {}) or {}
        if "artisan" in files or "laravel/framework" in require:
            info.framework = "laravel"
            info.rationale.append("Detected Laravel via artisan / laravel/framework")
        elif "symfony.lock" in files:
            info.framework = "symfony"
            info.rationale.append("Detected Symfony via symfony.lock")
        if isinstance(require.get("php"), str):
            info.php_version = _php_version(require["php"])
    elif pkg is not None:
        info.type = "node"
        info.package_manager = node_package_manager(files)
        deps = {**(pkg.get("dependencies", {}) or {}), **(pkg.get("devDependencies", {}) or {})}
        if "next" in deps or "next.config.js" in files:
            info.framework = "nextjs"
        elif "nuxt" in deps or "nuxt.config.js" in files:
            info.framework = "nuxt"
        elif "angular.json" in files:
            info.framework = "angular"
        elif "vue" in deps or "vue.config.js" in files:
            info.framework = "vue"
        if info.framework:
            info.rationale.append(f"Detected {info.framework} from package.json / config files")
    elif any(name in files for name in ("requirements.txt", "pyproject.toml", "Pipfile")):
        info.type = "python"
        info.package_manager = "pip"
        deps_text = (read_text(root / "requirements.txt") + read_text(root / "pyproject.toml")).lower()
        if "manage.py" in files or "django" in deps_text:
            info.framework = "django"
        elif "fastapi" in deps_text:
            info.framework = "fastapi"
        elif "flask" in deps_text:
            info.framework = "flask"
        if info.framework:
            info.rationale.append(f"Detected {info.framework} from manifests")
    elif "pom.xml" in files:
        info.type = "java"
        info.package_manager = "maven"
    elif "build.gradle" in files or "build.gradle.kts" in files:
        info.type = "java"
        info.package_manager = "gradle"

    # A PHP/Python backend with a package.json has a frontend to build.
    if pkg is not None:
        info.has_frontend = bool((pkg.get("scripts", {}) or {}).get("build")) or info.type == "node"

    info.has_docker = "Dockerfile" in files or "docker-compose.yml" in files
    info.has_database = any(d in directories for d in ("database", "migrations", "prisma", "alembic")) or any(
        name.endswith(".sql") for name in files
    )

    logger.debug(f"Project detection for {app_root}: {info.to_dict()}")
    return info
