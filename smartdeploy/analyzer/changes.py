"""
Category rules for changed files.

Every changed path is tested against a fixed, ordered table of rules. A path
may match several categories; the order of the table is the order in which
reasons are reported.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple


class ChangeCategory(Enum):
    """Deployment-relevant categories, in priority order."""
    DEPENDENCY_MANIFEST = "dependency_manifest"
    FRAMEWORK_CONFIG = "framework_config"
    MIGRATION = "migration"
    FRONTEND_ASSET = "frontend_asset"
    SYSTEM_CONFIG = "system_config"


BACKEND_MANIFESTS = {
    "composer.json",
    "composer.lock",
    "requirements.txt",
    "pyproject.toml",
    "poetry.lock",
    "pipfile",
    "pipfile.lock",
    "gemfile",
    "gemfile.lock",
    "go.mod",
    "go.sum",
}

FRONTEND_MANIFESTS = {
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
}

CONFIG_DIRS = ("config/", "routes/", "app/providers/", "bootstrap/")
CONFIG_FILES = {"settings.py", "urls.py"}

MIGRATION_DIRS = ("alembic/versions/",)

ASSET_DIRS = (
    "resources/js/",
    "resources/css/",
    "resources/sass/",
    "resources/views/",
    "assets/",
    "static/src/",
)
# Node projects compile their whole source tree.
NODE_ASSET_DIRS = ("src/", "public/", "components/", "pages/")
BUNDLER_CONFIGS = {
    "webpack.mix.js",
    "webpack.config.js",
    "vite.config.js",
    "vite.config.ts",
    "vite.config.mjs",
    "rollup.config.js",
    "babel.config.js",
    "tsconfig.json",
    "tailwind.config.js",
    "postcss.config.js",
}

SYSTEM_FILES = {"nginx.conf", "php.ini", "supervisord.conf", "ecosystem.config.js"}
SYSTEM_DIRS = ("nginx/", "supervisor/")

NODE_PROJECT_TYPES = {"node", "nodejs", "nextjs", "nuxt", "vue", "angular", "react", "express"}


def normalize_path(path: str) -> str:
    """Forward slashes, no leading './', lower-cased for matching."""
    p = path.strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/").lower()


def _under(path: str, prefixes: Tuple[str, ...]) -> bool:
    # matches both "config/app.php" and "backend/config/app.php"
    return any(path.startswith(prefix) or f"/{prefix}" in path for prefix in prefixes)


def manifest_kind(path: str) -> Optional[str]:
    name = posixpath.basename(path)
    if name in BACKEND_MANIFESTS:
        return "backend"
    if name in FRONTEND_MANIFESTS:
        return "frontend"
    return None


def is_framework_config(path: str) -> bool:
    name = posixpath.basename(path)
    if name.startswith(".env"):
        return True
    if name in CONFIG_FILES:
        return True
    return _under(path, CONFIG_DIRS)


def is_migration(path: str) -> bool:
    segments = path.split("/")[:-1]
    if "migrations" in segments:
        return True
    return _under(path, MIGRATION_DIRS)


def is_frontend_asset(path: str, project_type: Optional[str] = None) -> bool:
    if posixpath.basename(path) in BUNDLER_CONFIGS:
        return True
    if _under(path, ASSET_DIRS):
        return True
    if project_type and project_type.lower() in NODE_PROJECT_TYPES:
        return any(path.startswith(prefix) for prefix in NODE_ASSET_DIRS)
    return False


def is_system_config(path: str) -> bool:
    name = posixpath.basename(path)
    if name in SYSTEM_FILES:
        return True
    if name.startswith("php-fpm") or name.endswith(".service"):
        return True
    return _under(path, SYSTEM_DIRS)


@dataclass(frozen=True)
class CategoryRule:
    """A single category predicate and the label used in reasons."""
    category: ChangeCategory
    label: str
    matches: Callable[[str, Optional[str]], bool]


RULES: List[CategoryRule] = [
    CategoryRule(ChangeCategory.DEPENDENCY_MANIFEST, "Dependencies",
                 lambda p, _t: manifest_kind(p) is not None),
    CategoryRule(ChangeCategory.FRAMEWORK_CONFIG, "Framework configuration",
                 lambda p, _t: is_framework_config(p)),
    CategoryRule(ChangeCategory.MIGRATION, "Database migration",
                 lambda p, _t: is_migration(p)),
    CategoryRule(ChangeCategory.FRONTEND_ASSET, "Frontend sources",
                 is_frontend_asset),
    CategoryRule(ChangeCategory.SYSTEM_CONFIG, "System configuration",
                 lambda p, _t: is_system_config(p)),
]


@dataclass(frozen=True)
class FileChange:
    path: str
    categories: Tuple[ChangeCategory, ...]
    manifest_kind: Optional[str] = None

    @classmethod
    def from_path(cls, path: str, project_type: Optional[str] = None) -> "FileChange":
        normalized = normalize_path(path)
        matched = tuple(rule.category for rule in RULES if rule.matches(normalized, project_type))
        return cls(path=path, categories=matched, manifest_kind=manifest_kind(normalized))

    @property
    def is_dependency_manifest(self) -> bool:
        return ChangeCategory.DEPENDENCY_MANIFEST in self.categories

    @property
    def is_framework_config(self) -> bool:
        return ChangeCategory.FRAMEWORK_CONFIG in self.categories

    @property
    def is_migration(self) -> bool:
        return ChangeCategory.MIGRATION in self.categories

    @property
    def is_frontend_asset(self) -> bool:
        return ChangeCategory.FRONTEND_ASSET in self.categories

    @property
    def is_system_config(self) -> bool:
        return ChangeCategory.SYSTEM_CONFIG in self.categories

    @property
    def relevant(self) -> bool:
        return bool(self.categories)


def rule_label(category: ChangeCategory, change: FileChange) -> str:
    if category is ChangeCategory.DEPENDENCY_MANIFEST:
        return "Backend dependencies" if change.manifest_kind == "backend" else "Frontend dependencies"
    for rule in RULES:
        if rule.category is category:
            return rule.label
    return category.value
