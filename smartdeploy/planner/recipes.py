"""
Per-project-type command recipes.

A recipe knows the concrete shell commands for each deployment phase of one
kind of project. The planners decide *which* phases run; recipes decide
*what* each phase runs.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import logging
import posixpath

from .plan import Phase

logger = logging.getLogger(__name__)

PHP_VERSION_DEFAULT = "8.3"

# backend manifest basename -> install command for the tool that owns it
MANIFEST_INSTALLS = {
    "composer.json": "composer install --no-dev --optimize-autoloader",
    "composer.lock": "composer install --no-dev --optimize-autoloader",
    "requirements.txt": "pip install -r requirements.txt",
    "pyproject.toml": "pip install .",
    "poetry.lock": "poetry install --no-root --only main",
    "pipfile": "pipenv install --deploy",
    "pipfile.lock": "pipenv install --deploy",
    "gemfile": "bundle install",
    "gemfile.lock": "bundle install",
    "go.mod": "go mod download",
    "go.sum": "go mod download",
}


def manifest_install_commands(paths: Iterable[str]) -> List[str]:
    """Install commands named by changed backend manifests, first-seen order, no duplicates."""
    commands: List[str] = []
    for path in paths:
        name = posixpath.basename(path.strip().replace("\\", "/")).lower()
        command = MANIFEST_INSTALLS.get(name)
        if command and command not in commands:
            commands.append(command)
    return commands


class Recipe(ABC):
    """Abstract base class for project-type recipes."""

    name = "generic"
    # reload for processes serving rebuilt assets or new node dependencies
    process_manager_restart: str = "pm2 restart all"

    @abstractmethod
    def applies(self, project_type: Optional[str]) -> int:
        """
        Return score (0..100) for how well this recipe fits the project type.

        Args:
            project_type: planner hint ("laravel", "node", "django", ...)

        Returns:
            Score from 0-100, where 100 is perfect match
        """
        pass

    def backend_install(self) -> List[str]:
        return []

    def frontend_install(self, package_manager: str = "npm") -> List[str]:
        return [f"{package_manager} install"]

    def frontend_build(self, package_manager: str = "npm") -> List[str]:
        return [f"{package_manager} run build"]

    def framework_optimize(self) -> List[str]:
        return []

    def migration(self) -> List[str]:
        return []

    def service_restart(self, php_version: Optional[str] = None) -> List[str]:
        return ["sudo systemctl restart nginx"]

    def phase_commands(self, phase: Phase, package_manager: str = "npm",
                       php_version: Optional[str] = None) -> List[str]:
        if phase is Phase.BACKEND_INSTALL:
            return self.backend_install()
        if phase is Phase.FRONTEND_INSTALL:
            return self.frontend_install(package_manager)
        if phase is Phase.FRONTEND_BUILD:
            return self.frontend_build(package_manager)
        if phase is Phase.FRAMEWORK_OPTIMIZE:
            return self.framework_optimize()
        if phase is Phase.MIGRATION:
            return self.migration()
        if phase is Phase.SERVICE_RESTART:
            return self.service_restart(php_version)
        return []

    @abstractmethod
    def default_full_commands(self, php_version: Optional[str] = None) -> Dict[str, List[str]]:
        """Hard-coded full deployment, keyed by persisted-config category."""
        pass


class LaravelRecipe(Recipe):
    name = "laravel"

    def applies(self, project_type):
        if project_type == "laravel":
            return 100
        if project_type == "php":
            return 60
        return 0

    def backend_install(self):
        return ["composer install --no-dev --optimize-autoloader"]

    def framework_optimize(self):
        return ["php artisan optimize:clear"]

    def migration(self):
        return ["php artisan migrate --force"]

    def service_restart(self, php_version=None):
        return [
            f"sudo systemctl restart php{php_version or PHP_VERSION_DEFAULT}-fpm",
            "sudo systemctl restart nginx",
        ]

    def default_full_commands(self, php_version=None):
        return {
            "backend": [
                "composer install --no-dev --optimize-autoloader",
                "php artisan config:cache",
                "php artisan route:cache",
                "php artisan view:cache",
            ],
            "database": ["php artisan migrate --force"],
        }


class PhpRecipe(Recipe):
    name = "php"

    def applies(self, project_type):
        return 80 if project_type == "php" else 0

    def backend_install(self):
        return ["composer install --no-dev --optimize-autoloader"]

    def service_restart(self, php_version=None):
        return [
            f"sudo systemctl restart php{php_version or PHP_VERSION_DEFAULT}-fpm",
            "sudo systemctl restart nginx",
        ]

    def default_full_commands(self, php_version=None):
        return {"backend": ["composer install --no-dev --optimize-autoloader"]}


class NodeRecipe(Recipe):
    name = "node"

    def applies(self, project_type):
        if project_type in ("node", "nodejs"):
            return 100
        if project_type in ("nextjs", "nuxt", "vue", "angular", "react", "express"):
            return 90
        return 0

    def default_full_commands(self, php_version=None):
        return {
            "backend": ["npm install --production"],
            "frontend": ["npm run build"],
            "system": ["pm2 restart all"],
        }


class DjangoRecipe(Recipe):
    name = "django"
    process_manager_restart = "sudo systemctl restart gunicorn"

    def applies(self, project_type):
        if project_type == "django":
            return 100
        if project_type == "python":
            return 40
        return 0

    def backend_install(self):
        return ["pip install -r requirements.txt"]

    def framework_optimize(self):
        return ["python manage.py collectstatic --noinput"]

    def migration(self):
        return ["python manage.py migrate --noinput"]

    def service_restart(self, php_version=None):
        return ["sudo systemctl restart gunicorn", "sudo systemctl restart nginx"]

    def default_full_commands(self, php_version=None):
        return {
            "backend": ["pip install -r requirements.txt", "python manage.py collectstatic --noinput"],
            "database": ["python manage.py migrate --noinput"],
        }


class PythonRecipe(Recipe):
    name = "python"

    def applies(self, project_type):
        return 80 if project_type == "python" else 0

    def backend_install(self):
        return ["pip install -r requirements.txt"]

    def default_full_commands(self, php_version=None):
        return {"backend": ["pip install -r requirements.txt"]}


class GenericRecipe(Recipe):
    """Last resort: only what every project can do."""
    name = "generic"

    def applies(self, project_type):
        return 1

    def default_full_commands(self, php_version=None):
        return {}


# Registry of all available recipes
AVAILABLE_RECIPES: List[Recipe] = [
    LaravelRecipe(),
    PhpRecipe(),
    NodeRecipe(),
    DjangoRecipe(),
    PythonRecipe(),
    GenericRecipe(),
]


def select_recipe(project_type: Optional[str]) -> Recipe:
    """
    Select the best recipe for a project type.

    Never returns None: GenericRecipe matches everything with the lowest score.
    """
    hint = (project_type or "unknown").lower()
    scored = sorted(((r.applies(hint), i, r) for i, r in enumerate(AVAILABLE_RECIPES)),
                    key=lambda item: (-item[0], item[1]))
    best_score, _, best = scored[0]
    logger.debug(f"Selected recipe {best.name} for project type '{hint}' (score: {best_score})")
    return best

