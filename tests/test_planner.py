"""
Tests for smart deploy planning and recipe selection.
"""

import logging

import pytest

from smartdeploy.analyzer import DecisionSource, DeploymentDecision, classify, fallback_decision
from smartdeploy.planner import CommandPlan, Phase, PlannedCommand, plan, select_recipe
from smartdeploy.planner.recipes import (
    manifest_install_commands,
    DjangoRecipe,
    GenericRecipe,
    LaravelRecipe,
    NodeRecipe,
    PhpRecipe,
    PythonRecipe,
)


class TestSmartPlan:
    """Test decision -> plan mapping."""

    def test_composer_change_plans_sync_and_backend_install(self):
        result = plan(classify(["composer.json"]), "laravel")

        assert result.phases == [Phase.SOURCE_SYNC, Phase.BACKEND_INSTALL]
        assert result.command_lines == [
            "git pull origin main",
            "composer install --no-dev --optimize-autoloader",
        ]
        assert result.index_of(Phase.FRONTEND_BUILD) == -1

    def test_no_changes_means_empty_plan(self):
        result = plan(classify([]), "laravel")
        assert len(result) == 0
        assert not result

    def test_full_fallback_orders_phases(self):
        result = plan(fallback_decision("no history"), "laravel")

        assert result.source is DecisionSource.FALLBACK
        assert result.command_lines == [
            "git pull origin main",
            "composer install --no-dev --optimize-autoloader",
            "npm install",
            "npm run build",
            "php artisan optimize:clear",
            "php artisan migrate --force",
            "pm2 restart all",
            "sudo systemctl restart php8.3-fpm",
            "sudo systemctl restart nginx",
        ]
        install = result.index_of(Phase.BACKEND_INSTALL)
        build = result.index_of(Phase.FRONTEND_BUILD)
        restart = result.index_of(Phase.SERVICE_RESTART)
        assert 0 <= install < build < restart

    def test_planning_is_idempotent(self):
        decision = classify(["package.json", "resources/js/app.js", "config/app.php"])
        assert plan(decision, "laravel") == plan(decision, "laravel")

    def test_node_build_restarts_process_manager(self):
        result = plan(classify(["src/app.js"], "node"), "node")
        assert result.command_lines == ["git pull origin main", "npm run build", "pm2 restart all"]

    def test_process_manager_restart_not_duplicated(self):
        result = plan(fallback_decision("no history"), "node")
        assert result.command_lines.count("pm2 restart all") == 1
        assert result.command_lines[-1] == "sudo systemctl restart nginx"

    def test_package_manager_and_branch(self):
        decision = classify(["resources/js/app.js"])
        result = plan(decision, "laravel", branch="production", package_manager="yarn")
        assert result.command_lines == ["git pull origin production", "yarn run build", "pm2 restart all"]

    def test_php_version_selects_fpm_service(self):
        result = plan(classify(["php-fpm.conf"]), "laravel", php_version="8.2")
        assert "sudo systemctl restart php8.2-fpm" in result.command_lines

    def test_phase_without_command_is_noted(self, caplog):
        decision = DeploymentDecision(needs_source_sync=True, needs_framework_optimize=True)
        with caplog.at_level(logging.WARNING, logger="smartdeploy.planner.smart"):
            result = plan(decision, "unknown")

        assert result.command_lines == ["git pull origin main"]
        assert any("framework_optimize" in note for note in result.notes)
        assert "framework_optimize requested" in caplog.text

        assert result.command_lines == ["git pull origin main"]
        assert any("framework_optimize" in note for note in result.notes)

    def test_django_migration(self):
        result = plan(classify(["orders/migrations/0003_add_total.py"]), "django")
        assert result.command_lines == ["git pull origin main", "python manage.py migrate --noinput"]

    def test_frontend_change_restarts_process_manager_after_build(self):
        result = plan(classify(["package.json", "resources/js/app.js"]), "laravel")

        assert result.command_lines == [
            "git pull origin main",
            "npm install",
            "npm run build",
            "pm2 restart all",
        ]
        install = result.index_of(Phase.FRONTEND_INSTALL)
        build = result.index_of(Phase.FRONTEND_BUILD)
        restart = result.index_of(Phase.SERVICE_RESTART)
        assert 0 <= install < build < restart

    def test_django_build_reloads_gunicorn(self):
        result = plan(classify(["assets/js/app.js"]), "django")
        assert result.command_lines == [
            "git pull origin main",
            "npm run build",
            "sudo systemctl restart gunicorn",
        ]

    def test_backend_only_change_skips_process_manager(self):
        result = plan(classify(["composer.lock"]), "node")
        assert "pm2 restart all" not in result.command_lines


class TestManifestInstall:
    """Test backend install commands derived from changed manifests."""

    def test_composer_change_without_project_type(self):
        result = plan(classify(["composer.json"]), None)
        assert result.command_lines == [
            "git pull origin main",
            "composer install --no-dev --optimize-autoloader",
        ]

    def test_manifest_overrides_recipe_default(self):
        result = plan(classify(["go.mod"]), "laravel")
        assert result.command_lines == ["git pull origin main", "go mod download"]

    def test_several_tools(self):
        result = plan(classify(["requirements.txt", "Gemfile.lock"]), "django")
        assert result.command_lines == [
            "git pull origin main",
            "pip install -r requirements.txt",
            "bundle install",
        ]

    def test_fallback_uses_recipe_default(self):
        result = plan(fallback_decision("no history"), "django")
        assert result.command_lines[1] == "pip install -r requirements.txt"

    def test_fallback_without_backend_tool_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="smartdeploy.planner.smart"):
            result = plan(fallback_decision("no history"), None)

        assert result.index_of(Phase.BACKEND_INSTALL) == -1
        assert "backend_install requested but the generic recipe has no command" in caplog.text


@pytest.mark.parametrize("paths,expected", [
    (["composer.json", "composer.lock"], ["composer install --no-dev --optimize-autoloader"]),
    (["api/Pipfile", "api/Pipfile.lock"], ["pipenv install --deploy"]),
    (["pyproject.toml", "poetry.lock"], ["pip install .", "poetry install --no-root --only main"]),
    (["services\\go.sum"], ["go mod download"]),
    (["package.json", "README.md"], []),
])
def test_manifest_install_commands(paths, expected):
    assert manifest_install_commands(paths) == expected


class TestCommandPlan:
    """Test plan invariants."""

    def test_backward_phase_rejected(self):
        with pytest.raises(ValueError):
            CommandPlan(commands=(
                PlannedCommand(Phase.SERVICE_RESTART, "sudo systemctl restart nginx"),
                PlannedCommand(Phase.BACKEND_INSTALL, "composer install"),
            ))

    def test_category_is_phase_name(self):
        planned = PlannedCommand(Phase.MIGRATION, "php artisan migrate --force")
        assert planned.category == "migration"
        assert planned.to_dict() == {"category": "migration", "command": "php artisan migrate --force"}

    def test_to_dict(self):
        data = plan(classify(["composer.json"]), "laravel").to_dict()
        assert data["source"] == "diff"
        assert data["project_type"] == "laravel"
        assert [c["category"] for c in data["commands"]] == ["source_sync", "backend_install"]


@pytest.mark.parametrize("project_type,expected", [
    ("laravel", LaravelRecipe),
    ("php", PhpRecipe),
    ("node", NodeRecipe),
    ("nextjs", NodeRecipe),
    ("django", DjangoRecipe),
    ("python", PythonRecipe),
    ("Laravel", LaravelRecipe),
    (None, GenericRecipe),
    ("elixir", GenericRecipe),
])
def test_select_recipe(project_type, expected):
    assert isinstance(select_recipe(project_type), expected)
