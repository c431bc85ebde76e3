"""
Tests for full deploy planning from external proposals.
"""

import json

import pytest

from smartdeploy.analyzer import DecisionSource
from smartdeploy.errors import PlanningDegradation
from smartdeploy.planner import Phase, parse_proposal, plan_full
from smartdeploy.planner.full import infer_phase

LARAVEL_DEFAULT = [
    "git pull origin main",
    "composer install --no-dev --optimize-autoloader",
    "php artisan config:cache",
    "php artisan route:cache",
    "php artisan view:cache",
    "php artisan migrate --force",
]


class TestParseProposal:
    """Test untrusted proposal parsing."""

    def test_fenced_json(self):
        raw = '```json\n{"commands": {"git": ["git pull origin main"], "backend": ["composer install"]}}\n```'
        proposal = parse_proposal(raw)
        assert proposal.git == ["git pull origin main"]
        assert proposal.backend == ["composer install"]
        assert proposal.frontend == []

    def test_null_category_is_empty(self):
        proposal = parse_proposal({"backend": ["composer install"], "docker": None})
        assert proposal.docker == []

    def test_unknown_keys_ignored(self):
        proposal = parse_proposal({"backend": ["  composer install  "], "comment": "generated"})
        assert proposal.backend == ["composer install"]

    @pytest.mark.parametrize("raw", [
        None,
        "not json at all",
        "[1, 2, 3]",
        {},
        {"backend": "composer install"},
        {"backend": ["composer install", ""]},
        {"commands": {"git": [], "backend": []}},
    ])
    def test_malformed_proposals_raise(self, raw):
        with pytest.raises(PlanningDegradation):
            parse_proposal(raw)


class TestPlanFull:
    """Test plan_full and its fallback."""

    def test_valid_proposal_is_ordered(self):
        proposal = json.dumps({"commands": {
            "system": ["sudo systemctl restart nginx"],
            "database": ["php artisan migrate --force"],
            "frontend": ["npm run build"],
            "backend": ["composer install"],
        }})

        result = plan_full(proposal, "laravel")

        assert result.source is DecisionSource.EXTERNAL_PLAN
        assert result.command_lines == [
            "git pull origin main",
            "composer install",
            "npm run build",
            "php artisan migrate --force",
            "sudo systemctl restart nginx",
        ]
        assert any("source sync" in note for note in result.notes)

    def test_proposal_order_kept_within_phase(self):
        result = plan_full({"backend": ["composer install", "pip install -r requirements.txt"]}, "php")
        assert result.command_lines[1:] == ["composer install", "pip install -r requirements.txt"]

    def test_malformed_json_falls_back_to_default(self):
        result = plan_full("{not json", "laravel")

        assert result.source is DecisionSource.FALLBACK
        assert result.command_lines == LARAVEL_DEFAULT
        assert "not valid JSON" in result.notes[0]

    def test_wrong_shape_falls_back_to_default(self):
        result = plan_full({"commands": {"backend": {"run": "composer install"}}}, "laravel")
        assert result.source is DecisionSource.FALLBACK
        assert result.command_lines == LARAVEL_DEFAULT

    def test_missing_proposal_for_node(self):
        result = plan_full(None, "node", branch="release")
        assert result.command_lines == [
            "git pull origin release",
            "npm install --production",
            "npm run build",
            "pm2 restart all",
        ]

    def test_unknown_project_default_is_source_sync_only(self):
        result = plan_full(None, None)
        assert result.command_lines == ["git pull origin main"]


@pytest.mark.parametrize("command,category,expected", [
    ("git fetch --all", "backend", Phase.SOURCE_SYNC),
    ("npm ci", "backend", Phase.FRONTEND_INSTALL),
    ("yarn build", "frontend", Phase.FRONTEND_BUILD),
    ("php artisan config:cache", "backend", Phase.FRAMEWORK_OPTIMIZE),
    ("python manage.py migrate", "backend", Phase.MIGRATION),
    ("docker compose up -d", "docker", Phase.SERVICE_RESTART),
    ("./scripts/warm-cache.sh", "database", Phase.MIGRATION),
    ("./scripts/unknown.sh", "mystery", Phase.SERVICE_RESTART),
])
def test_infer_phase(command, category, expected):
    assert infer_phase(command, category) is expected
