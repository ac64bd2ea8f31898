"""Tests for the tier-gate CLI."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from tiergate import __version__
from tiergate.cli.main import cli

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
CATALOG_FILE = str(_PROJECT_ROOT / "tiers.yaml")
ENTITLEMENT_TESTS_DIR = str(_PROJECT_ROOT / "entitlement-tests")


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch):
    """Keep config auto-discovery away from the repo's tier-gate.yaml."""
    monkeypatch.chdir(tmp_path)


class TestRootGroup:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("validate", "list-tiers", "check", "usage", "compare", "prompt", "test"):
            assert name in result.output


# --- validate command ---


class TestValidateCommand:
    def test_valid_catalog(self):
        result = CliRunner().invoke(cli, ["validate", "--catalog", CATALOG_FILE])
        assert result.exit_code == 0
        assert "OK" in result.output
        assert "5 tier(s)" in result.output

    def test_duplicate_rank_fails(self, tmp_path: Path):
        bad = tmp_path / "bad.yaml"
        bad.write_text(
            "tiers:\n  - id: free\n    rank: 0\n  - id: pro\n    rank: 0\n",
            encoding="utf-8",
        )
        result = CliRunner().invoke(cli, ["validate", "--catalog", str(bad)])
        assert result.exit_code == 1
        assert "FAIL" in result.output
        assert "Duplicate rank" in result.output

    def test_missing_catalog_fails(self, tmp_path: Path):
        result = CliRunner().invoke(
            cli, ["validate", "--catalog", str(tmp_path / "nope.yaml")],
        )
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_default_from_config(self, tmp_path: Path):
        (tmp_path / "plans.yaml").write_text(
            "tiers:\n  - id: free\n    rank: 0\n", encoding="utf-8",
        )
        (tmp_path / "tier-gate.yaml").write_text(
            "catalog: ./plans.yaml\n", encoding="utf-8",
        )
        result = CliRunner().invoke(cli, ["validate"])
        assert result.exit_code == 0
        assert "1 tier(s)" in result.output


# --- list-tiers command ---


class TestListTiersCommand:
    def test_lists_in_rank_order(self):
        result = CliRunner().invoke(cli, ["list-tiers", "--catalog", CATALOG_FILE])
        assert result.exit_code == 0
        out = result.output
        assert out.index("free") < out.index("starter") < out.index("enterprise")
        assert "unlimited" in out
        assert "5 tier(s) defined." in out

    def test_json_output(self):
        result = CliRunner().invoke(
            cli, ["list-tiers", "--catalog", CATALOG_FILE, "--json-output"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [t["id"] for t in data] == [
            "free", "starter", "pro", "business", "enterprise",
        ]
        assert data[-1]["limits"]["prompts"] == "unlimited"

    def test_json_output_features_sorted(self):
        args = ["list-tiers", "--catalog", CATALOG_FILE, "--json-output"]
        first = CliRunner().invoke(cli, args)
        second = CliRunner().invoke(cli, args)
        assert first.output == second.output
        for tier in json.loads(first.output):
            assert tier["features"] == sorted(tier["features"])
        pro = json.loads(first.output)[2]
        assert pro["features"][:2] == ["advanced-models", "all-courses"]

    def test_bad_catalog_exits_1(self, tmp_path: Path):
        result = CliRunner().invoke(
            cli, ["list-tiers", "--catalog", str(tmp_path / "nope.yaml")],
        )
        assert result.exit_code == 1
        assert "Error:" in result.stderr


# --- check command ---


class TestCheckCommand:
    def test_allow(self):
        result = CliRunner().invoke(
            cli, ["check", "pro", "export-pdf", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "ALLOW" in result.output

    def test_deny_shows_required_tier(self):
        result = CliRunner().invoke(
            cli, ["check", "free", "api-access", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "DENY" in result.output
        assert "requires: business" in result.output
        assert "INSUFFICIENT_TIER" in result.output

    def test_unknown_tier(self):
        result = CliRunner().invoke(
            cli, ["check", "platinum", "export-pdf", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "UNKNOWN_TIER" in result.output

    def test_json_output(self):
        result = CliRunner().invoke(cli, [
            "check", "free", "export-pdf", "--catalog", CATALOG_FILE, "--json-output",
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["allowed"] is False
        assert data["required_tier"] == "starter"
        assert data["reason_code"] == "INSUFFICIENT_TIER"


# --- usage command ---


class TestUsageCommand:
    def test_near_limit(self):
        result = CliRunner().invoke(
            cli, ["usage", "pro", "prompts", "450", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "ALLOW" in result.output
        assert "90.0%" in result.output
        assert "near limit" in result.output

    def test_exhausted(self):
        result = CliRunner().invoke(
            cli, ["usage", "free", "prompts", "10", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "DENY" in result.output
        assert "LIMIT_REACHED" in result.output

    def test_unlimited_json(self):
        result = CliRunner().invoke(cli, [
            "usage", "enterprise", "prompts", "99999",
            "--catalog", CATALOG_FILE, "--json-output",
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["can_use"] is True
        assert data["limit"] == "unlimited"
        assert data["is_near_limit"] is False

    def test_negative_usage_rejected(self):
        result = CliRunner().invoke(
            cli, ["usage", "pro", "prompts", "-5", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 2


# --- compare command ---


class TestCompareCommand:
    def test_meets(self):
        result = CliRunner().invoke(
            cli, ["compare", "team", "pro", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "business meets or exceeds pro" in result.output

    def test_below(self):
        result = CliRunner().invoke(
            cli, ["compare", "starter", "pro", "--catalog", CATALOG_FILE],
        )
        assert "starter is below pro" in result.output

    def test_unknown(self):
        result = CliRunner().invoke(
            cli, ["compare", "platinum", "pro", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "UNKNOWN" in result.output


# --- prompt command ---


class TestPromptCommand:
    def test_denied_feature_payload(self):
        result = CliRunner().invoke(
            cli, ["prompt", "free", "api-access", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["required_tier"] == "business"
        assert data["cta_tier_list"] == ["starter", "pro", "business", "enterprise"]
        assert data["feature_label"] == "API Access"
        assert "api-access" in data["unlocks"]

    def test_custom_label(self):
        result = CliRunner().invoke(cli, [
            "prompt", "free", "sso", "--catalog", CATALOG_FILE, "--label", "Single sign-on",
        ])
        data = json.loads(result.output)
        assert data["feature_label"] == "Single sign-on"
        assert data["required_tier"] == "enterprise"

    def test_already_allowed(self):
        result = CliRunner().invoke(
            cli, ["prompt", "enterprise", "sso", "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "already has access" in result.output


# --- test command ---


class TestTestCommand:
    def test_shipped_tests_pass(self):
        result = CliRunner().invoke(
            cli, ["test", ENTITLEMENT_TESTS_DIR, "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 0
        assert "PASS" in result.output
        assert "test(s) passed." in result.output

    def test_failing_case_exits_1(self, tmp_path: Path):
        cases = tmp_path / "cases.yaml"
        cases.write_text(
            "tests:\n"
            "  - name: free-gets-sso\n    tier: free\n    feature: sso\n"
            "    expect: allow\n",
            encoding="utf-8",
        )
        result = CliRunner().invoke(
            cli, ["test", str(cases), "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 1
        assert "FAIL" in result.output
        assert "expected allow, got deny" in result.output
        assert "1 failed" in result.output

    def test_missing_test_path(self, tmp_path: Path):
        result = CliRunner().invoke(
            cli, ["test", str(tmp_path / "nope"), "--catalog", CATALOG_FILE],
        )
        assert result.exit_code == 1
        assert "not found" in result.stderr
