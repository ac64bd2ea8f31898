"""tier-gate CLI — command-line interface for tier-gate.

Commands:
    validate        Validate a tier catalog file
    list-tiers      Show all tiers in rank order
    check           Evaluate feature access for a tier
    usage           Evaluate a usage counter against a tier's limit
    compare         Compare two tiers by rank
    prompt          Show the upgrade prompt payload for a denied feature
    test            Run entitlement test cases
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from tiergate import __version__
from tiergate.catalog.loader import CatalogError, TierCatalog, load_catalog
from tiergate.config import TierGateConfig, load_config
from tiergate.models import ReasonCode, is_unlimited
from tiergate.sdk.client import TierGate
from tiergate.testing.runner import EntitlementTestError, load_test_files, run_tests

# --- Defaults ---

DEFAULT_CATALOG = "./tiers.yaml"
DEFAULT_TESTS = "./entitlement-tests"


def _resolve_cfg() -> TierGateConfig:
    """Load config from tier-gate.yaml (auto-discover, never error)."""
    try:
        return load_config()
    except (OSError, ValueError):
        return TierGateConfig()


def _or(explicit: str | None, cfg_val: str | None, fallback: str) -> str:
    """Return first non-None value: explicit CLI flag > config > fallback."""
    return explicit or cfg_val or fallback


def _fail(message: str) -> None:
    click.echo(click.style("Error:", fg="red") + f" {message}", err=True)
    sys.exit(1)


def _load_gate(catalog: str | None) -> tuple[TierGate, TierGateConfig]:
    cfg = _resolve_cfg()
    path = _or(catalog, cfg.catalog, DEFAULT_CATALOG)
    try:
        gate = TierGate(path, near_limit_threshold=cfg.near_limit_threshold)
    except (CatalogError, ValueError) as e:
        _fail(str(e))
    return gate, cfg


def _fmt_limit(value: object) -> str:
    return "unlimited" if is_unlimited(value) else str(value)


def _verdict(allowed: bool, reason_code: ReasonCode) -> str:
    if allowed:
        return click.style("ALLOW", fg="green", bold=True)
    color = "yellow" if reason_code == ReasonCode.INSUFFICIENT_TIER else "red"
    return click.style("DENY", fg=color, bold=True)


_catalog_option = click.option(
    "--catalog", default=None,
    help="Path to tier catalog YAML/JSON file",
)


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """tier-gate: subscription tier entitlements and usage limits."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


# --- validate command ---


@cli.command()
@_catalog_option
def validate(catalog: str | None) -> None:
    """Validate a tier catalog file."""
    cfg = _resolve_cfg()
    path = _or(catalog, cfg.catalog, DEFAULT_CATALOG)
    try:
        cat = load_catalog(path)
    except CatalogError as e:
        click.echo(click.style("FAIL", fg="red") + f"  catalog: {e}")
        sys.exit(1)

    click.echo(
        click.style("OK", fg="green")
        + f"  catalog: {len(cat)} tier(s), {len(cat.requirements)} feature(s)"
    )


# --- list-tiers command ---


@cli.command("list-tiers")
@_catalog_option
@click.option("--json-output", is_flag=True, help="Output as JSON")
def list_tiers(catalog: str | None, json_output: bool) -> None:
    """Show all tiers in ascending rank order."""
    gate, _ = _load_gate(catalog)
    cat: TierCatalog = gate.catalog

    if json_output:
        data = [t.model_dump(mode="json") for t in cat.tiers]
        click.echo(json.dumps(data, indent=2, sort_keys=True))
        return

    for tier in cat.tiers:
        click.echo(
            f"  {tier.id:<16} "
            + click.style(f"[rank {tier.rank}]", fg="cyan")
            + f"  {tier.display_name}"
        )
        for key in sorted(tier.limits):
            click.echo(f"      {key}: {_fmt_limit(tier.limits[key])}")
    click.echo(f"\n{len(cat)} tier(s) defined.")


# --- check command ---


@cli.command()
@click.argument("tier")
@click.argument("feature")
@_catalog_option
@click.option("--json-output", is_flag=True, help="Output as JSON")
def check(tier: str, feature: str, catalog: str | None, json_output: bool) -> None:
    """Evaluate whether TIER may use FEATURE."""
    gate, _ = _load_gate(catalog)
    decision = gate.check_feature_access(tier, feature)

    if json_output:
        click.echo(json.dumps(decision.to_dict(), indent=2))
        return

    click.echo(
        _verdict(decision.allowed, decision.reason_code) + f" — {decision.reason}"
    )
    click.echo(f"  feature:  {decision.feature}")
    click.echo(f"  tier:     {decision.current_tier}")
    if decision.required_tier:
        click.echo(f"  requires: {decision.required_tier}")
    click.echo(f"  code:     {decision.reason_code}")


# --- usage command ---


@cli.command()
@click.argument("tier")
@click.argument("limit_key")
@click.argument("current_usage", type=click.IntRange(min=0))
@_catalog_option
@click.option("--json-output", is_flag=True, help="Output as JSON")
def usage(
    tier: str,
    limit_key: str,
    current_usage: int,
    catalog: str | None,
    json_output: bool,
) -> None:
    """Evaluate CURRENT_USAGE of LIMIT_KEY against TIER's ceiling."""
    gate, _ = _load_gate(catalog)
    decision = gate.check_usage_limit(tier, limit_key, current_usage)

    if json_output:
        click.echo(json.dumps(decision.to_dict(), indent=2))
        return

    click.echo(
        _verdict(decision.can_use, decision.reason_code) + f" — {decision.reason}"
    )
    click.echo(f"  limit:    {_fmt_limit(decision.limit)}")
    click.echo(f"  used:     {decision.current_usage} ({decision.usage_percentage:.1f}%)")
    if decision.remaining is not None:
        click.echo(f"  left:     {decision.remaining}")
    if decision.is_near_limit:
        click.echo(click.style("  near limit", fg="yellow"))
    click.echo(f"  code:     {decision.reason_code}")


# --- compare command ---


@cli.command()
@click.argument("tier_a")
@click.argument("tier_b")
@_catalog_option
def compare(tier_a: str, tier_b: str, catalog: str | None) -> None:
    """Check whether TIER_A meets or exceeds TIER_B."""
    gate, _ = _load_gate(catalog)
    result = gate.compare_tiers(tier_a, tier_b)
    if result.reason_code != ReasonCode.OK:
        click.echo(click.style("UNKNOWN", fg="red", bold=True) + f" — {tier_a} vs {tier_b}")
        return
    word = "meets or exceeds" if result.a_meets_or_exceeds_b else "is below"
    click.echo(f"{result.tier_a} {word} {result.tier_b}")


# --- prompt command ---


@cli.command()
@click.argument("tier")
@click.argument("feature")
@_catalog_option
@click.option("--label", default=None, help="Display name for the feature")
def prompt(tier: str, feature: str, catalog: str | None, label: str | None) -> None:
    """Show the upgrade prompt payload for TIER denied FEATURE."""
    gate, _ = _load_gate(catalog)
    decision = gate.check_feature_access(tier, feature)
    if decision.allowed:
        click.echo(f"{decision.current_tier} already has access to {feature}.")
        return
    payload = gate.build_upgrade_prompt(decision, label)
    click.echo(json.dumps(payload.to_dict(), indent=2))


# --- test command ---


@cli.command("test")
@click.argument("test_path", required=False)
@_catalog_option
def test_entitlements(test_path: str | None, catalog: str | None) -> None:
    """Run entitlement test cases against the catalog.

    TEST_PATH is a YAML file or directory of YAML files containing test cases.
    Each test declares a tier, a feature/limit/comparison, and the expected
    outcome.
    """
    gate, cfg = _load_gate(catalog)
    test_path = _or(test_path, cfg.tests, DEFAULT_TESTS)

    try:
        cases = load_test_files(Path(test_path))
    except EntitlementTestError as e:
        _fail(str(e))

    suite = run_tests(gate, cases)

    for result in suite.results:
        if result.passed:
            click.echo(
                click.style("  PASS", fg="green")
                + f"  {result.case.name}"
            )
        else:
            click.echo(
                click.style("  FAIL", fg="red")
                + f"  {result.case.name}"
                + f"  (expected {result.case.expect},"
                + f" got {result.actual})"
            )
            click.echo(f"        reason: {result.reason}")

    click.echo("")
    if suite.all_passed:
        click.echo(click.style(
            f"All {suite.total} test(s) passed.", fg="green", bold=True,
        ))
    else:
        click.echo(
            click.style(f"{suite.failed} failed", fg="red", bold=True)
            + f", {suite.passed} passed, {suite.total} total."
        )
        sys.exit(1)
