"""Shared fixtures: a small four-tier catalog used across the suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from tiergate.catalog.loader import TierCatalog
from tiergate.evaluator.engine import EntitlementEvaluator
from tiergate.models import UNLIMITED, FeatureRequirement, TierDefinition


@pytest.fixture()
def tiers() -> list[TierDefinition]:
    return [
        TierDefinition(
            id="free", name="Free", rank=0,
            limits={"gens": 10, "api_calls": 0},
            features={"basic-templates"},
        ),
        TierDefinition(
            id="pro", name="Pro", rank=1,
            limits={"gens": 500, "api_calls": 100},
            features={"basic-templates", "export-pdf"},
            aliases=["professional"],
        ),
        TierDefinition(
            id="business", name="Business", rank=2,
            limits={"gens": 2000, "api_calls": 1000},
            features={"basic-templates", "export-pdf", "team-workspace"},
            aliases=["team"],
        ),
        TierDefinition(
            id="enterprise", name="Enterprise", rank=3,
            limits={"gens": UNLIMITED, "api_calls": UNLIMITED},
            features={"basic-templates", "export-pdf", "team-workspace", "sso"},
        ),
    ]


@pytest.fixture()
def requirements() -> list[FeatureRequirement]:
    return [
        FeatureRequirement(feature="export-pdf", min_tier="pro", label="PDF Export"),
        FeatureRequirement(feature="team-workspace", min_tier="business"),
    ]


@pytest.fixture()
def catalog(
    tiers: list[TierDefinition], requirements: list[FeatureRequirement],
) -> TierCatalog:
    return TierCatalog(tiers, requirements)


@pytest.fixture()
def evaluator(catalog: TierCatalog) -> EntitlementEvaluator:
    return EntitlementEvaluator(catalog)


CATALOG_YAML = """\
tiers:
  - id: free
    rank: 0
    limits:
      gens: 10
  - id: pro
    rank: 1
    limits:
      gens: 500
    features: [export-pdf]
  - id: enterprise
    rank: 2
    limits:
      gens: unlimited
    features: [export-pdf]
features:
  - feature: export-pdf
    min_tier: pro
"""


@pytest.fixture()
def catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "tiers.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path
