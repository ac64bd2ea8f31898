"""Tier Catalog — loads, validates, and serves tier definitions.

The catalog is the read-only table the evaluator works from: every tier,
its rank, limits, and features, plus the minimum tier for each gated
feature. It is built once (at startup or on reload) and never mutated.

Catalog file format::

    tiers:
      - id: free
        name: Free
        rank: 0
        aliases: [trial]
        limits:
          generations: 10
        features: [basic-templates]
      - id: pro
        rank: 1
        limits:
          generations: 500
          blueprints: unlimited      # or -1
        features: [basic-templates, export-pdf]

    features:
      - feature: export-pdf
        min_tier: pro
        label: PDF Export
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from tiergate.models import FeatureRequirement, TierDefinition

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised when the tier catalog cannot be loaded or is inconsistent."""


class TierCatalog:
    """Immutable, rank-ordered collection of tiers and feature requirements.

    Construction enforces unique ids, unique ranks, and non-colliding
    aliases. Requirements must name a known tier. Features listed in a
    tier's ``features`` without an explicit requirement are gated at the
    lowest-rank tier that lists them.
    """

    def __init__(
        self,
        tiers: list[TierDefinition],
        requirements: list[FeatureRequirement] | None = None,
    ) -> None:
        if not tiers:
            raise CatalogError("Tier catalog must define at least one tier")

        self._tiers: dict[str, TierDefinition] = {}
        ranks: dict[int, str] = {}
        for tier in tiers:
            if tier.id in self._tiers:
                raise CatalogError(f"Duplicate tier id: {tier.id}")
            if tier.rank in ranks:
                raise CatalogError(
                    f"Duplicate rank {tier.rank}: tiers '{ranks[tier.rank]}' "
                    f"and '{tier.id}'"
                )
            self._tiers[tier.id] = tier
            ranks[tier.rank] = tier.id

        self._ordered = sorted(self._tiers.values(), key=lambda t: t.rank)

        self._aliases: dict[str, str] = {}
        for tier in self._ordered:
            for alias in tier.aliases:
                if alias == tier.id:
                    continue
                owner = self._aliases.get(alias)
                if alias in self._tiers or (owner is not None and owner != tier.id):
                    raise CatalogError(
                        f"Alias '{alias}' of tier '{tier.id}' collides with "
                        f"tier '{owner or alias}'"
                    )
                self._aliases[alias] = tier.id

        self._requirements: dict[str, FeatureRequirement] = {}
        for req in requirements or []:
            if req.feature in self._requirements:
                raise CatalogError(f"Duplicate requirement for feature: {req.feature}")
            if req.min_tier not in self._tiers:
                raise CatalogError(
                    f"Feature '{req.feature}' requires unknown tier: {req.min_tier}"
                )
            self._requirements[req.feature] = req

        # Derived requirements: lowest-rank tier listing the feature wins
        for tier in self._ordered:
            for feature in sorted(tier.features):
                if feature not in self._requirements:
                    self._requirements[feature] = FeatureRequirement(
                        feature=feature, min_tier=tier.id,
                    )

    @property
    def tiers(self) -> list[TierDefinition]:
        """Tiers ordered by ascending rank."""
        return list(self._ordered)

    @property
    def requirements(self) -> list[FeatureRequirement]:
        return list(self._requirements.values())

    @property
    def lowest_tier(self) -> TierDefinition:
        return self._ordered[0]

    @property
    def highest_tier(self) -> TierDefinition:
        return self._ordered[-1]

    def __len__(self) -> int:
        return len(self._tiers)

    def __contains__(self, tier_id: object) -> bool:
        return isinstance(tier_id, str) and self.get_tier(tier_id) is not None

    def all_tiers_ordered_by_rank(self) -> list[TierDefinition]:
        return self.tiers

    def get_tier(self, tier_id: str | None) -> TierDefinition | None:
        """Look up a tier by id or alias. Returns None if not found.

        Matching tries the exact id, then the lowercased id, then aliases.
        """
        if not tier_id:
            return None
        tier = self._tiers.get(tier_id)
        if tier is not None:
            return tier
        key = tier_id.strip().lower()
        tier = self._tiers.get(key)
        if tier is not None:
            return tier
        canonical = self._aliases.get(key)
        return self._tiers.get(canonical) if canonical else None

    def get_tier_or_raise(self, tier_id: str) -> TierDefinition:
        """Look up a tier. Raises CatalogError if not found."""
        tier = self.get_tier(tier_id)
        if tier is None:
            raise CatalogError(f"Tier not found: {tier_id}")
        return tier

    def requirement(self, feature: str) -> FeatureRequirement | None:
        """Return the requirement for *feature*, or None if unregistered."""
        return self._requirements.get(feature)

    def list_features(self) -> list[str]:
        """Return sorted list of gated feature keys."""
        return sorted(self._requirements)

    def tiers_above(self, tier: TierDefinition) -> list[TierDefinition]:
        """Tiers with rank strictly greater than *tier*, ascending."""
        return [t for t in self._ordered if t.rank > tier.rank]


def load_catalog_data(data: Any, source: str = "<data>") -> TierCatalog:
    """Build a catalog from an already-parsed mapping.

    Raises:
        CatalogError: If the data has the wrong shape or fails validation.
    """
    if not isinstance(data, dict) or "tiers" not in data:
        raise CatalogError(f"Catalog must have a top-level 'tiers' key: {source}")

    raw_tiers: Any = data["tiers"]
    if not isinstance(raw_tiers, list):
        raise CatalogError(f"'tiers' must be a list: {source}")

    tiers: list[TierDefinition] = []
    for i, entry in enumerate(raw_tiers):
        try:
            tiers.append(TierDefinition(**entry))
        except (ValidationError, TypeError) as e:
            raise CatalogError(f"Invalid tier at index {i} in {source}: {e}") from e

    raw_features: Any = data.get("features") or []
    if not isinstance(raw_features, list):
        raise CatalogError(f"'features' must be a list: {source}")

    requirements: list[FeatureRequirement] = []
    for i, entry in enumerate(raw_features):
        try:
            requirements.append(FeatureRequirement(**entry))
        except (ValidationError, TypeError) as e:
            raise CatalogError(
                f"Invalid feature requirement at index {i} in {source}: {e}"
            ) from e

    try:
        catalog = TierCatalog(tiers, requirements)
    except CatalogError as e:
        raise CatalogError(f"Error loading {source}: {e}") from e

    logger.info(
        "Loaded tier catalog from %s: %d tier(s), %d feature(s)",
        source, len(catalog), len(catalog.requirements),
    )
    return catalog


def load_catalog(path: str | Path) -> TierCatalog:
    """Load and validate a tier catalog from a YAML or JSON file.

    Raises:
        CatalogError: If the file cannot be read, parsed, or validated.
    """
    path = Path(path)
    if not path.is_file():
        raise CatalogError(f"Catalog file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML in {path}: {e}") from e

    return load_catalog_data(raw, source=str(path))
