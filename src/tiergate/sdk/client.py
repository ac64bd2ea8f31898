"""TierGate SDK — the single public entry point.

Wires the catalog loader and evaluator behind one class, and owns the
atomic swap used to hot-reload the catalog.

Usage::

    from tiergate import TierGate

    gate = TierGate("./tiers.yaml")
    decision = gate.check_feature_access(user.subscription_tier, "export-pdf")
    if not decision.allowed:
        prompt = gate.build_upgrade_prompt(decision)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from tiergate.catalog.loader import CatalogError, TierCatalog, load_catalog
from tiergate.config import load_config
from tiergate.evaluator.engine import NEAR_LIMIT_THRESHOLD, EntitlementEvaluator
from tiergate.models import (
    AccessDecision,
    TierComparison,
    TokenDecision,
    UpgradePromptPayload,
    UsageDecision,
    UsageSnapshot,
)

logger = logging.getLogger(__name__)


class TierGateError(Exception):
    """Raised for configuration or initialization errors."""


class TierGate:
    """Public API for tier-gate.

    Every call reads the current evaluator reference exactly once, so a
    concurrent ``reload()`` is never observed half-applied.
    """

    def __init__(
        self,
        catalog: str | Path | TierCatalog,
        near_limit_threshold: float = NEAR_LIMIT_THRESHOLD,
    ) -> None:
        """Initialize TierGate.

        Args:
            catalog: Path to the catalog YAML/JSON file, or a prebuilt
                TierCatalog.
            near_limit_threshold: Usage percentage that counts as near
                the limit (default 80).

        Raises:
            CatalogError: If the catalog cannot be loaded. Hosts should
                refuse to serve requests in that case.
        """
        self._path: Path | None = None
        if isinstance(catalog, TierCatalog):
            loaded = catalog
        else:
            self._path = Path(catalog)
            loaded = load_catalog(self._path)

        self._threshold = near_limit_threshold
        self._lock = threading.Lock()
        self._evaluator = EntitlementEvaluator(loaded, near_limit_threshold)

    @classmethod
    def from_config(cls, path: str | Path | None = None) -> TierGate:
        """Build from ``tier-gate.yaml`` (explicit path or auto-discovered)."""
        cfg = load_config(path)
        if cfg.catalog is None:
            raise TierGateError("No catalog configured in tier-gate.yaml")
        return cls(cfg.catalog, near_limit_threshold=cfg.near_limit_threshold)

    @property
    def catalog(self) -> TierCatalog:
        """The catalog currently in service."""
        return self._evaluator.catalog

    @property
    def evaluator(self) -> EntitlementEvaluator:
        return self._evaluator

    @property
    def path(self) -> Path | None:
        """Where the catalog was loaded from, if it came from a file."""
        return self._path

    def reload(self, path: str | Path | None = None) -> TierCatalog:
        """Load a fresh catalog and swap it in.

        The new catalog is fully built and validated before the swap. On
        failure the previous catalog stays in service and the error
        propagates.

        Raises:
            TierGateError: If there is no path to reload from.
            CatalogError: If the new catalog is invalid.
        """
        source = Path(path) if path is not None else self._path
        if source is None:
            raise TierGateError("No catalog path to reload from")

        try:
            fresh = load_catalog(source)
        except CatalogError:
            logger.warning("Catalog reload from %s failed; keeping current", source)
            raise

        evaluator = EntitlementEvaluator(fresh, self._threshold)
        with self._lock:
            self._evaluator = evaluator
            self._path = source
        logger.info("Catalog reloaded from %s", source)
        return fresh

    # --- Delegating API ---

    def check_feature_access(
        self, current_tier_id: str | None, feature_key: str,
    ) -> AccessDecision:
        return self._evaluator.check_feature_access(current_tier_id, feature_key)

    def check_usage_limit(
        self, current_tier_id: str | None, limit_key: str, current_usage: int,
    ) -> UsageDecision:
        return self._evaluator.check_usage_limit(
            current_tier_id, limit_key, current_usage,
        )

    def check_usage(
        self, current_tier_id: str | None, snapshot: UsageSnapshot,
    ) -> UsageDecision:
        return self._evaluator.check_usage(current_tier_id, snapshot)

    def compare_tiers(self, tier_a: str | None, tier_b: str | None) -> TierComparison:
        return self._evaluator.compare_tiers(tier_a, tier_b)

    def check_token_balance(
        self, current_tier_id: str | None, balance: int, cost: int = 1,
    ) -> TokenDecision:
        return self._evaluator.check_token_balance(current_tier_id, balance, cost)

    def build_upgrade_prompt(
        self,
        decision: AccessDecision | UsageDecision,
        feature_label: str | None = None,
    ) -> UpgradePromptPayload:
        return self._evaluator.build_upgrade_prompt(decision, feature_label)
