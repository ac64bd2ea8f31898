"""Entitlement Evaluator — the core decision engine.

Takes a tier id plus a feature key, limit key, or second tier id and
returns a decision value object with a reason code.

Evaluation:
1. Resolve the caller's tier from the catalog (unknown = lowest tier, denied)
2. Resolve the feature requirement or limit ceiling (unknown = denied)
3. Compare by rank, or usage against the ceiling
4. Never raise for "not found": every outcome is a ReasonCode
"""

from __future__ import annotations

import logging

from tiergate.catalog.loader import TierCatalog
from tiergate.models import (
    UNLIMITED,
    AccessDecision,
    ReasonCode,
    TierComparison,
    TierDefinition,
    TokenDecision,
    UpgradePromptPayload,
    UsageDecision,
    UsageSnapshot,
)

logger = logging.getLogger(__name__)

NEAR_LIMIT_THRESHOLD = 80.0
"""Usage percentage at or above which a finite limit counts as near."""


def _require_count(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


class EntitlementEvaluator:
    """Stateless entitlement evaluator.

    All context comes from the call arguments + the injected catalog.
    No state is held between calls, so one instance may be shared by any
    number of threads.
    """

    def __init__(
        self,
        catalog: TierCatalog,
        near_limit_threshold: float = NEAR_LIMIT_THRESHOLD,
    ) -> None:
        if not 0 < near_limit_threshold <= 100:
            raise ValueError(
                f"near_limit_threshold must be in (0, 100], got {near_limit_threshold}"
            )
        self._catalog = catalog
        self._threshold = float(near_limit_threshold)

    @property
    def catalog(self) -> TierCatalog:
        return self._catalog

    @property
    def near_limit_threshold(self) -> float:
        return self._threshold

    def _resolve(self, tier_id: str | None) -> tuple[TierDefinition, bool]:
        """Return (tier, known). Unknown ids resolve to the lowest tier."""
        tier = self._catalog.get_tier(tier_id)
        if tier is None:
            logger.debug("Unknown tier %r, failing closed", tier_id)
            return self._catalog.lowest_tier, False
        return tier, True

    # --- Feature access ---

    def check_feature_access(
        self, current_tier_id: str | None, feature_key: str,
    ) -> AccessDecision:
        """Decide whether *feature_key* is available at *current_tier_id*.

        Args:
            current_tier_id: Server-verified tier id of the caller.
            feature_key: The gated feature being requested.

        Returns:
            An AccessDecision. Unknown tiers and unregistered features are
            always denied.
        """
        current, known = self._resolve(current_tier_id)
        requirement = self._catalog.requirement(feature_key)
        required = (
            self._catalog.get_tier(requirement.min_tier) if requirement else None
        )
        required_id = required.id if required else None

        if not known:
            return AccessDecision(
                allowed=False,
                reason_code=ReasonCode.UNKNOWN_TIER,
                current_tier=current.id,
                required_tier=required_id,
                feature=feature_key,
                reason=f"Unknown tier: {current_tier_id}",
            )

        if required is None:
            logger.debug("Unregistered feature %r, failing closed", feature_key)
            return AccessDecision(
                allowed=False,
                reason_code=ReasonCode.UNKNOWN_FEATURE,
                current_tier=current.id,
                feature=feature_key,
                reason=f"Unknown feature: {feature_key}",
            )

        allowed = current.rank >= required.rank
        return AccessDecision(
            allowed=allowed,
            reason_code=ReasonCode.OK if allowed else ReasonCode.INSUFFICIENT_TIER,
            current_tier=current.id,
            required_tier=required.id,
            feature=feature_key,
            reason=(
                f"Available on {current.display_name}"
                if allowed
                else f"Requires {required.display_name} or higher"
            ),
        )

    def required_tier_for(self, feature_key: str) -> TierDefinition | None:
        """Return the minimum tier for *feature_key*, or None if unregistered."""
        requirement = self._catalog.requirement(feature_key)
        if requirement is None:
            return None
        return self._catalog.get_tier(requirement.min_tier)

    def features_gained(self, current_tier_id: str, target_tier_id: str) -> list[str]:
        """Feature keys unlocked by moving from one tier to another.

        Empty if the target is unknown or not above the current tier.
        """
        current, _ = self._resolve(current_tier_id)
        target = self._catalog.get_tier(target_tier_id)
        if target is None or target.rank <= current.rank:
            return []

        gained: list[str] = []
        for req in self._catalog.requirements:
            min_tier = self._catalog.get_tier(req.min_tier)
            if min_tier is not None and current.rank < min_tier.rank <= target.rank:
                gained.append(req.feature)
        return sorted(gained)

    # --- Usage limits ---

    def check_usage_limit(
        self, current_tier_id: str | None, limit_key: str, current_usage: int,
    ) -> UsageDecision:
        """Decide whether one more unit of *limit_key* may be consumed.

        Reaching the ceiling exactly means no more use is permitted.

        Raises:
            ValueError: If *current_usage* is not a non-negative integer.
        """
        _require_count("current_usage", current_usage)

        current, known = self._resolve(current_tier_id)
        limit = current.limit_for(limit_key)

        if limit is None:
            logger.debug(
                "No limit %r on tier %r, failing closed", limit_key, current.id,
            )
            return UsageDecision(
                can_use=False,
                is_near_limit=False,
                usage_percentage=0.0,
                limit=None,
                current_usage=current_usage,
                limit_key=limit_key,
                current_tier=current.id,
                reason_code=(
                    ReasonCode.UNKNOWN_LIMIT if known else ReasonCode.UNKNOWN_TIER
                ),
                reason=(
                    f"No limit '{limit_key}' defined for {current.display_name}"
                    if known
                    else f"Unknown tier: {current_tier_id}"
                ),
            )

        if limit is UNLIMITED:
            return UsageDecision(
                can_use=known,
                is_near_limit=False,
                usage_percentage=0.0,
                limit=UNLIMITED,
                current_usage=current_usage,
                remaining=None,
                limit_key=limit_key,
                current_tier=current.id,
                reason_code=ReasonCode.OK if known else ReasonCode.UNKNOWN_TIER,
                reason=(
                    "Unlimited" if known else f"Unknown tier: {current_tier_id}"
                ),
            )

        if limit == 0:
            percentage = 100.0
            within = False
        else:
            percentage = current_usage / limit * 100
            within = current_usage < limit

        if not known:
            reason_code = ReasonCode.UNKNOWN_TIER
            reason = f"Unknown tier: {current_tier_id}"
        elif within:
            reason_code = ReasonCode.OK
            reason = f"{current_usage} of {limit} used"
        else:
            reason_code = ReasonCode.LIMIT_REACHED
            reason = f"Limit of {limit} {limit_key} reached on {current.display_name}"

        return UsageDecision(
            can_use=known and within,
            is_near_limit=percentage >= self._threshold,
            usage_percentage=percentage,
            limit=limit,
            current_usage=current_usage,
            remaining=max(0, limit - current_usage),
            limit_key=limit_key,
            current_tier=current.id,
            reason_code=reason_code,
            reason=reason,
        )

    def check_usage(
        self, current_tier_id: str | None, snapshot: UsageSnapshot,
    ) -> UsageDecision:
        """Evaluate a UsageSnapshot. See check_usage_limit()."""
        return self.check_usage_limit(
            current_tier_id, snapshot.limit_key, snapshot.current_usage,
        )

    def upgrade_tier_for_limit(
        self, current_tier_id: str | None, limit_key: str, current_usage: int,
    ) -> TierDefinition | None:
        """Lowest tier above the current one whose ceiling allows *current_usage*.

        Returns None if no higher tier raises the ceiling far enough.
        """
        current, _ = self._resolve(current_tier_id)
        for tier in self._catalog.tiers_above(current):
            limit = tier.limit_for(limit_key)
            if limit is UNLIMITED:
                return tier
            if limit is not None and current_usage < limit:
                return tier
        return None

    # --- Tier comparison ---

    def compare_tiers(self, tier_a: str | None, tier_b: str | None) -> TierComparison:
        """Check whether *tier_a* meets or exceeds *tier_b* by rank.

        Either tier being unknown fails closed.
        """
        a = self._catalog.get_tier(tier_a)
        b = self._catalog.get_tier(tier_b)
        if a is None or b is None:
            logger.debug("Unknown tier in comparison %r vs %r", tier_a, tier_b)
            return TierComparison(
                tier_a=a.id if a else (tier_a or ""),
                tier_b=b.id if b else (tier_b or ""),
                a_meets_or_exceeds_b=False,
                reason_code=ReasonCode.UNKNOWN_TIER,
            )
        return TierComparison(
            tier_a=a.id,
            tier_b=b.id,
            a_meets_or_exceeds_b=a.rank >= b.rank,
            reason_code=ReasonCode.OK,
        )

    # --- Token balance ---

    def check_token_balance(
        self, current_tier_id: str | None, balance: int, cost: int = 1,
    ) -> TokenDecision:
        """Decide whether a token balance covers an operation's cost.

        Raises:
            ValueError: If *balance* or *cost* is not a non-negative int.
        """
        _require_count("balance", balance)
        _require_count("cost", cost)

        current, known = self._resolve(current_tier_id)
        shortfall = max(0, cost - balance)

        if not known:
            reason_code = ReasonCode.UNKNOWN_TIER
        elif shortfall:
            reason_code = ReasonCode.INSUFFICIENT_TOKENS
        else:
            reason_code = ReasonCode.OK

        return TokenDecision(
            allowed=reason_code == ReasonCode.OK,
            reason_code=reason_code,
            current_tier=current.id,
            balance=balance,
            required=cost,
            shortfall=shortfall,
        )

    # --- Upgrade prompt ---

    def build_upgrade_prompt(
        self,
        decision: AccessDecision | UsageDecision,
        feature_label: str | None = None,
    ) -> UpgradePromptPayload:
        """Build upgrade prompt data for a denied decision."""
        from tiergate.prompt.upgrade import build_upgrade_prompt

        return build_upgrade_prompt(self._catalog, decision, feature_label)
