"""Upgrade prompt decisions.

Turns a denied AccessDecision or UsageDecision into the data a host needs
to render a "please upgrade" interaction: the tier to aim for, every tier
the user could move to, and what they would unlock. No UI lives here.

The prompt's open/closed state belongs to the caller (one per UI
session). UpgradePromptSession is a reference implementation of that
state machine::

    CLOSED --show(denied decision)--> OPEN --close()--> CLOSED
"""

from __future__ import annotations

from tiergate.catalog.loader import TierCatalog
from tiergate.evaluator.engine import EntitlementEvaluator
from tiergate.models import (
    AccessDecision,
    PromptState,
    ReasonCode,
    UpgradePromptPayload,
    UsageDecision,
)


def build_upgrade_prompt(
    catalog: TierCatalog,
    decision: AccessDecision | UsageDecision,
    feature_label: str | None = None,
) -> UpgradePromptPayload:
    """Build the upgrade prompt payload for a denied decision.

    Args:
        catalog: The tier catalog the decision was made against.
        decision: A denied access or usage decision.
        feature_label: Display name for the gated capability. Defaults to
            the requirement's label, then the feature or limit key.

    Raises:
        ValueError: If the decision allowed access.
    """
    if decision.allowed:
        raise ValueError("Upgrade prompt requested for an allowed decision")

    evaluator = EntitlementEvaluator(catalog)
    current = catalog.get_tier(decision.current_tier) or catalog.lowest_tier
    cta = [t.id for t in catalog.tiers_above(current)]

    required_tier: str | None
    if isinstance(decision, AccessDecision):
        required_tier = decision.required_tier
        label = feature_label
        if label is None and decision.feature is not None:
            requirement = catalog.requirement(decision.feature)
            label = (requirement.label if requirement else "") or decision.feature
    else:
        upgrade = evaluator.upgrade_tier_for_limit(
            current.id, decision.limit_key, decision.current_usage,
        )
        required_tier = upgrade.id if upgrade else None
        label = feature_label or decision.limit_key

    # No tier unlocks an unregistered feature
    if decision.reason_code == ReasonCode.UNKNOWN_FEATURE:
        required_tier = None
    else:
        # Already at or above the required tier (e.g. unknown tier resolved low)
        if required_tier is not None and required_tier not in cta:
            required_tier = cta[0] if cta else None
        if required_tier is None and cta:
            required_tier = cta[0]

    unlocks = (
        evaluator.features_gained(current.id, required_tier) if required_tier else []
    )

    return UpgradePromptPayload(
        required_tier=required_tier,
        current_tier=current.id,
        feature_label=label or "",
        cta_tier_list=cta,
        unlocks=unlocks,
        reason_code=decision.reason_code,
    )


class UpgradePromptSession:
    """Per-session upgrade prompt state: CLOSED or OPEN.

    Not thread-safe; create one per UI session.
    """

    def __init__(self, catalog: TierCatalog) -> None:
        self._catalog = catalog
        self._state = PromptState.CLOSED
        self._payload: UpgradePromptPayload | None = None

    @property
    def state(self) -> PromptState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == PromptState.OPEN

    @property
    def payload(self) -> UpgradePromptPayload | None:
        """The payload of the open prompt, or None when closed."""
        return self._payload

    def show(
        self,
        decision: AccessDecision | UsageDecision,
        feature_label: str | None = None,
    ) -> UpgradePromptPayload | None:
        """Open the prompt for a denied decision.

        An allowed decision leaves the state unchanged and returns None.
        """
        if decision.allowed:
            return None
        self._payload = build_upgrade_prompt(self._catalog, decision, feature_label)
        self._state = PromptState.OPEN
        return self._payload

    def close(self) -> None:
        self._state = PromptState.CLOSED
        self._payload = None
