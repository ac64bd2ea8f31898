"""FastAPI dependencies for tier-gated endpoints.

The host supplies ``tier_getter``, a dependency returning the current
user's tier id from a server-verified source (session record, verified
token claims). Never pass a tier id taken straight from the request.

Usage::

    gate = TierGate("./tiers.yaml")

    def current_tier(user: User = Depends(current_user)) -> str:
        return user.subscription_tier

    @app.post("/export/pdf")
    def export_pdf(
        decision: AccessDecision = Depends(
            require_feature(gate, "export-pdf", current_tier)
        ),
    ): ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import Depends, HTTPException

from tiergate.models import AccessDecision, ReasonCode, TierComparison
from tiergate.sdk.client import TierGate

UPGRADE_REQUIRED = "UPGRADE_REQUIRED"


def _upgrade_detail(gate: TierGate, decision: AccessDecision) -> dict[str, Any]:
    detail = decision.to_dict()
    detail["code"] = UPGRADE_REQUIRED
    detail["upgrade"] = gate.build_upgrade_prompt(decision).to_dict()
    return detail


def require_feature(
    gate: TierGate,
    feature: str,
    tier_getter: Callable[..., str | None],
) -> Callable[..., AccessDecision]:
    """Build a dependency that returns 403 unless the tier unlocks *feature*."""

    def dependency(tier: str | None = Depends(tier_getter)) -> AccessDecision:
        decision = gate.check_feature_access(tier, feature)
        if not decision.allowed:
            raise HTTPException(status_code=403, detail=_upgrade_detail(gate, decision))
        return decision

    return dependency


def require_tier(
    gate: TierGate,
    required_tier: str,
    tier_getter: Callable[..., str | None],
) -> Callable[..., TierComparison]:
    """Build a dependency that returns 403 unless the tier meets *required_tier*."""

    def dependency(tier: str | None = Depends(tier_getter)) -> TierComparison:
        comparison = gate.compare_tiers(tier, required_tier)
        if not comparison.a_meets_or_exceeds_b:
            reason_code = (
                ReasonCode.INSUFFICIENT_TIER
                if comparison.reason_code == ReasonCode.OK
                else comparison.reason_code
            )
            raise HTTPException(
                status_code=403,
                detail={
                    "code": UPGRADE_REQUIRED,
                    "reason_code": str(reason_code),
                    "current_tier": tier,
                    "required_tier": required_tier,
                },
            )
        return comparison

    return dependency

