"""Core data models for tier-gate.

Defines the schemas for:
- Tier definitions (what each subscription level unlocks)
- Feature requirements (minimum tier per gated feature)
- Usage snapshots (caller-supplied counters)
- Decisions (evaluator output)
- Upgrade prompt payloads (data for "please upgrade" UIs)
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# --- Enums ---


class Unlimited(enum.Enum):
    """Sentinel for a limit with no ceiling.

    A plain Enum so it never compares equal to an int.
    """

    UNLIMITED = "unlimited"

    def __repr__(self) -> str:
        return "UNLIMITED"


UNLIMITED = Unlimited.UNLIMITED


class ReasonCode(enum.StrEnum):
    OK = "OK"
    UNKNOWN_TIER = "UNKNOWN_TIER"
    UNKNOWN_FEATURE = "UNKNOWN_FEATURE"
    UNKNOWN_LIMIT = "UNKNOWN_LIMIT"
    INSUFFICIENT_TIER = "INSUFFICIENT_TIER"
    LIMIT_REACHED = "LIMIT_REACHED"
    INSUFFICIENT_TOKENS = "INSUFFICIENT_TOKENS"


class PromptState(enum.StrEnum):
    CLOSED = "closed"
    OPEN = "open"


LimitValue = Annotated[int, Field(ge=0)] | Unlimited


def is_unlimited(value: Any) -> bool:
    """True if *value* is the UNLIMITED sentinel."""
    return value is UNLIMITED


def normalize_limit(value: Any) -> Any:
    """Map config spellings of "no ceiling" (``-1``, ``"unlimited"``) to UNLIMITED.

    Anything else is returned unchanged for pydantic to validate.
    """
    if isinstance(value, bool):
        raise ValueError(f"limit must be an integer or 'unlimited', got {value!r}")
    if value is UNLIMITED or value == -1:
        return UNLIMITED
    if isinstance(value, str) and value.strip().lower() == UNLIMITED.value:
        return UNLIMITED
    return value


# --- Catalog Schema ---


class TierDefinition(BaseModel):
    """A subscription tier.

    Loaded from the tier catalog file. Tiers are ordered by ``rank`` only;
    ``id`` is never used for ordering.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., pattern=r"^[a-z][a-z0-9_-]*$")
    name: str = ""
    description: str = ""
    rank: int
    limits: Mapping[str, LimitValue] = Field(default_factory=dict)
    features: frozenset[str] = Field(default_factory=frozenset)
    aliases: tuple[str, ...] = ()

    @field_validator("limits", mode="before")
    @classmethod
    def _normalize_limits(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {key: normalize_limit(v) for key, v in value.items()}

    @field_validator("limits")
    @classmethod
    def _freeze_limits(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        # Read-only view
        return MappingProxyType(dict(value))

    @field_validator("aliases")
    @classmethod
    def _lowercase_aliases(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(a.strip().lower() for a in value)

    @field_serializer("limits")
    def _dump_limits(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    @field_serializer("features")
    def _dump_features(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def limit_for(self, limit_key: str) -> int | Unlimited | None:
        """Return the ceiling for *limit_key*, or None if not defined."""
        return self.limits.get(limit_key)


class FeatureRequirement(BaseModel):
    """The minimum tier required to use a feature."""

    model_config = ConfigDict(frozen=True)

    feature: str = Field(..., min_length=1)
    min_tier: str = Field(..., min_length=1)
    label: str = ""


class UsageSnapshot(BaseModel):
    """How much of a countable resource the caller has consumed."""

    model_config = ConfigDict(frozen=True)

    limit_key: str
    current_usage: int = Field(0, ge=0)


# --- Decisions (Evaluator Output) ---


class AccessDecision(BaseModel):
    """The result of a feature access check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason_code: ReasonCode
    current_tier: str
    required_tier: str | None = None
    feature: str | None = None
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class UsageDecision(BaseModel):
    """The result of a usage limit check."""

    model_config = ConfigDict(frozen=True)

    can_use: bool
    is_near_limit: bool
    usage_percentage: float
    limit: int | Unlimited | None = None
    current_usage: int
    remaining: int | None = None
    limit_key: str
    current_tier: str
    reason_code: ReasonCode
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.can_use

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class TierComparison(BaseModel):
    """The result of comparing two tiers by rank."""

    model_config = ConfigDict(frozen=True)

    tier_a: str
    tier_b: str
    a_meets_or_exceeds_b: bool
    reason_code: ReasonCode


class TokenDecision(BaseModel):
    """The result of a token balance check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason_code: ReasonCode
    current_tier: str
    balance: int
    required: int
    shortfall: int = 0

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class UpgradePromptPayload(BaseModel):
    """Everything a host needs to render an upgrade prompt."""

    model_config = ConfigDict(frozen=True)

    required_tier: str | None
    current_tier: str
    feature_label: str
    cta_tier_list: list[str] = Field(default_factory=list)
    unlocks: list[str] = Field(default_factory=list)
    reason_code: ReasonCode

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
