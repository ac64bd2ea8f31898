"""tier-gate: subscription tier entitlements, usage limits, and upgrade prompts."""

__version__ = "0.3.0"

from tiergate.catalog.loader import CatalogError, TierCatalog, load_catalog, load_catalog_data
from tiergate.config import TierGateConfig, find_config, load_config
from tiergate.evaluator.engine import NEAR_LIMIT_THRESHOLD, EntitlementEvaluator
from tiergate.models import (
    UNLIMITED,
    AccessDecision,
    FeatureRequirement,
    PromptState,
    ReasonCode,
    TierComparison,
    TierDefinition,
    TokenDecision,
    UpgradePromptPayload,
    UsageDecision,
    UsageSnapshot,
)
from tiergate.prompt.upgrade import UpgradePromptSession, build_upgrade_prompt
from tiergate.sdk.client import TierGate, TierGateError

__all__ = [
    "NEAR_LIMIT_THRESHOLD",
    "UNLIMITED",
    "AccessDecision",
    "CatalogError",
    "EntitlementEvaluator",
    "FeatureRequirement",
    "PromptState",
    "ReasonCode",
    "TierCatalog",
    "TierComparison",
    "TierDefinition",
    "TierGate",
    "TierGateConfig",
    "TierGateError",
    "TokenDecision",
    "UpgradePromptPayload",
    "UpgradePromptSession",
    "UsageDecision",
    "UsageSnapshot",
    "__version__",
    "build_upgrade_prompt",
    "find_config",
    "load_catalog",
    "load_catalog_data",
    "load_config",
]
