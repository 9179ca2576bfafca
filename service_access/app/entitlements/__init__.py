"""
Entitlements package.

Holds the access decision model, plan classification, and the pure
evaluator that turns a tenant profile and a clock reading into an
``AccessDecision``. Administrative ban and suspension always win over
expiry; the privileged identity only bypasses expiry.
"""

from .evaluator import EntitlementEvaluator, expiry_instant, should_show_welcome
from .models import AccessDecision, AccessState, SubscriptionSummary, SuspensionReason
from .plans import PlanClass, classify_plan, is_basic_plan, is_unlimited_plan, locked_features

__all__ = [
    "AccessDecision",
    "AccessState",
    "EntitlementEvaluator",
    "PlanClass",
    "SubscriptionSummary",
    "SuspensionReason",
    "classify_plan",
    "expiry_instant",
    "is_basic_plan",
    "is_unlimited_plan",
    "locked_features",
    "should_show_welcome",
]
