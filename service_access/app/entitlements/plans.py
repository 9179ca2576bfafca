"""
Plan classification shared by the evaluator and the department lock.
"""

from enum import Enum
from typing import FrozenSet


class PlanClass(str, Enum):
    UNLIMITED = "unlimited"
    BASIC = "basic"
    STANDARD = "standard"


# Exact labels; every other plan is expiry-checked.
UNLIMITED_PLANS: FrozenSet[str] = frozenset({"Free", "Demo"})

# Admin features a Basic-tier plan cannot open.
BASIC_LOCKED_FEATURES: FrozenSet[str] = frozenset({"ai", "marketing", "whatsapp"})


def is_unlimited_plan(plan_type: str) -> bool:
    return plan_type in UNLIMITED_PLANS


def is_basic_plan(plan_type: str) -> bool:
    """Basic, Basic_Annuale, ... (case-insensitive substring match)."""
    return "basic" in (plan_type or "").lower()


def classify_plan(plan_type: str) -> PlanClass:
    if is_unlimited_plan(plan_type):
        return PlanClass.UNLIMITED
    if is_basic_plan(plan_type):
        return PlanClass.BASIC
    return PlanClass.STANDARD


def locked_features(plan_type: str) -> FrozenSet[str]:
    if classify_plan(plan_type) == PlanClass.BASIC:
        return BASIC_LOCKED_FEATURES
    return frozenset()
