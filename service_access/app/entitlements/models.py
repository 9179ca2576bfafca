"""
Access decision model for the entitlement evaluator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from .plans import UNLIMITED_PLANS


class AccessState(str, Enum):
    BANNED = "banned"
    SUSPENDED = "suspended"
    ACTIVE = "active"


class SuspensionReason(str, Enum):
    ADMIN_SUSPENDED = "admin_suspended"
    EXPIRED = "expired"
    NO_PROFILE = "no_profile"
    MISSING_END_DATE = "missing_end_date"


class SubscriptionSummary(str, Enum):
    """Label for the subscription status badge."""
    BANNED = "banned"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    NO_PROFILE = "no_profile"
    FREE = "free"
    DAYS_REMAINING = "days_remaining"
    UNLIMITED = "unlimited"


@dataclass(frozen=True)
class AccessDecision:
    """Derived per evaluation, never persisted."""
    state: AccessState
    reason: Optional[SuspensionReason] = None
    days_remaining: Optional[int] = None
    show_welcome_modal: bool = False
    plan_type: str = ""
    expiring_soon: bool = False
    locked_features: FrozenSet[str] = field(default_factory=frozenset)
    evaluated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state == AccessState.ACTIVE

    @property
    def summary(self) -> SubscriptionSummary:
        if self.state == AccessState.BANNED:
            return SubscriptionSummary.BANNED
        if self.state == AccessState.SUSPENDED:
            if self.reason == SuspensionReason.EXPIRED:
                return SubscriptionSummary.EXPIRED
            if self.reason == SuspensionReason.NO_PROFILE:
                return SubscriptionSummary.NO_PROFILE
            return SubscriptionSummary.SUSPENDED
        if self.days_remaining is not None:
            return SubscriptionSummary.DAYS_REMAINING
        if self.plan_type in UNLIMITED_PLANS:
            return SubscriptionSummary.FREE
        return SubscriptionSummary.UNLIMITED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "reason": self.reason.value if self.reason else None,
            "days_remaining": self.days_remaining,
            "show_welcome_modal": self.show_welcome_modal,
            "plan_type": self.plan_type,
            "expiring_soon": self.expiring_soon,
            "locked_features": sorted(self.locked_features),
            "summary": self.summary.value,
            "evaluated_at": self.evaluated_at.isoformat() if self.evaluated_at else None,
        }
