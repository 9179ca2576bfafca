"""
Entitlement evaluator.

Decides, for one tenant session, whether the product may be used. The
checks run in strict priority order:

1. no profile (missing or fetch error)  -> Suspended(no_profile)
2. subscription_status == banned        -> Banned
3. subscription_status == suspended     -> Suspended(admin_suspended)
4. Free / Demo plan                     -> Active, no day count
5. end date normalized to 23:59:59.999 local time of that day
6. past that instant                    -> Suspended(expired), unless the
                                           session is the privileged identity
7. otherwise                            -> Active with days remaining

The welcome flag is derived from user preferences independently of the
state. Evaluation is pure: ``now`` is always passed in and nothing is
cached between calls, so time alone moves a tenant from Active to
Suspended(expired).
"""

from datetime import datetime, time, timedelta, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .models import AccessDecision, AccessState, SuspensionReason
from .plans import is_unlimited_plan, locked_features
from ..profiles.models import EndDate, SubscriptionStatus, TenantProfile, UserPreferences


ONE_DAY = timedelta(days=1)
END_OF_DAY = time(23, 59, 59, 999000)

ProfileResult = Union[TenantProfile, BaseException, None]


def should_show_welcome(preferences: UserPreferences) -> bool:
    return not preferences.terms_accepted and not preferences.dont_show_welcome_again


def expiry_instant(end_date: EndDate, tz: tzinfo) -> datetime:
    """Last instant of the end date's calendar day in ``tz``."""
    if isinstance(end_date, datetime):
        day = end_date.astimezone(tz).date() if end_date.tzinfo else end_date.date()
    else:
        day = end_date
    return datetime.combine(day, END_OF_DAY, tzinfo=tz)


class EntitlementEvaluator:
    """Computes an ``AccessDecision`` from a profile, a clock reading and a session email."""

    def __init__(self,
                 privileged_email: str = "",
                 timezone: Union[str, tzinfo] = "Europe/Rome",
                 missing_end_date_policy: str = "deny",
                 expiring_soon_days: int = 5):
        if missing_end_date_policy not in ("deny", "unlimited"):
            raise ValueError(f"Unknown missing end date policy: {missing_end_date_policy}")
        self.privileged_email = privileged_email.strip().casefold()
        self.tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self.missing_end_date_policy = missing_end_date_policy
        self.expiring_soon_days = expiring_soon_days

    @classmethod
    def from_config(cls, config) -> "EntitlementEvaluator":
        return cls(
            privileged_email=config.privileged_email,
            timezone=config.timezone,
            missing_end_date_policy=config.missing_end_date_policy,
            expiring_soon_days=config.expiring_soon_days,
        )

    def is_privileged(self, session_email: Optional[str]) -> bool:
        if not self.privileged_email or not session_email:
            return False
        return session_email.strip().casefold() == self.privileged_email

    def local_now(self, now: datetime) -> datetime:
        # Naive readings are local wall-clock time.
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def evaluate(self, profile: ProfileResult, now: datetime, session_email: Optional[str]) -> AccessDecision:
        if profile is None or isinstance(profile, BaseException):
            return AccessDecision(
                state=AccessState.SUSPENDED,
                reason=SuspensionReason.NO_PROFILE,
                evaluated_at=now,
            )

        restaurant = profile.restaurant_profile
        plan_type = restaurant.plan_type
        base = dict(
            plan_type=plan_type,
            show_welcome_modal=should_show_welcome(restaurant.user_preferences),
            locked_features=locked_features(plan_type),
            evaluated_at=now,
        )

        status = profile.subscription_status
        if status == SubscriptionStatus.BANNED:
            return AccessDecision(state=AccessState.BANNED, **base)

        if status == SubscriptionStatus.SUSPENDED:
            return AccessDecision(
                state=AccessState.SUSPENDED,
                reason=SuspensionReason.ADMIN_SUSPENDED,
                **base
            )

        if is_unlimited_plan(plan_type):
            return AccessDecision(state=AccessState.ACTIVE, days_remaining=None, **base)

        if restaurant.subscription_end_date is None:
            return self._without_end_date(session_email, base)

        expires_at = expiry_instant(restaurant.subscription_end_date, self.tz)
        remaining = expires_at - self.local_now(now)
        days_remaining = remaining // ONE_DAY

        if remaining < timedelta(0) and not self.is_privileged(session_email):
            return AccessDecision(
                state=AccessState.SUSPENDED,
                reason=SuspensionReason.EXPIRED,
                days_remaining=days_remaining,
                **base
            )

        return AccessDecision(
            state=AccessState.ACTIVE,
            days_remaining=days_remaining,
            expiring_soon=days_remaining <= self.expiring_soon_days,
            **base
        )

    def _without_end_date(self, session_email: Optional[str], base: dict) -> AccessDecision:
        """Paid plan with no usable end date."""
        if self.missing_end_date_policy == "unlimited" or self.is_privileged(session_email):
            return AccessDecision(state=AccessState.ACTIVE, days_remaining=None, **base)
        return AccessDecision(
            state=AccessState.SUSPENDED,
            reason=SuspensionReason.MISSING_END_DATE,
            **base
        )
