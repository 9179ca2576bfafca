"""
Tenant profile and global config data contracts.

Rows coming from the profile store carry loosely shaped JSON in
``settings``. ``parse_profile`` and ``parse_global_config`` are the only
places that read that raw JSON; everything downstream works on the typed,
fully defaulted structures defined here.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class SubscriptionStatus(str, Enum):
    """Administrative override, independent of plan and expiry."""
    NONE = "none"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class Department(str, Enum):
    """Operational surfaces a session can enter."""
    KITCHEN = "kitchen"
    PIZZERIA = "pizzeria"
    PUB = "pub"
    DELIVERY = "delivery"
    WAITER = "waiter"


RESTRICTED_DEPARTMENTS = frozenset({
    Department.KITCHEN,
    Department.PIZZERIA,
    Department.PUB,
    Department.DELIVERY,
})

EndDate = Union[date, datetime]


@dataclass(frozen=True)
class UserPreferences:
    terms_accepted: bool = False
    cookies_accepted: bool = False
    privacy_accepted: bool = False
    welcome_modal_shown: bool = False
    dont_show_welcome_again: bool = False


@dataclass(frozen=True)
class RestaurantProfile:
    plan_type: str = ""
    subscription_end_date: Optional[EndDate] = None
    allowed_department: Optional[Department] = None
    subscription_cost: Optional[str] = None
    user_preferences: UserPreferences = field(default_factory=UserPreferences)


@dataclass(frozen=True)
class TenantProfile:
    """One restaurant account."""
    id: str
    email: str = ""
    restaurant_name: Optional[str] = None
    subscription_status: SubscriptionStatus = SubscriptionStatus.NONE
    restaurant_profile: RestaurantProfile = field(default_factory=RestaurantProfile)
    # Raw settings blob as stored; write-backs merge into it.
    settings: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class BankDetails:
    iban: str = ""
    holder: str = ""


@dataclass(frozen=True)
class SupportContact:
    phone: str = ""


@dataclass(frozen=True)
class Promo:
    name: str = "Promo Launch"
    cost: Decimal = Decimal("29.90")
    duration: str = "3 Mesi"
    deadline_hours: int = 72
    active: bool = False
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class GlobalConfig:
    """Deployment-wide display configuration owned by the super admin."""
    contact_email: str = "info@ristosyncai.it"
    default_cost: Decimal = Decimal("49.90")
    bank_details: BankDetails = field(default_factory=BankDetails)
    support_contact: SupportContact = field(default_factory=SupportContact)
    promo: Promo = field(default_factory=Promo)


DEFAULT_GLOBAL_CONFIG = GlobalConfig()


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _string(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _flag(value: Any) -> bool:
    return value is True


def _decimal(value: Any, default: Decimal) -> Decimal:
    if isinstance(value, bool) or value is None:
        return default
    try:
        # Amounts are entered as "29.90" or "29,90" in the admin UI.
        parsed = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        return default
    return parsed if parsed.is_finite() and parsed >= 0 else default


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_end_date(value: Any) -> Optional[EndDate]:
    """Parse ``subscriptionEndDate``.

    Date-only strings stay calendar dates. Full timestamps keep their
    offset so the evaluator can project them into local time.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_department(value: Any) -> Optional[Department]:
    if not is_restricted_department(value):
        return None
    return Department(value)


def parse_subscription_status(value: Any) -> SubscriptionStatus:
    if not isinstance(value, str):
        return SubscriptionStatus.NONE
    try:
        return SubscriptionStatus(value.strip().lower())
    except ValueError:
        return SubscriptionStatus.NONE


def parse_user_preferences(raw: Any) -> UserPreferences:
    prefs = _mapping(raw)
    return UserPreferences(
        terms_accepted=_flag(prefs.get("termsAccepted")),
        cookies_accepted=_flag(prefs.get("cookiesAccepted")),
        privacy_accepted=_flag(prefs.get("privacyAccepted")),
        welcome_modal_shown=_flag(prefs.get("welcomeModalShown")),
        dont_show_welcome_again=_flag(prefs.get("dontShowWelcomeAgain")),
    )


def parse_restaurant_profile(raw: Any) -> RestaurantProfile:
    data = _mapping(raw)
    cost = data.get("subscriptionCost")
    return RestaurantProfile(
        plan_type=_string(data.get("planType")).strip(),
        subscription_end_date=parse_end_date(data.get("subscriptionEndDate")),
        allowed_department=parse_department(data.get("allowedDepartment")),
        subscription_cost=_string(cost) or None,
        user_preferences=parse_user_preferences(data.get("userPreferences")),
    )


def parse_profile(row: Mapping[str, Any]) -> TenantProfile:
    """Build a ``TenantProfile`` from a ``profiles`` row."""
    settings = row.get("settings")
    if isinstance(settings, str):
        # Some drivers hand jsonb back as text.
        try:
            settings = json.loads(settings)
        except ValueError:
            settings = {}
    settings = dict(_mapping(settings))

    restaurant_name = row.get("restaurant_name")
    return TenantProfile(
        id=str(row["id"]),
        email=_string(row.get("email")),
        restaurant_name=restaurant_name if isinstance(restaurant_name, str) else None,
        subscription_status=parse_subscription_status(row.get("subscription_status")),
        restaurant_profile=parse_restaurant_profile(settings.get("restaurantProfile")),
        settings=settings,
    )


def parse_global_config(settings: Any) -> GlobalConfig:
    """Extract ``globalConfig`` from the super admin's settings blob."""
    config = _mapping(_mapping(settings).get("globalConfig"))
    bank = _mapping(config.get("bankDetails"))
    support = _mapping(config.get("supportContact"))
    promo = _mapping(config.get("promo"))
    defaults = DEFAULT_GLOBAL_CONFIG

    return GlobalConfig(
        contact_email=_string(config.get("contactEmail")) or defaults.contact_email,
        default_cost=_decimal(config.get("defaultCost"), defaults.default_cost),
        bank_details=BankDetails(
            iban=_string(bank.get("iban")),
            holder=_string(bank.get("holder")),
        ),
        support_contact=SupportContact(phone=_string(support.get("phone"))),
        promo=Promo(
            name=_string(promo.get("name")) or defaults.promo.name,
            cost=_decimal(promo.get("cost"), defaults.promo.cost),
            duration=_string(promo.get("duration")) or defaults.promo.duration,
            deadline_hours=_int(promo.get("deadlineHours"), defaults.promo.deadline_hours),
            active=_flag(promo.get("active")),
            last_updated=parse_timestamp(promo.get("lastUpdated"))
            or parse_timestamp(config.get("lastUpdated")),
        ),
    )


def is_restricted_department(value: Union[str, Department]) -> bool:
    try:
        return Department(value) in RESTRICTED_DEPARTMENTS
    except ValueError:
        return False
