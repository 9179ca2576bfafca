"""
Read-time views over the global config: promo countdown and payment
instructions.

Promo expiry is computed here at read time only. An elapsed countdown is
reported as expired, but the stored ``promo.active`` flag is left alone;
clearing it is an admin action.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from ..profiles.models import GlobalConfig, Promo


STANDARD_PLAN_LABEL = "Standard Mensile"


@dataclass(frozen=True)
class PromoCountdown:
    expired: bool
    ends_at: datetime
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expired": self.expired,
            "ends_at": self.ends_at.isoformat(),
            "hours": self.hours,
            "minutes": self.minutes,
            "seconds": self.seconds,
        }


@dataclass(frozen=True)
class PriceView:
    label: str
    amount: Decimal
    is_promo: bool
    duration: Optional[str] = None
    countdown: Optional[PromoCountdown] = None


@dataclass(frozen=True)
class PaymentInstructions:
    price: PriceView
    iban: str
    holder: str
    contact_email: str
    support_phone: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.price.label,
            "amount": str(self.price.amount),
            "is_promo": self.price.is_promo,
            "duration": self.price.duration,
            "countdown": self.price.countdown.to_dict() if self.price.countdown else None,
            "iban": self.iban,
            "holder": self.holder,
            "contact_email": self.contact_email,
            "support_phone": self.support_phone,
        }


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def promo_countdown(promo: Promo, now: datetime, fallback_start: Optional[datetime] = None) -> PromoCountdown:
    """Time left on the promo offer, counted from its last update."""
    now = _aware(now)
    start = _aware(promo.last_updated or fallback_start or now)
    ends_at = start + timedelta(hours=promo.deadline_hours)
    remaining = ends_at - now

    if remaining < timedelta(0):
        return PromoCountdown(expired=True, ends_at=ends_at)

    total = int(remaining.total_seconds())
    return PromoCountdown(
        expired=False,
        ends_at=ends_at,
        hours=total // 3600,
        minutes=(total % 3600) // 60,
        seconds=total % 60,
    )


def price_view(config: GlobalConfig, now: datetime, fallback_start: Optional[datetime] = None) -> PriceView:
    """Price to display: the promo replaces the default while ``promo.active`` is set."""
    promo = config.promo
    if not promo.active:
        return PriceView(label=STANDARD_PLAN_LABEL, amount=config.default_cost, is_promo=False)

    return PriceView(
        label=f"Promo {promo.name}",
        amount=promo.cost,
        is_promo=True,
        duration=promo.duration,
        countdown=promo_countdown(promo, now, fallback_start),
    )


def payment_instructions(config: GlobalConfig, now: datetime,
                         fallback_start: Optional[datetime] = None) -> PaymentInstructions:
    return PaymentInstructions(
        price=price_view(config, now, fallback_start),
        iban=config.bank_details.iban,
        holder=config.bank_details.holder,
        contact_email=config.contact_email,
        support_phone=config.support_contact.phone,
    )
