"""
Global config package.

Best-effort cache of the deployment-wide display configuration, backed by
an optional Redis mirror of the last good value, plus the read-time promo
countdown and payment-instruction views.
"""

from .cache import GlobalConfigCache
from .redis_mirror import RedisConfigMirror
from .views import PaymentInstructions, PriceView, PromoCountdown, payment_instructions, price_view, promo_countdown

__all__ = [
    "GlobalConfigCache",
    "PaymentInstructions",
    "PriceView",
    "PromoCountdown",
    "RedisConfigMirror",
    "payment_instructions",
    "price_view",
    "promo_countdown",
]
