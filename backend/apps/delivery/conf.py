# apps/delivery/conf.py
from decimal import Decimal

from django.conf import settings

# Fallbacks when the deployment does not override DISPATCH_<NAME>
DEFAULTS = {
    "OFFER_TTL_SECONDS": 120,
    "MAX_SEARCH_RADIUS_METERS": 10000,
    "DEFAULT_SEARCH_RADIUS_METERS": 5000,
    "COMMISSION_RATE": Decimal("0.10"),
    "AUTO_COMPLETE_DISTANCE_METERS": 50,
    "SLA_MINUTES": 10,
}


def get(name):
    """
    Reads a dispatch constant at call time so tests can use override_settings.
    """
    return getattr(settings, f"DISPATCH_{name}", DEFAULTS[name])


def commission_rate() -> Decimal:
    # Settings may carry a float or a string; money math stays in Decimal
    return Decimal(str(get("COMMISSION_RATE")))


def earnings_for(total_price) -> Decimal:
    """
    Driver share of an order total, rounded to cents.
    """
    return (Decimal(str(total_price)) * commission_rate()).quantize(Decimal("0.01"))
