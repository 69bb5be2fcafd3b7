"""Discount-card coupon model.

About 70% of pharmacies accept coupons: a pharmacy is eligible when
``stable_hash(name) % 10 < 7``. The provider is ``stable_hash(name) % 3``
over the provider table, so the same pharmacy always shows the same card.
"""

import logging
from decimal import Decimal

from rxprice.compute.variation import round2, stable_hash
from rxprice.models import CouponQuote

logger = logging.getLogger(__name__)

COUPON_ACCEPTANCE_BUCKETS = 7  # of 10

# Provider -> discount off cash, indexed by hash
COUPON_PROVIDERS: tuple[tuple[str, Decimal], ...] = (
    ("GoodRx", Decimal("0.35")),
    ("SingleCare", Decimal("0.30")),
    ("RxSaver", Decimal("0.40")),
)


def accepts_coupons(pharmacy_name: str) -> bool:
    return stable_hash(pharmacy_name) % 10 < COUPON_ACCEPTANCE_BUCKETS


def quote_coupon(cash_price: Decimal, pharmacy_name: str) -> CouponQuote | None:
    """Coupon price at a pharmacy, if it accepts discount cards.

    Args:
        cash_price: Pharmacy cash price.
        pharmacy_name: Pharmacy display name.

    Returns:
        CouponQuote with provider, discounted price and savings, or None.
    """
    if not accepts_coupons(pharmacy_name):
        return None

    provider, discount = COUPON_PROVIDERS[stable_hash(pharmacy_name) % len(COUPON_PROVIDERS)]
    price = round2(cash_price * (1 - discount))
    logger.debug(f"{provider} coupon at {pharmacy_name}: ${price} ({discount:.0%} off)")
    return CouponQuote(provider=provider, price=price, savings=cash_price - price)
