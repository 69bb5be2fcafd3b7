"""Deterministic pseudo-variation helpers.

Pricing looks "realistic" by varying markups, copays and coupon
eligibility per pharmacy, but every variation is derived from a string
hash so repeated requests produce identical quotes. No PRNG is used.

Hash:
    h = (h * 31 + ord(ch)) wrapped to a signed 32-bit integer, then abs(h)
Normalized:
    (h mod 1000) / 1000, in [0, 1)
Variation multiplier:
    1 - pct + 2 * pct * normalized, in [1 - pct, 1 + pct)
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def stable_hash(seed: str) -> int:
    """Polynomial string hash, non-negative and stable across processes.

    Args:
        seed: Any string (pharmacy name, pharmacy + medication, ...).

    Returns:
        Non-negative integer hash.
    """
    value = 0
    for char in seed:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def normalized_hash(seed: str) -> Decimal:
    """Map a seed to a stable fraction in [0, 1) with 3-digit resolution."""
    return Decimal(stable_hash(seed) % 1000) / Decimal(1000)


def stable_variation(seed: str, range_pct: Decimal) -> Decimal:
    """Deterministic multiplier within ``1 ± range_pct``.

    Args:
        seed: Variation seed string.
        range_pct: Half-width of the range (e.g. Decimal("0.10") for ±10%).

    Returns:
        Multiplier in [1 - range_pct, 1 + range_pct).
    """
    return Decimal(1) - range_pct + 2 * range_pct * normalized_hash(seed)


def round2(amount: Decimal) -> Decimal:
    """Round a money amount to cents, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
