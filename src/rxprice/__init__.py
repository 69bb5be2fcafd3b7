"""Prescription Price Comparison Engine.

Resolves a wholesale basis for a medication through a cascade of
curated tables and public pricing datasets, then quotes cash, insurance,
membership and coupon prices per pharmacy.
"""

from rxprice.config import Settings
from rxprice.models import Pharmacy, PharmacyQuote, PricingRequest, WholesaleResolution

__version__ = "0.1.0"
__all__ = ["Settings", "Pharmacy", "PharmacyQuote", "PricingRequest", "WholesaleResolution"]
