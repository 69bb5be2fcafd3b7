"""Interfaces for upstream pricing collaborators.

Every source returns a typed record or None. Ordinary absence (no match,
HTTP error, malformed payload) is None, never an exception.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class CommodityQuote:
    """Commodity wholesale API result.

    Attributes:
        unit_price: Per-unit wholesale price, if quoted.
        total_quote: Price for the requested quantity, if quoted.
        is_brand: Whether the product is a brand drug.
    """

    unit_price: Decimal | None
    total_quote: Decimal | None
    is_brand: bool


@dataclass(frozen=True)
class AcquisitionCost:
    """National average acquisition cost per unit."""

    unit_price: Decimal
    is_otc: bool = False


@dataclass(frozen=True)
class SpendingRecord:
    """Government average spending per dosage unit."""

    unit_price: Decimal


@dataclass(frozen=True)
class RegionalPrice:
    """Historical claims-derived price per unit for a state (or nation)."""

    price_per_unit: Decimal
    state: str | None


@dataclass(frozen=True)
class FormularyCopay:
    """Best covered copay found in an insurance formulary."""

    copay: Decimal
    plan_name: str
    tier_name: str


class CommoditySource(ABC):
    """Commodity wholesale pricing (e.g. Cost Plus Drugs)."""

    @abstractmethod
    def search(
        self,
        name: str,
        strength: str | None = None,
        quantity: int | None = None,
    ) -> CommodityQuote | None:
        """Quote a drug by cleaned name, optional strength and quantity."""
        ...


class AcquisitionCostSource(ABC):
    """Acquisition-cost dataset (e.g. Medicaid NADAC)."""

    @abstractmethod
    def search(self, name: str, strength: str | None = None) -> AcquisitionCost | None:
        ...


class SpendingSource(ABC):
    """Spending-based dataset (e.g. Medicare Part D spending by drug)."""

    @abstractmethod
    def search(self, name: str) -> SpendingRecord | None:
        ...


class RegionalPricingSource(ABC):
    """Regional historical claims dataset."""

    @abstractmethod
    def search(self, name: str, state: str | None) -> RegionalPrice | None:
        """Find a per-unit price for ``name`` in ``state`` (None = national)."""
        ...


class FormularyService(ABC):
    """Insurance formulary lookup."""

    @abstractmethod
    def best_copay(self, rxcui: str, insurance_selection: str) -> FormularyCopay | None:
        """Lowest covered copay for a drug under an insurance selection."""
        ...
