"""Data models for the prescription pricing engine."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from rxprice.ingest.normalizers import clean_medication_name

NO_INSURANCE_PLANS = frozenset({"", "no_insurance", "cash", "none"})


class DosingFrequency(str, Enum):
    """How often a single dispensed unit is administered."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    AS_NEEDED = "as-needed"


class DrugTier(str, Enum):
    """Coarse formulary tier hint produced by wholesale resolution."""

    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"
    TIER4 = "tier4"

    @property
    def number(self) -> int:
        return int(self.value[-1])


class PriceSource(str, Enum):
    """Cascade layer that produced a wholesale figure (diagnostics only)."""

    GENERIC_TABLE = "generic_table"
    BRAND_TABLE = "brand_table"
    COMMODITY_API = "commodity_api"
    ACQUISITION_AND_SPENDING = "acquisition_and_spending"
    ACQUISITION_COST = "acquisition_cost"
    SPENDING = "spending"
    REGIONAL_CLAIMS = "regional_claims"
    ESTIMATE = "estimate"


class CopaySource(str, Enum):
    """Origin of an insurance copay."""

    FORMULARY = "formulary"
    MODEL = "model"


class BestOption(str, Enum):
    """Payment option with the lowest price, in tie-break priority order."""

    MEMBERSHIP = "membership"
    COUPON = "coupon"
    INSURANCE = "insurance"
    CASH = "cash"


@dataclass(frozen=True)
class DosingProfile:
    """Administration schedule for a medication.

    Attributes:
        frequency: Dosing frequency classification.
        days_per_unit: Days a single dispensed unit lasts.
        units_per_30_days: Units needed to cover 30 days of therapy.
        description: Human-readable schedule description.
    """

    frequency: DosingFrequency
    days_per_unit: int
    units_per_30_days: int
    description: str

    @property
    def is_daily(self) -> bool:
        return self.frequency == DosingFrequency.DAILY


@dataclass(frozen=True)
class WholesaleResolution:
    """Wholesale basis shared by every pharmacy quote in a request.

    Attributes:
        wholesale_cost: Acquisition cost for the dispensed quantity.
        is_brand: Brand (True) vs. generic (False) classification.
        tier: Coarse tier hint from the producing layer.
        source: Cascade layer that produced the figure.
        quantity: Dispensed units the cost covers.
        unit_price: Per-unit basis, when the layer exposes one.
    """

    wholesale_cost: Decimal
    is_brand: bool
    tier: DrugTier
    source: PriceSource
    quantity: int
    unit_price: Decimal | None = None

    def __post_init__(self) -> None:
        if self.wholesale_cost < 0:
            raise ValueError(f"wholesale_cost must be >= 0, got {self.wholesale_cost}")

    @property
    def is_generic(self) -> bool:
        return not self.is_brand

    @property
    def is_estimate(self) -> bool:
        """Whether no upstream source had data and the flat estimate was used."""
        return self.source == PriceSource.ESTIMATE


@dataclass(frozen=True)
class Pharmacy:
    """Candidate pharmacy for a pricing request."""

    name: str
    address: str | None = None
    distance_miles: float | None = None


@dataclass(frozen=True)
class PricingRequest:
    """A single pricing request.

    Build with ``PricingRequest.create`` so the cleaned generic name is
    derived once and reused by every downstream lookup.

    Attributes:
        display_name: Medication name as selected by the user.
        generic_name: Cleaned lookup name derived from ``display_name``.
        strength: Requested strength (e.g. "500mg").
        days_supply: Requested days-supply (or units, see dosing).
        pharmacies: Candidate pharmacies to quote.
        insurance_plan: Insurance selection id ("no_insurance" for cash).
        plan_description: Free-text plan description, if known.
        deductible_met: Whether the patient's deductible is met.
        rxcui: RxNorm concept id, when known.
        zip_code: Patient ZIP code for regional pricing.
        form: Dosage form (e.g. "tablet", "pen injector").
    """

    display_name: str
    generic_name: str
    strength: str
    days_supply: int
    pharmacies: tuple[Pharmacy, ...] = ()
    insurance_plan: str = "no_insurance"
    plan_description: str = ""
    deductible_met: bool = False
    rxcui: str | None = None
    zip_code: str | None = None
    form: str | None = None

    def __post_init__(self) -> None:
        if not self.generic_name:
            raise ValueError(f"Cannot derive a medication name from {self.display_name!r}")
        if self.days_supply < 1:
            raise ValueError(f"days_supply must be >= 1, got {self.days_supply}")

    @classmethod
    def create(
        cls,
        display_name: str,
        strength: str,
        days_supply: int,
        pharmacies: list[Pharmacy] | tuple[Pharmacy, ...] = (),
        insurance_plan: str = "no_insurance",
        plan_description: str = "",
        deductible_met: bool = False,
        rxcui: str | None = None,
        zip_code: str | None = None,
        form: str | None = None,
    ) -> "PricingRequest":
        """Build a request, deriving the cleaned generic name once."""
        return cls(
            display_name=display_name,
            generic_name=clean_medication_name(display_name),
            strength=strength,
            days_supply=days_supply,
            pharmacies=tuple(pharmacies),
            insurance_plan=insurance_plan,
            plan_description=plan_description,
            deductible_met=deductible_met,
            rxcui=rxcui,
            zip_code=zip_code,
            form=form,
        )

    @property
    def has_insurance(self) -> bool:
        return self.insurance_plan.strip().lower() not in NO_INSURANCE_PLANS


@dataclass(frozen=True)
class CopayRecord:
    """Insurance copay for one pharmacy (or the shared formulary hit).

    Attributes:
        covered: Whether a real formulary covers the drug.
        copay: Amount the patient owes at the counter.
        plan_name: Plan (or plan type) the copay came from.
        tier_name: Formulary tier label.
        source: "formulary" for real coverage, "model" otherwise.
    """

    covered: bool
    copay: Decimal
    plan_name: str
    tier_name: str
    source: CopaySource


@dataclass(frozen=True)
class CouponQuote:
    """Discount-card price at one pharmacy."""

    provider: str
    price: Decimal
    savings: Decimal


@dataclass(frozen=True)
class PharmacyQuote:
    """Complete price quote for one pharmacy.

    Attributes:
        pharmacy: Quoted pharmacy.
        wholesale_cost: Shared wholesale basis.
        cash_price: Wholesale x pharmacy markup.
        insurance_price: Copay owed with insurance.
        membership_price: Fixed 20% off the insurance price.
        savings: Cash price minus insurance price.
        best_option: Lowest-priced option (ties by priority order).
        copay: Copay details behind ``insurance_price``.
        price_source: Cascade layer behind ``wholesale_cost``.
        coupon: Coupon quote, if the pharmacy accepts coupons.
    """

    pharmacy: Pharmacy
    wholesale_cost: Decimal
    cash_price: Decimal
    insurance_price: Decimal
    membership_price: Decimal
    savings: Decimal
    best_option: BestOption
    copay: CopayRecord
    price_source: PriceSource
    coupon: CouponQuote | None = field(default=None)

    @property
    def coupon_price(self) -> Decimal | None:
        return self.coupon.price if self.coupon else None

    @property
    def coupon_provider(self) -> str | None:
        return self.coupon.provider if self.coupon else None

    @property
    def best_price(self) -> Decimal:
        """Price of the selected best option."""
        prices = {
            BestOption.MEMBERSHIP: self.membership_price,
            BestOption.INSURANCE: self.insurance_price,
            BestOption.CASH: self.cash_price,
        }
        if self.coupon is not None:
            prices[BestOption.COUPON] = self.coupon.price
        return prices[self.best_option]

    @property
    def is_estimated(self) -> bool:
        return self.price_source == PriceSource.ESTIMATE

    def to_display_dict(self) -> dict[str, object]:
        """Convert to dictionary for report display.

        Returns:
            Dictionary with prices formatted as dollar strings.
        """
        return {
            "pharmacy_name": self.pharmacy.name,
            "pharmacy_address": self.pharmacy.address,
            "cash_price": f"${self.cash_price:.2f}",
            "insurance_price": f"${self.insurance_price:.2f}",
            "membership_price": f"${self.membership_price:.2f}",
            "coupon_price": (
                f"${self.coupon.price:.2f}" if self.coupon else None
            ),
            "coupon_provider": self.coupon_provider,
            "savings": f"${self.savings:.2f}",
            "best_option": self.best_option.value,
            "copay_source": self.copay.source.value,
            "pricing_estimated": self.is_estimated,
            "distance": (
                f"{self.pharmacy.distance_miles:.1f} mi"
                if self.pharmacy.distance_miles is not None
                else None
            ),
        }


@dataclass(frozen=True)
class PricingResult:
    """Request-level pricing outcome.

    Attributes:
        request: The priced request.
        dosing: Dosing profile used for quantity adjustment.
        quantity: Dispensed units priced.
        wholesale: Shared wholesale basis.
        quotes: One quote per candidate pharmacy, in request order.
    """

    request: PricingRequest
    dosing: DosingProfile
    quantity: int
    wholesale: WholesaleResolution
    quotes: tuple[PharmacyQuote, ...]

    @property
    def is_estimate(self) -> bool:
        return self.wholesale.is_estimate
