"""Insurance selection catalog and tier-based copay tables."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class PlanType(str, Enum):
    """Insurance plan structure, used for model copays."""

    HMO = "HMO"
    PPO = "PPO"
    EPO = "EPO"
    POS = "POS"
    HDHP = "HDHP"
    MEDICARE = "Medicare"
    MEDICAID = "Medicaid"


@dataclass(frozen=True)
class InsurancePlanInfo:
    """Display details for a known insurance selection id."""

    plan_id: str
    carrier: str
    plan_name: str
    plan_type_label: str

    @property
    def description(self) -> str:
        return f"{self.carrier} {self.plan_name} {self.plan_type_label}"


KNOWN_PLANS = MappingProxyType(
    {
        plan.plan_id: plan
        for plan in (
            InsurancePlanInfo("medicare_part_d", "Medicare", "Part D Standard", "Medicare Part D"),
            InsurancePlanInfo("blue_cross_ppo", "Blue Cross Blue Shield", "Blue Shield PPO", "PPO"),
            InsurancePlanInfo("blue_cross_hmo", "Blue Cross Blue Shield", "Blue Advantage HMO", "HMO"),
            InsurancePlanInfo("united_healthcare", "UnitedHealthcare", "Choice Plus PPO", "PPO"),
            InsurancePlanInfo("aetna", "Aetna", "Open Access HMO", "HMO"),
            InsurancePlanInfo("cigna", "Cigna", "LocalPlus", "HMO"),
            InsurancePlanInfo("humana", "Humana", "Gold Plus HMO", "HMO"),
            InsurancePlanInfo("medicaid", "Medicaid", "State Medicaid", "Medicaid"),
        )
    }
)

# Base copay per plan type and drug tier (1=generic ... 4=specialty)
TIER_COPAYS_BY_PLAN_TYPE: Mapping[PlanType, Mapping[int, Decimal]] = (
    MappingProxyType(
        {
            plan_type: MappingProxyType(
                {tier: Decimal(amount) for tier, amount in enumerate(amounts, start=1)}
            )
            for plan_type, amounts in {
                PlanType.HMO: ("8", "35", "70", "140"),
                PlanType.EPO: ("10", "40", "75", "160"),
                PlanType.PPO: ("12", "45", "85", "180"),
                PlanType.POS: ("11", "42", "80", "170"),
                PlanType.HDHP: ("18", "65", "120", "250"),
                PlanType.MEDICARE: ("5", "35", "75", "150"),
                PlanType.MEDICAID: ("1", "3", "5", "8"),
            }.items()
        }
    )
)

# Keyword -> plan type, checked in order
PLAN_TYPE_KEYWORDS: tuple[tuple[PlanType, tuple[str, ...]], ...] = (
    (PlanType.HMO, ("hmo", "health maintenance")),
    (PlanType.PPO, ("ppo", "preferred provider")),
    (PlanType.EPO, ("epo", "exclusive provider")),
    (PlanType.POS, ("pos", "point of service")),
    (PlanType.HDHP, ("hdhp", "high deductible", "hsa")),
    (PlanType.MEDICARE, ("medicare", "advantage", "medigap")),
    (PlanType.MEDICAID, ("medicaid",)),
)


def describe_plan(plan_id: str, plan_description: str = "") -> str:
    """Text used for plan-type classification of an insurance selection."""
    info = KNOWN_PLANS.get(plan_id.strip().lower())
    parts = [plan_id, plan_description]
    if info is not None:
        parts.append(info.description)
    return " ".join(part for part in parts if part)


def display_plan_name(plan_id: str) -> str:
    info = KNOWN_PLANS.get(plan_id.strip().lower())
    return info.plan_name if info is not None else plan_id
