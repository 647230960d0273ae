"""Resolved pricing model.

These dataclasses are what CatalogStore hands to the valuation engine: every
deduction field is populated (variant override or global default), so the
engine never has to know where a number came from.

Dependency-free (no Motor/PyMongo) so the engine stays a pure function.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .types import Accessory, AgeBracket, ConditionTier


@dataclass(frozen=True)
class AccessoryDeductions:
    charger: float
    box: float
    bill: float

    def for_accessory(self, accessory: Accessory) -> float:
        return float(getattr(self, accessory.value))

    def to_dict(self) -> Dict[str, float]:
        return {"charger": self.charger, "box": self.box, "bill": self.bill}


@dataclass(frozen=True)
class ConditionDeductionPct:
    good: float
    average: float
    below_average: float

    def for_tier(self, tier: ConditionTier) -> float:
        return float(getattr(self, tier.value))

    def to_dict(self) -> Dict[str, float]:
        return {"good": self.good, "average": self.average, "below_average": self.below_average}


@dataclass(frozen=True)
class DeductionDefaults:
    accessory: AccessoryDeductions
    condition_pct: ConditionDeductionPct


# Built-in fallbacks when neither the variant nor system_settings has a value.
BUILTIN_DEFAULTS = DeductionDefaults(
    accessory=AccessoryDeductions(charger=200.0, box=100.0, bill=150.0),
    condition_pct=ConditionDeductionPct(good=0.0, average=10.0, below_average=20.0),
)

# system_settings keys -> (group, field)
SETTING_KEYS: Dict[str, tuple[str, str]] = {
    "charger_missing_deduction": ("accessory_deductions", "charger"),
    "box_missing_deduction": ("accessory_deductions", "box"),
    "bill_missing_deduction": ("accessory_deductions", "bill"),
    "condition_good_deduction_pct": ("condition_deduction_pct", "good"),
    "condition_average_deduction_pct": ("condition_deduction_pct", "average"),
    "condition_below_average_deduction_pct": ("condition_deduction_pct", "below_average"),
}


@dataclass(frozen=True)
class PricingRecord:
    variant_id: str
    base_price: float
    age_tier_prices: Mapping[AgeBracket, Optional[float]]
    accessory_deductions: AccessoryDeductions
    condition_deduction_pct: ConditionDeductionPct
    version: int = 0
    # "group.field" -> "variant" | "global" | "builtin"
    sources: Mapping[str, str] = field(default_factory=dict)

    def age_price(self, bracket: AgeBracket) -> Optional[float]:
        return self.age_tier_prices.get(bracket)
