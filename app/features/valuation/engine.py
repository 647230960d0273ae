"""Valuation engine.

compute_final_price() is a pure function of its arguments: no I/O, no clock,
no module state. Amounts are computed in Decimal at 2dp (round-half-up) and
returned as floats, matching how prices are stored.

Order of operations (changing it changes payouts):

    1. age-adjusted price    = age_tier_prices[bracket]
    2. condition deduction   = round_half_up(age_adjusted * pct[tier] / 100)
    3. after condition       = age_adjusted - condition deduction
    4. accessory deduction   = sum of flat deductions for missing accessories
    5. final                 = max(0, after condition - accessory deduction)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Tuple

from app.core.utils import TWOPLACES, ZERO, to_money
from app.features.catalog.models import PricingRecord
from app.features.catalog.types import Accessory, AgeBracket, ConditionTier

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AccessoryDeclaration:
    has_charger: bool = True
    has_box: bool = True
    has_bill: bool = True

    def missing(self) -> Tuple[Accessory, ...]:
        out = []
        if not self.has_charger:
            out.append(Accessory.CHARGER)
        if not self.has_box:
            out.append(Accessory.BOX)
        if not self.has_bill:
            out.append(Accessory.BILL)
        return tuple(out)


@dataclass(frozen=True)
class ValuationResult:
    final_price: float
    age_adjusted_price: float
    condition_deduction_amount: float
    accessory_deduction_amount: float

    # Context needed to explain the number later.
    price_after_condition: float
    condition_deduction_pct: float
    age_bracket: AgeBracket
    tier: ConditionTier
    missing_accessories: Tuple[Accessory, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["age_bracket"] = self.age_bracket.value
        d["tier"] = self.tier.value
        d["missing_accessories"] = [a.value for a in self.missing_accessories]
        return d


def clamp_pct(pct: Any) -> Decimal:
    """Percent as Decimal clamped to [0, 100]; junk counts as 0."""
    d = to_money(pct)
    if d < ZERO:
        return ZERO
    if d > _HUNDRED:
        return _HUNDRED
    return d


def _non_negative(x: Any) -> Decimal:
    d = to_money(x)
    return d if d > ZERO else ZERO


def compute_final_price(
    pricing: PricingRecord,
    age_bracket: AgeBracket,
    tier: ConditionTier,
    accessories: AccessoryDeclaration,
) -> ValuationResult:
    age_bracket = AgeBracket(age_bracket)
    tier = ConditionTier(tier)
    missing = accessories.missing()
    pct = clamp_pct(pricing.condition_deduction_pct.for_tier(tier))

    raw_age_price = pricing.age_price(age_bracket)
    age_adjusted = _non_negative(raw_age_price) if raw_age_price is not None else ZERO

    # No age-tier price means nothing to pay out, whatever the condition.
    if age_adjusted == ZERO:
        return ValuationResult(
            final_price=0.0,
            age_adjusted_price=0.0,
            condition_deduction_amount=0.0,
            accessory_deduction_amount=0.0,
            price_after_condition=0.0,
            condition_deduction_pct=float(pct),
            age_bracket=age_bracket,
            tier=tier,
            missing_accessories=missing,
        )

    condition_deduction = (age_adjusted * pct / _HUNDRED).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    after_condition = age_adjusted - condition_deduction

    accessory_deduction = ZERO
    for accessory in missing:
        accessory_deduction += _non_negative(pricing.accessory_deductions.for_accessory(accessory))

    final = after_condition - accessory_deduction
    if final < ZERO:
        final = ZERO

    return ValuationResult(
        final_price=float(final.quantize(TWOPLACES, rounding=ROUND_HALF_UP)),
        age_adjusted_price=float(age_adjusted),
        condition_deduction_amount=float(condition_deduction),
        accessory_deduction_amount=float(accessory_deduction),
        price_after_condition=float(after_condition),
        condition_deduction_pct=float(pct),
        age_bracket=age_bracket,
        tier=tier,
        missing_accessories=missing,
    )
