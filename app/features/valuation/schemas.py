from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from app.features.catalog.types import Accessory, AgeBracket, ConditionTier, DeviceCondition
from app.features.valuation.classifier import ConditionAssessment
from app.features.valuation.engine import AccessoryDeclaration, ValuationResult


class ConditionSignals(BaseModel):
    """Raw checklist answers; classified into a ConditionTier server-side."""
    powers_on: bool = True
    display_condition: DeviceCondition
    body_condition: DeviceCondition
    touch_working: bool = True
    screen_original: bool = True
    battery_healthy: bool = True
    can_make_calls: bool = True

    def to_assessment(self) -> ConditionAssessment:
        return ConditionAssessment(**self.model_dump())


class AccessoriesIn(BaseModel):
    has_charger: bool = False
    has_box: bool = False
    has_bill: bool = False

    def to_declaration(self) -> AccessoryDeclaration:
        return AccessoryDeclaration(**self.model_dump())


class ConditionInput(BaseModel):
    """
    Condition can be given three ways; precedence when several are present:
    condition_signals > tier > condition.
    """
    condition_signals: Optional[ConditionSignals] = None
    tier: Optional[ConditionTier] = None
    condition: Optional[DeviceCondition] = None


class QuoteRequest(ConditionInput):
    variant_id: str
    age_bracket: AgeBracket
    accessories: AccessoriesIn = Field(default_factory=AccessoriesIn)


class ValuationBreakdown(BaseModel):
    final_price: float
    age_adjusted_price: float
    condition_deduction_amount: float
    accessory_deduction_amount: float
    price_after_condition: float
    condition_deduction_pct: float
    age_bracket: AgeBracket
    tier: ConditionTier
    missing_accessories: List[Accessory] = []

    @classmethod
    def from_result(cls, result: ValuationResult) -> "ValuationBreakdown":
        return cls(**result.to_dict())


class QuoteResponse(BaseModel):
    variant_id: str
    pricing_version: int
    currency: str
    tier_source: str
    breakdown: ValuationBreakdown
