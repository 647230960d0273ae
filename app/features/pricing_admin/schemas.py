from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.features.catalog.schemas import (
    AccessoryDeductionsRead,
    ConditionDeductionPctRead,
    InvariantViolationRead,
    PricingRecordRead,
)
from app.features.catalog.types import AgeBracket


class DeductionParamsUpdate(BaseModel):
    """PATCH body for one variant's pricing record.

    Patch semantics are handled in the service via `exclude_unset=True`:
      - omit field => no change
      - explicit null on a deduction => clear the override (global default applies)
      - explicit null on an age tier price => rejected (every bracket needs a price)

    Range checks live in the service so one response lists every bad field.
    """
    good: Optional[float] = None
    average: Optional[float] = None
    below_average: Optional[float] = None

    charger: Optional[float] = None
    box: Optional[float] = None
    bill: Optional[float] = None

    age_tier_prices: Optional[Dict[AgeBracket, Optional[float]]] = None


class PricingUpdateResponse(BaseModel):
    pricing: PricingRecordRead
    changed: bool
    audit_id: Optional[str] = None
    warnings: List[InvariantViolationRead] = Field(default_factory=list)


class GlobalDefaultsUpdate(BaseModel):
    """PATCH body for system-wide default deductions. Omitted fields are unchanged."""
    good: Optional[float] = None
    average: Optional[float] = None
    below_average: Optional[float] = None

    charger: Optional[float] = None
    box: Optional[float] = None
    bill: Optional[float] = None


class GlobalDefaultsRead(BaseModel):
    accessory_deductions: AccessoryDeductionsRead
    condition_deduction_pct: ConditionDeductionPctRead
    sources: Dict[str, str] = Field(default_factory=dict)


class GlobalDefaultsUpdateResponse(BaseModel):
    defaults: GlobalDefaultsRead
    changed: bool
    audit_id: Optional[str] = None
    warnings: List[InvariantViolationRead] = Field(default_factory=list)
