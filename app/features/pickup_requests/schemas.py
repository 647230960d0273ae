from __future__ import annotations

from datetime import datetime
from typing import Optional, Annotated

from pydantic import BaseModel, Field

from app.features.catalog.types import AgeBracket, ConditionTier, DeviceCondition
from app.features.pickup_requests.types import PickupStatus
from app.features.valuation.schemas import AccessoriesIn, ConditionInput, ConditionSignals, ValuationBreakdown


class PickupRequestCreate(ConditionInput):
    """
    Customer submission. The price is computed server-side and frozen on the
    stored record; clients never send a price.
    """
    user_phone: Annotated[str, Field(min_length=7, max_length=20)]
    customer_name: Annotated[str, Field(min_length=1, max_length=128)]
    city: Optional[str] = None
    address: Optional[str] = None
    pincode: Optional[str] = None

    variant_id: str
    age_bracket: AgeBracket
    accessories: AccessoriesIn = Field(default_factory=AccessoriesIn)


class PickupRequestRead(BaseModel):
    id: str
    user_phone: str
    customer_name: str
    city: Optional[str] = None
    address: Optional[str] = None
    pincode: Optional[str] = None

    device_id: str
    variant_id: str
    age_bracket: AgeBracket

    condition: Optional[DeviceCondition] = None
    condition_signals: Optional[ConditionSignals] = None
    tier: ConditionTier
    tier_source: str
    accessories: AccessoriesIn

    final_price: float
    currency: str
    pricing_version: int
    breakdown: ValuationBreakdown

    status: PickupStatus
    created_at: datetime
    updated_at: datetime


class PickupStatusUpdate(BaseModel):
    status: PickupStatus
