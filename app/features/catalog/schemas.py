from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional, Annotated

from pydantic import BaseModel, Field

from .types import AgeBracket, DeviceCategory

Money = Annotated[float, Field(ge=0.0)]


# -----------------------------
# Brands / devices / variants
# -----------------------------


class BrandCreate(BaseModel):
    category: DeviceCategory
    name: Annotated[str, Field(min_length=1, max_length=64)]
    logo_url: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    display_order: int = 0


class BrandRead(BrandCreate):
    id: str
    created_at: datetime


class DeviceCreate(BaseModel):
    brand_id: str
    model_name: Annotated[str, Field(min_length=1, max_length=128)]
    series: Optional[str] = None
    release_date: Optional[date] = None
    image_url: Optional[str] = None
    is_active: bool = True


class DeviceRead(DeviceCreate):
    id: str
    created_at: datetime


class AccessoryDeductionsIn(BaseModel):
    """Per-variant flat deductions. Omitted/null => global default applies."""
    charger: Optional[float] = None
    box: Optional[float] = None
    bill: Optional[float] = None


class ConditionDeductionPctIn(BaseModel):
    """Per-variant percentage deductions. Omitted/null => global default applies."""
    good: Optional[float] = None
    average: Optional[float] = None
    below_average: Optional[float] = None


class VariantCreate(BaseModel):
    """
    A variant is created together with its pricing record.

    Range checks on the deduction fields happen in the service so that every
    bad field is reported in one validation_error.
    """
    device_id: str
    storage_gb: int = Field(ge=1)
    base_price: Money
    age_tier_prices: Dict[AgeBracket, float]
    accessory_deductions: Optional[AccessoryDeductionsIn] = None
    condition_deduction_pct: Optional[ConditionDeductionPctIn] = None


class VariantRead(BaseModel):
    id: str
    device_id: str
    storage_gb: int
    base_price: float
    created_at: datetime


# -----------------------------
# Pricing (resolved view)
# -----------------------------


class AccessoryDeductionsRead(BaseModel):
    charger: float
    box: float
    bill: float


class ConditionDeductionPctRead(BaseModel):
    good: float
    average: float
    below_average: float


class PricingRecordRead(BaseModel):
    variant_id: str
    base_price: float
    age_tier_prices: Dict[AgeBracket, Optional[float]]
    accessory_deductions: AccessoryDeductionsRead
    condition_deduction_pct: ConditionDeductionPctRead
    version: int
    sources: Dict[str, str] = Field(
        default_factory=dict,
        description='Where each deduction came from: "variant", "global" or "builtin".',
    )


class InvariantViolationRead(BaseModel):
    code: str
    field: str
    message: str


class VariantCreateResponse(BaseModel):
    variant: VariantRead
    pricing: PricingRecordRead
    warnings: List[InvariantViolationRead] = Field(default_factory=list)


class CascadeDeleteResponse(BaseModel):
    ok: bool = True
    brands_deleted: int = 0
    devices_deleted: int = 0
    variants_deleted: int = 0
    pricing_records_deleted: int = 0
