from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.admins.dependencies import get_actor_id
from app.features.pricing_admin.schemas import (
    DeductionParamsUpdate,
    GlobalDefaultsRead,
    GlobalDefaultsUpdate,
    GlobalDefaultsUpdateResponse,
    PricingUpdateResponse,
)
from app.features.pricing_admin.service import get_global_defaults, update_deduction_params, update_global_defaults

router = APIRouter(prefix="/admin/pricing", tags=["admin:pricing"])


# Declared before /{variant_id} so "defaults" is not captured as a variant id.
@router.get("/defaults", response_model=GlobalDefaultsRead)
async def get_defaults_endpoint(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_global_defaults(db)


@router.patch("/defaults", response_model=GlobalDefaultsUpdateResponse)
async def patch_defaults_endpoint(
    payload: GlobalDefaultsUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await update_global_defaults(db, payload, actor_id=actor_id)


@router.patch("/{variant_id}", response_model=PricingUpdateResponse)
async def patch_deduction_params_endpoint(
    variant_id: str,
    payload: DeductionParamsUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await update_deduction_params(db, variant_id, payload, actor_id=actor_id)
