from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.admins.dependencies import get_actor_id
from app.features.catalog.schemas import (
    BrandCreate,
    BrandRead,
    CascadeDeleteResponse,
    DeviceCreate,
    DeviceRead,
    PricingRecordRead,
    VariantCreate,
    VariantCreateResponse,
    VariantRead,
)
from app.features.catalog.service import (
    create_brand,
    create_device,
    create_variant,
    delete_brand,
    delete_device,
    delete_variant,
    get_resolved_pricing,
    list_brands,
    list_devices,
    list_variants,
)
from app.features.catalog.types import DeviceCategory

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.post("/brands", response_model=BrandRead, status_code=201)
async def create_brand_endpoint(
    payload: BrandCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await create_brand(db, payload, actor_id=actor_id)


@router.get("/brands", response_model=list[BrandRead])
async def list_brands_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    category: Optional[DeviceCategory] = Query(None),
    active_only: bool = Query(False),
):
    return await list_brands(db, category=category.value if category else None, active_only=active_only)


@router.delete("/brands/{brand_id}", response_model=CascadeDeleteResponse)
async def delete_brand_endpoint(
    brand_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await delete_brand(db, brand_id, actor_id=actor_id)


@router.post("/devices", response_model=DeviceRead, status_code=201)
async def create_device_endpoint(
    payload: DeviceCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await create_device(db, payload, actor_id=actor_id)


@router.get("/brands/{brand_id}/devices", response_model=list[DeviceRead])
async def list_devices_endpoint(
    brand_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    active_only: bool = Query(False),
):
    return await list_devices(db, brand_id=brand_id, active_only=active_only)


@router.delete("/devices/{device_id}", response_model=CascadeDeleteResponse)
async def delete_device_endpoint(
    device_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await delete_device(db, device_id, actor_id=actor_id)


@router.post("/variants", response_model=VariantCreateResponse, status_code=201)
async def create_variant_endpoint(
    payload: VariantCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await create_variant(db, payload, actor_id=actor_id)


@router.get("/devices/{device_id}/variants", response_model=list[VariantRead])
async def list_variants_endpoint(device_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await list_variants(db, device_id=device_id)


@router.delete("/variants/{variant_id}", response_model=CascadeDeleteResponse)
async def delete_variant_endpoint(
    variant_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await delete_variant(db, variant_id, actor_id=actor_id)


@router.get("/variants/{variant_id}/pricing", response_model=PricingRecordRead)
async def get_variant_pricing_endpoint(variant_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_resolved_pricing(db, variant_id)
