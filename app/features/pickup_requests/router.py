from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.admins.dependencies import get_actor_id
from app.features.pickup_requests.schemas import PickupRequestCreate, PickupRequestRead, PickupStatusUpdate
from app.features.pickup_requests.service import (
    change_status,
    create_pickup_request,
    get_pickup_request,
    list_pickup_requests,
)
from app.features.pickup_requests.types import PickupStatus

router = APIRouter(prefix="/pickup-requests", tags=["pickup-requests"])


@router.post("", response_model=PickupRequestRead, status_code=201)
async def create_pickup_request_endpoint(payload: PickupRequestCreate, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await create_pickup_request(db, payload)


@router.get("", response_model=list[PickupRequestRead])
async def list_pickup_requests_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    status: Optional[PickupStatus] = Query(None),
    user_phone: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=5000),
):
    return await list_pickup_requests(db, status=status, user_phone=user_phone, limit=limit)


@router.get("/{request_id}", response_model=PickupRequestRead)
async def get_pickup_request_endpoint(request_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_pickup_request(db, request_id)


@router.patch("/{request_id}/status", response_model=PickupRequestRead)
async def change_status_endpoint(
    request_id: str,
    payload: PickupStatusUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await change_status(db, request_id, payload.status, actor_id=actor_id)
