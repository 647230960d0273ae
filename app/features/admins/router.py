"""
/admins endpoints: admin identity used to attribute audited changes.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.admins.dependencies import get_actor_id
from app.features.admins.schemas import AdminCreate, AdminRead
from app.features.admins.service import create_admin, delete_admin, get_admin, list_admins

router = APIRouter(prefix="/admins", tags=["admins"])


@router.post("", response_model=AdminRead, status_code=201)
async def create_admin_endpoint(
    payload: AdminCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    return await create_admin(db, payload, actor_id=actor_id)


@router.get("", response_model=list[AdminRead])
async def list_admins_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    limit: int = Query(100, ge=1, le=1000),
):
    return await list_admins(db, limit=limit)


@router.get("/{admin_id}", response_model=AdminRead)
async def get_admin_endpoint(admin_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_admin(db, admin_id)


@router.delete("/{admin_id}")
async def delete_admin_endpoint(
    admin_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    await delete_admin(db, admin_id, actor_id=actor_id)
    return {"ok": True}
