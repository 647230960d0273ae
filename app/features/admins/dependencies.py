from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.admins.service import resolve_actor


async def get_actor_id(
    x_admin_id: Optional[str] = Header(None, alias="X-Admin-Id"),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Optional[str]:
    return await resolve_actor(db, x_admin_id)
