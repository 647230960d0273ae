from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.audit.schemas import AuditRecordRead
from app.features.audit.service import list_audit_logs
from app.features.audit.types import AuditAction

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditRecordRead])
async def list_audit_logs_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    entity_table: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    actor_id: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=5000),
):
    return await list_audit_logs(
        db,
        entity_table=entity_table,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        since=since,
        limit=limit,
    )
