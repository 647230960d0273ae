"""
Admin service: identity CRUD + actor resolution for audited endpoints.
"""

from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.errors import ForbiddenError, NotFoundError
from app.features.admins.repo import AdminsRepo
from app.features.admins.schemas import AdminCreate, AdminRead
from app.features.audit.repo import AuditRepo
from app.features.audit.service import record_audit
from app.features.audit.types import AuditAction
from app.features.catalog.settings_repo import SystemSettingsRepo

logger = logging.getLogger(__name__)


async def create_admin(db: AsyncIOMotorDatabase, data: AdminCreate, *, actor_id: Optional[str]) -> AdminRead:
    repo = AdminsRepo(db)

    logger.info("create_admin:start username=%s", data.username)
    doc = await repo.create(username=data.username, email=str(data.email), role=data.role)

    await record_audit(
        db,
        actor_id=actor_id,
        action=AuditAction.CREATE,
        entity_table="admin_users",
        entity_id=doc["id"],
        after={"username": doc["username"], "email": doc["email"], "role": doc["role"]},
    )
    logger.info("create_admin:done admin_id=%s", doc["id"])
    return AdminRead(**doc)


async def list_admins(db: AsyncIOMotorDatabase, limit: int = 100) -> list[AdminRead]:
    docs = await AdminsRepo(db).list(limit=limit)
    return [AdminRead(**d) for d in docs]


async def get_admin(db: AsyncIOMotorDatabase, admin_id: str) -> AdminRead:
    doc = await AdminsRepo(db).get(admin_id)
    if not doc:
        raise NotFoundError(code="admin_not_found", message="Admin not found", details={"admin_id": admin_id})
    return AdminRead(**doc)


async def delete_admin(db: AsyncIOMotorDatabase, admin_id: str, *, actor_id: Optional[str]) -> None:
    repo = AdminsRepo(db)

    doc = await repo.get(admin_id)
    if not doc:
        raise NotFoundError(code="admin_not_found", message="Admin not found", details={"admin_id": admin_id})

    await repo.delete(admin_id)

    # History stays; only references to the deleted identity are cleared.
    detached = await AuditRepo(db).detach_actor(admin_id)
    settings_detached = await SystemSettingsRepo(db).detach_updater(admin_id)

    await record_audit(
        db,
        actor_id=None if actor_id == admin_id else actor_id,
        action=AuditAction.DELETE,
        entity_table="admin_users",
        entity_id=admin_id,
        before={"username": doc.get("username"), "email": doc.get("email"), "role": doc.get("role")},
    )
    logger.info(
        "delete_admin:done admin_id=%s audit_entries_detached=%s settings_detached=%s",
        admin_id,
        detached,
        settings_detached,
    )


async def resolve_actor(db: AsyncIOMotorDatabase, actor_id: Optional[str]) -> Optional[str]:
    """
    Validate the acting admin id sent by the caller.

    None is allowed (system / unattributed calls). A provided id must belong to
    an active admin so every audit entry points at a real identity.
    """
    if actor_id is None:
        return None
    aid = actor_id.strip()
    if not aid:
        return None

    doc = await AdminsRepo(db).get(aid)
    if not doc or not doc.get("is_active", True):
        raise ForbiddenError(code="unknown_actor", message="Unknown or inactive admin", details={"actor_id": aid})
    return aid
