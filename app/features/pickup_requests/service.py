"""
RequestIntake: customer submissions become pickup requests with a frozen price.

resolve pricing -> classify condition -> compute valuation -> persist.

The stored final_price / breakdown are never recomputed; later admin edits to
the pricing record do not touch existing requests.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import config
from app.core.errors import ConflictError, NotFoundError, ValidationFailedError
from app.core.utils import new_id, utc_now
from app.features.audit.service import record_audit
from app.features.audit.types import AuditAction
from app.features.catalog.repo import CatalogRepo
from app.features.pickup_requests.repo import PICKUP_REQUESTS_COL, PickupRequestsRepo
from app.features.pickup_requests.schemas import PickupRequestCreate, PickupRequestRead
from app.features.pickup_requests.types import TERMINAL_STATUSES, PickupStatus
from app.features.valuation.service import tier_for, value_device

logger = logging.getLogger(__name__)

_PHONE_JUNK_RE = re.compile(r"[\s\-().]")
_PHONE_RE = re.compile(r"^\+?\d{7,15}$")


def normalize_phone(raw: str) -> str:
    """Strip separators; keep an optional leading '+'. Raises on anything else."""
    s = _PHONE_JUNK_RE.sub("", str(raw or "").strip())
    if not _PHONE_RE.match(s):
        raise ValidationFailedError(
            errors=[{"field": "user_phone", "reason": "must be 7-15 digits, optional leading +", "value": raw}]
        )
    return s


async def create_pickup_request(db: AsyncIOMotorDatabase, payload: PickupRequestCreate) -> PickupRequestRead:
    phone = normalize_phone(payload.user_phone)

    variant = await CatalogRepo(db).get_variant(payload.variant_id)
    if not variant:
        raise NotFoundError(
            code="variant_not_found",
            message="Variant not found",
            details={"variant_id": payload.variant_id},
        )

    tier, tier_source = tier_for(payload)
    pricing, result = await value_device(
        db,
        variant_id=payload.variant_id,
        age_bracket=payload.age_bracket,
        tier=tier,
        accessories=payload.accessories.to_declaration(),
    )

    now = utc_now()
    doc = {
        "id": new_id(),
        "user_phone": phone,
        "customer_name": payload.customer_name,
        "city": payload.city,
        "address": payload.address,
        "pincode": payload.pincode,
        "device_id": variant["device_id"],
        "variant_id": payload.variant_id,
        "age_bracket": payload.age_bracket.value,
        "condition": payload.condition.value if payload.condition else None,
        "condition_signals": payload.condition_signals.model_dump(mode="json") if payload.condition_signals else None,
        "tier": tier.value,
        "tier_source": tier_source,
        "accessories": payload.accessories.model_dump(),
        # Frozen at submission time.
        "final_price": result.final_price,
        "currency": config.currency,
        "pricing_version": pricing.version,
        "breakdown": result.to_dict(),
        "status": PickupStatus.PENDING.value,
        "created_at": now,
        "updated_at": now,
    }
    doc = await PickupRequestsRepo(db).insert(doc)

    logger.info(
        "pickup_request:created id=%s variant_id=%s tier=%s final_price=%s",
        doc["id"],
        payload.variant_id,
        tier.value,
        result.final_price,
    )
    return PickupRequestRead(**doc)


async def get_pickup_request(db: AsyncIOMotorDatabase, request_id: str) -> PickupRequestRead:
    doc = await PickupRequestsRepo(db).get(request_id)
    if not doc:
        raise NotFoundError(
            code="pickup_request_not_found",
            message="Pickup request not found",
            details={"request_id": request_id},
        )
    return PickupRequestRead(**doc)


async def list_pickup_requests(
    db: AsyncIOMotorDatabase,
    *,
    status: Optional[PickupStatus] = None,
    user_phone: Optional[str] = None,
    limit: int = 100,
) -> List[PickupRequestRead]:
    phone = normalize_phone(user_phone) if user_phone is not None else None
    docs = await PickupRequestsRepo(db).list(
        status=status.value if status is not None else None,
        user_phone=phone,
        limit=limit,
    )
    return [PickupRequestRead(**d) for d in docs]


async def change_status(
    db: AsyncIOMotorDatabase,
    request_id: str,
    new_status: PickupStatus,
    *,
    actor_id: Optional[str],
) -> PickupRequestRead:
    repo = PickupRequestsRepo(db)

    current = await repo.get(request_id)
    if not current:
        raise NotFoundError(
            code="pickup_request_not_found",
            message="Pickup request not found",
            details={"request_id": request_id},
        )

    old_status = PickupStatus(current["status"])
    if old_status == new_status:
        return PickupRequestRead(**current)

    if old_status in TERMINAL_STATUSES:
        raise ConflictError(
            code="status_final",
            message=f"Pickup request is already {old_status.value}",
            details={"request_id": request_id, "status": old_status.value},
        )

    updated = await repo.set_status(request_id=request_id, expected_status=old_status.value, new_status=new_status.value)
    if updated is None:
        raise ConflictError(
            code="status_changed_concurrently",
            message="Pickup request status changed during this update; reload and retry",
            details={"request_id": request_id},
        )

    await record_audit(
        db,
        actor_id=actor_id,
        action=AuditAction.STATUS_CHANGE,
        entity_table=PICKUP_REQUESTS_COL,
        entity_id=request_id,
        before={"status": old_status.value},
        after={"status": new_status.value},
    )
    logger.info("pickup_request:status id=%s %s->%s", request_id, old_status.value, new_status.value)
    return PickupRequestRead(**updated)
