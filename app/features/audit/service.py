from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.utils import new_id, utc_now
from app.features.audit.repo import AuditRepo
from app.features.audit.schemas import AuditRecordRead
from app.features.audit.types import AuditAction

logger = logging.getLogger(__name__)


def _flatten(d: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in d.items():
        key = f"{prefix}{k}"
        if isinstance(v, Mapping):
            out.update(_flatten(v, prefix=f"{key}."))
        else:
            out[key] = v
    return out


def _unflatten(flat: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for path, v in flat.items():
        cur = out
        parts = path.split(".")
        for p in parts[:-1]:
            cur = cur.setdefault(p, {})
        cur[parts[-1]] = v
    return out


def diff_snapshots(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Reduce two snapshots to the fields that actually changed.

    Nested dicts are compared leaf by leaf, so changing only
    condition_deduction_pct.average yields
      ({"condition_deduction_pct": {"average": 10}}, {"condition_deduction_pct": {"average": 15}})
    """
    fb = _flatten(before)
    fa = _flatten(after)

    changed = sorted(k for k in set(fb) | set(fa) if fb.get(k) != fa.get(k))
    return (
        _unflatten({k: fb.get(k) for k in changed}),
        _unflatten({k: fa.get(k) for k in changed}),
    )


async def record_audit(
    db: AsyncIOMotorDatabase,
    *,
    actor_id: Optional[str],
    action: AuditAction,
    entity_table: str,
    entity_id: Optional[str],
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    doc = {
        "id": new_id(),
        "actor_id": actor_id,
        "action": AuditAction(action).value,
        "entity_table": entity_table,
        "entity_id": entity_id,
        "before": before,
        "after": after,
        "created_at": utc_now(),
    }
    out = await AuditRepo(db).insert(doc)
    logger.info(
        "audit:%s table=%s entity_id=%s actor_id=%s audit_id=%s",
        doc["action"],
        entity_table,
        entity_id,
        actor_id,
        doc["id"],
    )
    return out


async def list_audit_logs(
    db: AsyncIOMotorDatabase,
    *,
    entity_table: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    actor_id: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: int = 100,
) -> List[AuditRecordRead]:
    docs = await AuditRepo(db).list(
        entity_table=entity_table,
        entity_id=entity_id,
        action=action.value if action is not None else None,
        actor_id=actor_id,
        since=since,
        limit=limit,
    )
    return [AuditRecordRead(**d) for d in docs]
