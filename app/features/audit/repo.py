"""
AuditRepo: append-only access to the audit_logs collection.

There is deliberately no update/delete method for entries. The only write
besides insert is `detach_actor`, which mirrors a nullable foreign key:
when an admin is deleted their entries stay, with actor_id set to null.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

AUDIT_LOGS_COL = "audit_logs"


class AuditRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[AUDIT_LOGS_COL]

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        await self._col.insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def list(
        self,
        *,
        entity_table: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        actor_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {}
        if entity_table is not None:
            q["entity_table"] = entity_table
        if entity_id is not None:
            q["entity_id"] = entity_id
        if action is not None:
            q["action"] = action
        if actor_id is not None:
            q["actor_id"] = actor_id
        if since is not None:
            q["created_at"] = {"$gte": since}

        cursor = self._col.find(q, {"_id": 0}).sort([("created_at", -1)]).limit(int(limit))
        return [doc async for doc in cursor]

    async def detach_actor(self, actor_id: str) -> int:
        res = await self._col.update_many({"actor_id": actor_id}, {"$set": {"actor_id": None}})
        return int(res.modified_count)
