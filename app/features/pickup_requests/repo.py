from __future__ import annotations

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.utils import utc_now

PICKUP_REQUESTS_COL = "pickup_requests"


class PickupRequestsRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[PICKUP_REQUESTS_COL]

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        await self._col.insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"id": request_id}, {"_id": 0})

    async def list(
        self,
        *,
        status: Optional[str] = None,
        user_phone: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {}
        if status is not None:
            q["status"] = status
        if user_phone is not None:
            q["user_phone"] = user_phone

        cursor = self._col.find(q, {"_id": 0}).sort([("created_at", -1)]).limit(int(limit))
        return [doc async for doc in cursor]

    async def set_status(self, *, request_id: str, expected_status: str, new_status: str) -> Optional[Dict[str, Any]]:
        """
        Only `status` / `updated_at` are ever modified after insert.
        Price fields are frozen at submission time.
        """
        doc = await self._col.find_one_and_update(
            {"id": request_id, "status": expected_status},
            {"$set": {"status": new_status, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            doc.pop("_id", None)
        return doc
