"""
AdminsRepo: CRUD for the admin_users collection.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.errors import ConflictError
from app.core.utils import new_id, utc_now


class AdminsRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db["admin_users"]

    async def create(self, *, username: str, email: str, role: str) -> Dict[str, Any]:
        doc = {
            "id": new_id(),
            "username": username,
            "email": email,
            "role": role,
            "is_active": True,
            "created_at": utc_now(),
            "last_login": None,
        }
        try:
            await self._col.insert_one(doc)
        except DuplicateKeyError as exc:
            raise ConflictError(code="admin_exists", message="Admin with this email already exists") from exc

        doc.pop("_id", None)
        return doc

    async def get(self, admin_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"id": admin_id}, {"_id": 0})

    async def list(self, limit: int = 100) -> list[Dict[str, Any]]:
        cursor = self._col.find({}, {"_id": 0}).limit(int(limit))
        return [doc async for doc in cursor]

    async def delete(self, admin_id: str) -> bool:
        res = await self._col.delete_one({"id": admin_id})
        return res.deleted_count == 1
