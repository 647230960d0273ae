# app/features/catalog/settings_repo.py

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.utils import utc_now

SYSTEM_SETTINGS_COL = "system_settings"


class SystemSettingsRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[SYSTEM_SETTINGS_COL]

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        cursor = self._col.find({"key": {"$in": list(keys)}}, {"_id": 0})
        return {doc["key"]: doc async for doc in cursor}

    async def upsert(
        self,
        *,
        key: str,
        value: Any,
        description: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upsert one setting.

        Rules:
        - description is only written when provided (keeps the seeded text)
        - updated_at / updated_by are set on every write
        """
        fields: Dict[str, Any] = {"key": key, "value": value, "updated_at": utc_now(), "updated_by": updated_by}
        if description is not None:
            fields["description"] = description

        out = await self._col.find_one_and_update(
            {"key": key},
            {"$set": fields},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        out.pop("_id", None)
        return out

    async def replace(self, doc: Dict[str, Any]) -> None:
        """Write back a previously read setting as-is."""
        doc = {k: v for k, v in doc.items() if k != "_id"}
        await self._col.replace_one({"key": doc["key"]}, doc, upsert=True)

    async def delete(self, key: str) -> bool:
        res = await self._col.delete_one({"key": key})
        return res.deleted_count == 1

    async def detach_updater(self, admin_id: str) -> int:
        res = await self._col.update_many({"updated_by": admin_id}, {"$set": {"updated_by": None}})
        return int(res.modified_count)
