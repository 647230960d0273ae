"""
Catalog persistence: brands -> devices -> variants -> pricing_records.

Entities are normalized and linked by id (brand_id, device_id, variant_id);
no entity embeds its children.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.utils import utc_now

BRANDS_COL = "brands"
DEVICES_COL = "devices"
VARIANTS_COL = "variants"
PRICING_RECORDS_COL = "pricing_records"


class CatalogRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._brands = db[BRANDS_COL]
        self._devices = db[DEVICES_COL]
        self._variants = db[VARIANTS_COL]

    # ---- brands ----

    async def insert_brand(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        await self._brands.insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def get_brand(self, brand_id: str) -> Optional[Dict[str, Any]]:
        return await self._brands.find_one({"id": brand_id}, {"_id": 0})

    async def list_brands(self, *, category: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {}
        if category is not None:
            q["category"] = category
        if active_only:
            q["is_active"] = True
        cursor = self._brands.find(q, {"_id": 0}).sort([("display_order", 1), ("name", 1)])
        return [doc async for doc in cursor]

    async def delete_brand(self, brand_id: str) -> bool:
        res = await self._brands.delete_one({"id": brand_id})
        return res.deleted_count == 1

    # ---- devices ----

    async def insert_device(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        await self._devices.insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def get_device(self, device_id: str) -> Optional[Dict[str, Any]]:
        return await self._devices.find_one({"id": device_id}, {"_id": 0})

    async def list_devices(self, *, brand_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {"brand_id": brand_id}
        if active_only:
            q["is_active"] = True
        cursor = self._devices.find(q, {"_id": 0}).sort([("model_name", 1)])
        return [doc async for doc in cursor]

    async def device_ids_for_brand(self, brand_id: str) -> List[str]:
        cursor = self._devices.find({"brand_id": brand_id}, {"_id": 0, "id": 1})
        return [doc["id"] async for doc in cursor]

    async def delete_devices(self, device_ids: List[str]) -> int:
        if not device_ids:
            return 0
        res = await self._devices.delete_many({"id": {"$in": list(device_ids)}})
        return int(res.deleted_count)

    # ---- variants ----

    async def insert_variant(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        await self._variants.insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def get_variant(self, variant_id: str) -> Optional[Dict[str, Any]]:
        return await self._variants.find_one({"id": variant_id}, {"_id": 0})

    async def list_variants(self, *, device_id: str) -> List[Dict[str, Any]]:
        cursor = self._variants.find({"device_id": device_id}, {"_id": 0}).sort([("storage_gb", 1)])
        return [doc async for doc in cursor]

    async def variant_ids_for_devices(self, device_ids: List[str]) -> List[str]:
        if not device_ids:
            return []
        cursor = self._variants.find({"device_id": {"$in": list(device_ids)}}, {"_id": 0, "id": 1})
        return [doc["id"] async for doc in cursor]

    async def delete_variants(self, variant_ids: List[str]) -> int:
        if not variant_ids:
            return 0
        res = await self._variants.delete_many({"id": {"$in": list(variant_ids)}})
        return int(res.deleted_count)


class PricingRecordsRepo:
    """
    One pricing record per variant.

    Every write bumps `version`; writers pass the version they read so two
    concurrent admin edits can never interleave field groups.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[PRICING_RECORDS_COL]

    async def get(self, variant_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"variant_id": variant_id}, {"_id": 0})

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        doc = dict(doc)
        doc.setdefault("version", 1)
        doc.setdefault("created_at", now)
        doc.setdefault("updated_at", now)
        await self._col.insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def compare_and_set(
        self,
        *,
        variant_id: str,
        expected_version: int,
        set_fields: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """
        Apply `set_fields` only if the stored version still equals
        `expected_version`. Returns the updated doc, or None when another
        writer got there first (or the record is gone).
        """
        update = {
            "$set": {**set_fields, "updated_at": utc_now()},
            "$inc": {"version": 1},
        }
        doc = await self._col.find_one_and_update(
            {"variant_id": variant_id, "version": int(expected_version)},
            update,
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            doc.pop("_id", None)
        return doc

    async def delete_for_variants(self, variant_ids: List[str]) -> int:
        if not variant_ids:
            return 0
        res = await self._col.delete_many({"variant_id": {"$in": list(variant_ids)}})
        return int(res.deleted_count)
