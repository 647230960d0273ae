# app/db/mongo.py
"""
MongoDB connection + FastAPI dependency.

- Connects once at app startup (lifespan) with bounded timeouts.
- Stores db on app.state.db
- Creates required indexes in an idempotent way.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timezone

from fastapi import FastAPI, Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from app.core.config import config

logger = logging.getLogger(__name__)


async def _ensure_index(col, keys, **kwargs) -> None:
    """
    Create an index if it doesn't exist.

    If an index with the same keys already exists under a different name,
    Mongo raises code=85 (IndexOptionsConflict). In that case we keep the
    existing index and continue.
    """
    try:
        await col.create_index(keys, **kwargs)
    except OperationFailure as e:
        if getattr(e, "code", None) == 85:
            logger.warning(
                "Index conflict on %s keys=%s name=%s; keeping existing index",
                col.name,
                keys,
                kwargs.get("name"),
            )
            return
        raise


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    # ---- Catalog ----
    await _ensure_index(db["brands"], [("id", 1)], unique=True, name="uniq_brands_id")
    await _ensure_index(db["devices"], [("id", 1)], unique=True, name="uniq_devices_id")
    await _ensure_index(db["devices"], [("brand_id", 1)], unique=False, name="idx_devices_brand_id")
    await _ensure_index(db["variants"], [("id", 1)], unique=True, name="uniq_variants_id")
    await _ensure_index(db["variants"], [("device_id", 1)], unique=False, name="idx_variants_device_id")

    # One pricing record per variant
    await _ensure_index(
        db["pricing_records"],
        [("variant_id", 1)],
        unique=True,
        name="uniq_pricing_records_variant_id",
    )

    await _ensure_index(db["system_settings"], [("key", 1)], unique=True, name="uniq_system_settings_key")

    # ---- Pickup requests ----
    await _ensure_index(db["pickup_requests"], [("id", 1)], unique=True, name="uniq_pickup_requests_id")
    await _ensure_index(db["pickup_requests"], [("status", 1)], unique=False, name="idx_pickup_requests_status")
    await _ensure_index(
        db["pickup_requests"],
        [("created_at", -1)],
        unique=False,
        name="idx_pickup_requests_created_at",
    )

    # ---- Admins + audit ----
    await _ensure_index(db["admin_users"], [("id", 1)], unique=True, name="uniq_admin_users_id")
    await _ensure_index(db["admin_users"], [("email", 1)], unique=True, name="uniq_admin_users_email")

    await _ensure_index(db["audit_logs"], [("actor_id", 1)], unique=False, name="idx_audit_logs_actor_id")
    await _ensure_index(db["audit_logs"], [("created_at", -1)], unique=False, name="idx_audit_logs_created_at")
    await _ensure_index(db["audit_logs"], [("action", 1)], unique=False, name="idx_audit_logs_action")
    await _ensure_index(
        db["audit_logs"],
        [("entity_table", 1), ("entity_id", 1), ("created_at", -1)],
        unique=False,
        name="idx_audit_logs_entity",
    )


@asynccontextmanager
async def mongo_lifespan(fastapi_app: FastAPI):
    timeout_ms = int(config.mongo_timeout_ms)
    client = AsyncIOMotorClient(
        config.mongo_uri,
        tz_aware=True,
        tzinfo=timezone.utc,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms,
    )
    db = client[config.mongo_db]

    try:
        # An unreachable server fails startup here.
        await db.command("ping")
        logger.info("Mongo connected: uri=%s db=%s timeout_ms=%s", config.mongo_uri, db.name, timeout_ms)

        state = getattr(fastapi_app, "state")
        setattr(state, "mongo_client", client)
        setattr(state, "db", db)

        await ensure_indexes(db)

        yield
    finally:
        client.close()


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.db
