from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import uuid4

import pytest
from mongomock_motor import AsyncMongoMockClient

from app.db.mongo import ensure_indexes
from app.features.catalog.schemas import BrandCreate, DeviceCreate, VariantCreate
from app.features.catalog.service import create_brand, create_device, create_variant

DEFAULT_TIERS = {"0-3": 10000.0, "3-6": 9000.0, "6-11": 8000.0, "12+": 6000.0}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db(anyio_backend):
    client = AsyncMongoMockClient()
    database = client[f"test_valuation_{uuid4().hex}"]
    await ensure_indexes(database)
    yield database


@pytest.fixture
def make_variant(db):
    """Create brand -> device -> variant (+ pricing record); returns the variant id."""

    async def _make(
        *,
        base_price: float = 12000.0,
        age_tier_prices: Optional[Dict[str, float]] = None,
        accessory_deductions: Optional[Dict[str, Any]] = None,
        condition_deduction_pct: Optional[Dict[str, Any]] = None,
    ) -> str:
        brand = await create_brand(db, BrandCreate(category="phone", name="Apple"), actor_id=None)
        device = await create_device(db, DeviceCreate(brand_id=brand.id, model_name="iPhone 13"), actor_id=None)
        resp = await create_variant(
            db,
            VariantCreate(
                device_id=device.id,
                storage_gb=128,
                base_price=base_price,
                age_tier_prices=age_tier_prices if age_tier_prices is not None else DEFAULT_TIERS,
                accessory_deductions=accessory_deductions,
                condition_deduction_pct=condition_deduction_pct,
            ),
            actor_id=None,
        )
        return resp.variant.id

    return _make
