from __future__ import annotations

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.features.valuation.schemas import QuoteRequest, QuoteResponse
from app.features.valuation.service import quote

router = APIRouter(prefix="/valuation", tags=["valuation"])


@router.post("/quote", response_model=QuoteResponse)
async def quote_endpoint(payload: QuoteRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Price a device without storing anything."""
    return await quote(db, payload)
