from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import config
from app.core.errors import register_exception_handlers
from app.core.logging import init_logging
from app.db.mongo import mongo_lifespan
from app.features.admins.router import router as admins_router
from app.features.audit.router import router as audit_router
from app.features.catalog.router import router as catalog_router
from app.features.pickup_requests.router import router as pickup_requests_router
from app.features.pricing_admin.router import router as pricing_admin_router
from app.features.valuation.router import router as valuation_router


# Configure logging ON IMPORT so all subsequent module logs behave correctly.
init_logging(
    root_level="INFO",
    app_level="DEBUG" if config.debug else "INFO",
    third_party_level="WARNING",
)


@asynccontextmanager
async def lifespan(application: FastAPI):
    async with mongo_lifespan(application):
        yield


app = FastAPI(title=config.app_name, lifespan=lifespan)
register_exception_handlers(app)

app.include_router(catalog_router)
app.include_router(valuation_router)
app.include_router(pickup_requests_router)

app.include_router(pricing_admin_router)
app.include_router(audit_router)
app.include_router(admins_router)


@app.get("/health")
async def health():
    return {"ok": True}
