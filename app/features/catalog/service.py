"""
CatalogStore.

Read side: `resolve_pricing(variant_id)` returns a fully populated
PricingRecord. Every deduction field goes through one explicit
override-with-fallback step:

    variant override  ->  system_settings (global)  ->  built-in default

Write side: minimal admin CRUD for brands / devices / variants. A variant is
always created together with its pricing record, and deletes cascade down the
hierarchy (brand -> devices -> variants -> pricing records).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.errors import NotFoundError, ValidationFailedError
from app.core.utils import new_id, to_float, utc_now
from app.features.audit.service import record_audit
from app.features.audit.types import AuditAction
from app.features.catalog.models import (
    BUILTIN_DEFAULTS,
    SETTING_KEYS,
    AccessoryDeductions,
    ConditionDeductionPct,
    DeductionDefaults,
    PricingRecord,
)
from app.features.catalog.repo import (
    BRANDS_COL,
    DEVICES_COL,
    PRICING_RECORDS_COL,
    VARIANTS_COL,
    CatalogRepo,
    PricingRecordsRepo,
)
from app.features.catalog.schemas import (
    AccessoryDeductionsRead,
    BrandCreate,
    BrandRead,
    CascadeDeleteResponse,
    ConditionDeductionPctRead,
    DeviceCreate,
    DeviceRead,
    InvariantViolationRead,
    PricingRecordRead,
    VariantCreate,
    VariantCreateResponse,
    VariantRead,
)
from app.features.catalog.settings_repo import SystemSettingsRepo
from app.features.catalog.types import AgeBracket
from app.features.catalog.validation import check_invariants, validate_deduction_values

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Defaults + fallback resolution
# -----------------------------------------------------------------------------


async def load_global_defaults(db: AsyncIOMotorDatabase) -> Tuple[DeductionDefaults, Dict[str, str]]:
    """
    Merge system_settings over the built-in defaults.

    Returns (defaults, sources) where sources maps "group.field" to
    "global" or "builtin". Unparseable or negative stored values are ignored
    (logged) rather than poisoning every valuation.
    """
    stored = await SystemSettingsRepo(db).get_many(SETTING_KEYS.keys())

    values: Dict[str, Dict[str, float]] = {
        "accessory_deductions": BUILTIN_DEFAULTS.accessory.to_dict(),
        "condition_deduction_pct": BUILTIN_DEFAULTS.condition_pct.to_dict(),
    }
    sources: Dict[str, str] = {f"{g}.{f}": "builtin" for g, f in SETTING_KEYS.values()}

    for key, (group, fld) in SETTING_KEYS.items():
        doc = stored.get(key)
        if not doc:
            continue
        v = to_float(doc.get("value"))
        if v is None or v < 0:
            logger.warning("defaults:ignored_bad_setting key=%s value=%r", key, doc.get("value"))
            continue
        values[group][fld] = v
        sources[f"{group}.{fld}"] = "global"

    defaults = DeductionDefaults(
        accessory=AccessoryDeductions(**values["accessory_deductions"]),
        condition_pct=ConditionDeductionPct(**values["condition_deduction_pct"]),
    )
    return defaults, sources


def apply_defaults(
    doc: Mapping[str, Any],
    defaults: DeductionDefaults,
    default_sources: Optional[Mapping[str, str]] = None,
) -> PricingRecord:
    """Pure: stored pricing doc + defaults -> fully populated PricingRecord."""
    default_sources = default_sources or {}
    sources: Dict[str, str] = {}

    def pick(group: str, fld: str, fallback: float) -> float:
        raw = (doc.get(group) or {}).get(fld)
        v = to_float(raw)
        if v is not None:
            sources[f"{group}.{fld}"] = "variant"
            return v
        sources[f"{group}.{fld}"] = default_sources.get(f"{group}.{fld}", "builtin")
        return float(fallback)

    accessory = AccessoryDeductions(
        charger=pick("accessory_deductions", "charger", defaults.accessory.charger),
        box=pick("accessory_deductions", "box", defaults.accessory.box),
        bill=pick("accessory_deductions", "bill", defaults.accessory.bill),
    )
    condition_pct = ConditionDeductionPct(
        good=pick("condition_deduction_pct", "good", defaults.condition_pct.good),
        average=pick("condition_deduction_pct", "average", defaults.condition_pct.average),
        below_average=pick("condition_deduction_pct", "below_average", defaults.condition_pct.below_average),
    )

    raw_tiers = doc.get("age_tier_prices") or {}
    age_tier_prices = {b: to_float(raw_tiers.get(b.value)) for b in AgeBracket}

    return PricingRecord(
        variant_id=str(doc.get("variant_id")),
        base_price=to_float(doc.get("base_price")) or 0.0,
        age_tier_prices=age_tier_prices,
        accessory_deductions=accessory,
        condition_deduction_pct=condition_pct,
        version=int(doc.get("version") or 0),
        sources=sources,
    )


async def resolve_pricing(db: AsyncIOMotorDatabase, variant_id: str) -> PricingRecord:
    doc = await PricingRecordsRepo(db).get(variant_id)
    if not doc:
        # Never fall back to a made-up base price.
        raise NotFoundError(
            code="pricing_not_found",
            message="No pricing record for this variant",
            details={"variant_id": variant_id},
        )

    defaults, default_sources = await load_global_defaults(db)
    record = apply_defaults(doc, defaults, default_sources)
    logger.debug("resolve_pricing variant_id=%s version=%s", variant_id, record.version)
    return record


def pricing_record_to_read(record: PricingRecord) -> PricingRecordRead:
    return PricingRecordRead(
        variant_id=record.variant_id,
        base_price=record.base_price,
        age_tier_prices=dict(record.age_tier_prices),
        accessory_deductions=AccessoryDeductionsRead(**record.accessory_deductions.to_dict()),
        condition_deduction_pct=ConditionDeductionPctRead(**record.condition_deduction_pct.to_dict()),
        version=record.version,
        sources=dict(record.sources),
    )


async def get_resolved_pricing(db: AsyncIOMotorDatabase, variant_id: str) -> PricingRecordRead:
    return pricing_record_to_read(await resolve_pricing(db, variant_id))


# -----------------------------------------------------------------------------
# Brands
# -----------------------------------------------------------------------------


async def create_brand(db: AsyncIOMotorDatabase, data: BrandCreate, *, actor_id: Optional[str]) -> BrandRead:
    doc = {"id": new_id(), **data.model_dump(mode="json"), "created_at": utc_now()}
    doc = await CatalogRepo(db).insert_brand(doc)

    await record_audit(db, actor_id=actor_id, action=AuditAction.CREATE, entity_table=BRANDS_COL, entity_id=doc["id"], after=doc)
    return BrandRead(**doc)


async def list_brands(db: AsyncIOMotorDatabase, *, category: Optional[str] = None, active_only: bool = False) -> List[BrandRead]:
    docs = await CatalogRepo(db).list_brands(category=category, active_only=active_only)
    return [BrandRead(**d) for d in docs]


# -----------------------------------------------------------------------------
# Devices
# -----------------------------------------------------------------------------


async def create_device(db: AsyncIOMotorDatabase, data: DeviceCreate, *, actor_id: Optional[str]) -> DeviceRead:
    repo = CatalogRepo(db)

    if not await repo.get_brand(data.brand_id):
        raise NotFoundError(code="brand_not_found", message="Brand not found", details={"brand_id": data.brand_id})

    # mode="json" keeps release_date as an ISO string (BSON has no date type)
    doc = {"id": new_id(), **data.model_dump(mode="json"), "created_at": utc_now()}
    doc = await repo.insert_device(doc)

    await record_audit(db, actor_id=actor_id, action=AuditAction.CREATE, entity_table=DEVICES_COL, entity_id=doc["id"], after=doc)
    return DeviceRead(**doc)


async def list_devices(db: AsyncIOMotorDatabase, *, brand_id: str, active_only: bool = False) -> List[DeviceRead]:
    docs = await CatalogRepo(db).list_devices(brand_id=brand_id, active_only=active_only)
    return [DeviceRead(**d) for d in docs]


# -----------------------------------------------------------------------------
# Variants (+ pricing record)
# -----------------------------------------------------------------------------


def _dump_optional(model: Any) -> Dict[str, Any]:
    return model.model_dump() if model is not None else {}


async def create_variant(db: AsyncIOMotorDatabase, data: VariantCreate, *, actor_id: Optional[str]) -> VariantCreateResponse:
    repo = CatalogRepo(db)

    if not await repo.get_device(data.device_id):
        raise NotFoundError(code="device_not_found", message="Device not found", details={"device_id": data.device_id})

    age_tiers = {b.value: p for b, p in data.age_tier_prices.items()}
    accessory = _dump_optional(data.accessory_deductions)
    condition_pct = _dump_optional(data.condition_deduction_pct)

    errors = validate_deduction_values(condition_pct=condition_pct, accessory=accessory, age_tier_prices=age_tiers)
    for b in AgeBracket:
        if b.value not in age_tiers:
            errors.append({"field": f"age_tier_prices.{b.value}", "reason": "required", "value": None})
    if errors:
        logger.info("create_variant:rejected device_id=%s errors=%s", data.device_id, len(errors))
        raise ValidationFailedError(errors=errors)

    now = utc_now()
    variant_doc = await repo.insert_variant(
        {
            "id": new_id(),
            "device_id": data.device_id,
            "storage_gb": int(data.storage_gb),
            "base_price": float(data.base_price),
            "created_at": now,
        }
    )

    try:
        pricing_doc = await PricingRecordsRepo(db).insert(
            {
                "variant_id": variant_doc["id"],
                "base_price": float(data.base_price),
                "age_tier_prices": {k: float(v) for k, v in age_tiers.items()},
                "accessory_deductions": {k: accessory.get(k) for k in ("charger", "box", "bill")},
                "condition_deduction_pct": {k: condition_pct.get(k) for k in ("good", "average", "below_average")},
                "created_at": now,
                "updated_at": now,
            }
        )
    except PyMongoError:
        # A variant never exists without its pricing record.
        logger.error("create_variant:pricing_insert_failed variant_id=%s; removing variant", variant_doc["id"])
        await repo.delete_variants([variant_doc["id"]])
        raise

    defaults, default_sources = await load_global_defaults(db)
    record = apply_defaults(pricing_doc, defaults, default_sources)

    warnings = check_invariants(
        base_price=record.base_price,
        age_tier_prices={b.value: p for b, p in record.age_tier_prices.items()},
        condition_pct=record.condition_deduction_pct.to_dict(),
    )
    for w in warnings:
        logger.warning("create_variant:invariant variant_id=%s code=%s field=%s", variant_doc["id"], w.code, w.field)

    await record_audit(
        db, actor_id=actor_id, action=AuditAction.CREATE, entity_table=VARIANTS_COL, entity_id=variant_doc["id"], after=variant_doc
    )
    await record_audit(
        db,
        actor_id=actor_id,
        action=AuditAction.CREATE,
        entity_table=PRICING_RECORDS_COL,
        entity_id=variant_doc["id"],
        after={k: pricing_doc.get(k) for k in ("base_price", "age_tier_prices", "accessory_deductions", "condition_deduction_pct")},
    )

    logger.info("create_variant:done variant_id=%s device_id=%s", variant_doc["id"], data.device_id)
    return VariantCreateResponse(
        variant=VariantRead(**variant_doc),
        pricing=pricing_record_to_read(record),
        warnings=[InvariantViolationRead(**w.to_dict()) for w in warnings],
    )


async def list_variants(db: AsyncIOMotorDatabase, *, device_id: str) -> List[VariantRead]:
    docs = await CatalogRepo(db).list_variants(device_id=device_id)
    return [VariantRead(**d) for d in docs]


# -----------------------------------------------------------------------------
# Cascade deletes
# -----------------------------------------------------------------------------


async def _cascade_variants(db: AsyncIOMotorDatabase, variant_ids: List[str]) -> Tuple[int, int]:
    pricing_deleted = await PricingRecordsRepo(db).delete_for_variants(variant_ids)
    variants_deleted = await CatalogRepo(db).delete_variants(variant_ids)
    return variants_deleted, pricing_deleted


async def delete_variant(db: AsyncIOMotorDatabase, variant_id: str, *, actor_id: Optional[str]) -> CascadeDeleteResponse:
    repo = CatalogRepo(db)
    variant = await repo.get_variant(variant_id)
    if not variant:
        raise NotFoundError(code="variant_not_found", message="Variant not found", details={"variant_id": variant_id})

    variants_deleted, pricing_deleted = await _cascade_variants(db, [variant_id])
    await record_audit(db, actor_id=actor_id, action=AuditAction.DELETE, entity_table=VARIANTS_COL, entity_id=variant_id, before=variant)

    logger.info("delete_variant variant_id=%s pricing_deleted=%s", variant_id, pricing_deleted)
    return CascadeDeleteResponse(variants_deleted=variants_deleted, pricing_records_deleted=pricing_deleted)


async def delete_device(db: AsyncIOMotorDatabase, device_id: str, *, actor_id: Optional[str]) -> CascadeDeleteResponse:
    repo = CatalogRepo(db)
    device = await repo.get_device(device_id)
    if not device:
        raise NotFoundError(code="device_not_found", message="Device not found", details={"device_id": device_id})

    variant_ids = await repo.variant_ids_for_devices([device_id])
    variants_deleted, pricing_deleted = await _cascade_variants(db, variant_ids)
    devices_deleted = await repo.delete_devices([device_id])

    await record_audit(db, actor_id=actor_id, action=AuditAction.DELETE, entity_table=DEVICES_COL, entity_id=device_id, before=device)

    logger.info(
        "delete_device device_id=%s variants_deleted=%s pricing_deleted=%s",
        device_id,
        variants_deleted,
        pricing_deleted,
    )
    return CascadeDeleteResponse(
        devices_deleted=devices_deleted,
        variants_deleted=variants_deleted,
        pricing_records_deleted=pricing_deleted,
    )


async def delete_brand(db: AsyncIOMotorDatabase, brand_id: str, *, actor_id: Optional[str]) -> CascadeDeleteResponse:
    repo = CatalogRepo(db)
    brand = await repo.get_brand(brand_id)
    if not brand:
        raise NotFoundError(code="brand_not_found", message="Brand not found", details={"brand_id": brand_id})

    device_ids = await repo.device_ids_for_brand(brand_id)
    variant_ids = await repo.variant_ids_for_devices(device_ids)
    variants_deleted, pricing_deleted = await _cascade_variants(db, variant_ids)
    devices_deleted = await repo.delete_devices(device_ids)
    await repo.delete_brand(brand_id)

    await record_audit(db, actor_id=actor_id, action=AuditAction.DELETE, entity_table=BRANDS_COL, entity_id=brand_id, before=brand)

    logger.info(
        "delete_brand brand_id=%s devices_deleted=%s variants_deleted=%s pricing_deleted=%s",
        brand_id,
        devices_deleted,
        variants_deleted,
        pricing_deleted,
    )
    return CascadeDeleteResponse(
        brands_deleted=1,
        devices_deleted=devices_deleted,
        variants_deleted=variants_deleted,
        pricing_records_deleted=pricing_deleted,
    )
