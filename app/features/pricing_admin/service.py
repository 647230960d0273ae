"""
PricingAdminService.

Admin edits to a variant's deduction parameters (and age-tier prices):

1. validate every supplied field up front (nothing is written on failure)
2. read the record, diff against the requested values
3. compare-and-set on `version`; on a lost race re-read and try again
4. write one audit entry with before/after of the changed fields only

If the audit entry cannot be written the record write is reverted, so a
successful response always has exactly one matching audit entry.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.config import config
from app.core.errors import ConflictError, NotFoundError, StorageUnavailableError, ValidationFailedError
from app.core.utils import get_nested
from app.features.audit.service import diff_snapshots, record_audit
from app.features.audit.types import AuditAction
from app.features.catalog.models import SETTING_KEYS
from app.features.catalog.repo import PRICING_RECORDS_COL, PricingRecordsRepo
from app.features.catalog.schemas import AccessoryDeductionsRead, ConditionDeductionPctRead, InvariantViolationRead
from app.features.catalog.service import apply_defaults, load_global_defaults, pricing_record_to_read
from app.features.catalog.settings_repo import SYSTEM_SETTINGS_COL, SystemSettingsRepo
from app.features.catalog.validation import FLAT_FIELDS, PCT_FIELDS, check_invariants, validate_deduction_values
from app.features.pricing_admin.schemas import (
    DeductionParamsUpdate,
    GlobalDefaultsRead,
    GlobalDefaultsUpdate,
    GlobalDefaultsUpdateResponse,
    PricingUpdateResponse,
)

logger = logging.getLogger(__name__)

_GROUP_OF = {**{f: "condition_deduction_pct" for f in PCT_FIELDS}, **{f: "accessory_deductions" for f in FLAT_FIELDS}}

# (group, field) -> system_settings key
_SETTING_KEY_OF = {v: k for k, v in SETTING_KEYS.items()}

GLOBAL_DEFAULTS_ENTITY_ID = "deduction_defaults"


def _as_stored(v: Any) -> Optional[float]:
    return float(v) if v is not None else None


def _patch_to_paths(patch: Dict[str, Any]) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Flatten the PATCH body into Mongo dotted paths and collect field errors.
    """
    condition_pct = {k: patch[k] for k in PCT_FIELDS if k in patch}
    accessory = {k: patch[k] for k in FLAT_FIELDS if k in patch}
    age_tiers = {getattr(k, "value", k): v for k, v in (patch.get("age_tier_prices") or {}).items()}

    errors = validate_deduction_values(condition_pct=condition_pct, accessory=accessory, age_tier_prices=age_tiers)
    for k, v in age_tiers.items():
        if v is None:
            errors.append({"field": f"age_tier_prices.{k}", "reason": "age tier price cannot be cleared", "value": None})

    paths: Dict[str, Any] = {}
    for k, v in {**condition_pct, **accessory}.items():
        paths[f"{_GROUP_OF[k]}.{k}"] = _as_stored(v)
    for k, v in age_tiers.items():
        paths[f"age_tier_prices.{k}"] = _as_stored(v)

    if not paths and not errors:
        errors.append({"field": "*", "reason": "no fields to update", "value": None})

    return paths, errors


async def update_deduction_params(
    db: AsyncIOMotorDatabase,
    variant_id: str,
    new_values: DeductionParamsUpdate,
    *,
    actor_id: Optional[str],
) -> PricingUpdateResponse:
    paths, errors = _patch_to_paths(new_values.model_dump(exclude_unset=True))
    if errors:
        logger.info("pricing_update:rejected variant_id=%s errors=%s", variant_id, len(errors))
        raise ValidationFailedError(errors=errors)

    repo = PricingRecordsRepo(db)
    attempts = max(1, int(config.pricing_write_retries))

    for attempt in range(1, attempts + 1):
        current = await repo.get(variant_id)
        if not current:
            raise NotFoundError(
                code="variant_not_found",
                message="No pricing record for this variant",
                details={"variant_id": variant_id},
            )

        before_flat = {p: get_nested(current, p) for p in paths}
        before, after = diff_snapshots(before_flat, paths)

        if not after:
            logger.info("pricing_update:noop variant_id=%s", variant_id)
            return await _response(db, current, changed=False, audit_id=None)

        version = int(current.get("version") or 0)
        changed_paths = {p: v for p, v in paths.items() if before_flat.get(p) != v}

        updated = await repo.compare_and_set(variant_id=variant_id, expected_version=version, set_fields=changed_paths)
        if updated is None:
            logger.warning(
                "pricing_update:version_conflict variant_id=%s expected_version=%s attempt=%s/%s",
                variant_id,
                version,
                attempt,
                attempts,
            )
            continue

        try:
            audit = await record_audit(
                db,
                actor_id=actor_id,
                action=AuditAction.UPDATE,
                entity_table=PRICING_RECORDS_COL,
                entity_id=variant_id,
                before=before,
                after=after,
            )
        except PyMongoError as exc:
            await _revert(repo, variant_id, updated, {p: before_flat.get(p) for p in changed_paths})
            raise StorageUnavailableError(
                message="Could not record audit entry; pricing change was not applied",
                details={"variant_id": variant_id},
            ) from exc

        logger.info(
            "pricing_update:done variant_id=%s version=%s->%s fields=%s actor_id=%s",
            variant_id,
            version,
            updated.get("version"),
            sorted(changed_paths),
            actor_id,
        )
        return await _response(db, updated, changed=True, audit_id=audit["id"])

    raise ConflictError(
        code="pricing_write_conflict",
        message="Pricing record kept changing underneath this update; retry",
        details={"variant_id": variant_id, "attempts": attempts},
    )


async def _revert(repo: PricingRecordsRepo, variant_id: str, updated: Dict[str, Any], before_paths: Dict[str, Any]) -> None:
    try:
        reverted = await repo.compare_and_set(
            variant_id=variant_id,
            expected_version=int(updated.get("version") or 0),
            set_fields=before_paths,
        )
    except PyMongoError:
        logger.exception("pricing_update:revert_failed variant_id=%s", variant_id)
        return
    if reverted is None:
        logger.error("pricing_update:revert_skipped variant_id=%s (record changed again)", variant_id)


async def _response(
    db: AsyncIOMotorDatabase,
    doc: Dict[str, Any],
    *,
    changed: bool,
    audit_id: Optional[str],
) -> PricingUpdateResponse:
    defaults, default_sources = await load_global_defaults(db)
    record = apply_defaults(doc, defaults, default_sources)

    warnings = check_invariants(
        base_price=record.base_price,
        age_tier_prices={b.value: p for b, p in record.age_tier_prices.items()},
        condition_pct=record.condition_deduction_pct.to_dict(),
    )
    for w in warnings:
        logger.warning("pricing_update:invariant variant_id=%s code=%s field=%s", record.variant_id, w.code, w.field)

    return PricingUpdateResponse(
        pricing=pricing_record_to_read(record),
        changed=changed,
        audit_id=audit_id,
        warnings=[InvariantViolationRead(**w.to_dict()) for w in warnings],
    )


# -----------------------------------------------------------------------------
# Global defaults (system_settings)
# -----------------------------------------------------------------------------


async def get_global_defaults(db: AsyncIOMotorDatabase) -> GlobalDefaultsRead:
    defaults, sources = await load_global_defaults(db)
    return GlobalDefaultsRead(
        accessory_deductions=AccessoryDeductionsRead(**defaults.accessory.to_dict()),
        condition_deduction_pct=ConditionDeductionPctRead(**defaults.condition_pct.to_dict()),
        sources=sources,
    )


async def _restore_settings(repo: SystemSettingsRepo, keys: List[str], previous: Dict[str, Dict[str, Any]]) -> None:
    """Put each touched key back the way it was; keys that did not exist are removed."""
    for key in keys:
        try:
            if key in previous:
                await repo.replace(previous[key])
            else:
                await repo.delete(key)
        except PyMongoError:
            logger.exception("defaults_update:restore_failed key=%s", key)


async def update_global_defaults(
    db: AsyncIOMotorDatabase,
    new_values: GlobalDefaultsUpdate,
    *,
    actor_id: Optional[str],
) -> GlobalDefaultsUpdateResponse:
    patch = new_values.model_dump(exclude_unset=True)

    errors: List[Dict[str, Any]] = []
    for k, v in patch.items():
        if v is None:
            errors.append({"field": f"{_GROUP_OF[k]}.{k}", "reason": "global default cannot be null", "value": None})
    patch = {k: v for k, v in patch.items() if v is not None}

    errors.extend(
        validate_deduction_values(
            condition_pct={k: patch[k] for k in PCT_FIELDS if k in patch},
            accessory={k: patch[k] for k in FLAT_FIELDS if k in patch},
        )
    )
    if not patch and not errors:
        errors.append({"field": "*", "reason": "no fields to update", "value": None})
    if errors:
        logger.info("defaults_update:rejected errors=%s", len(errors))
        raise ValidationFailedError(errors=errors)

    current, _ = await load_global_defaults(db)
    current_flat = {
        **{f"accessory_deductions.{k}": v for k, v in current.accessory.to_dict().items()},
        **{f"condition_deduction_pct.{k}": v for k, v in current.condition_pct.to_dict().items()},
    }
    requested = {f"{_GROUP_OF[k]}.{k}": float(v) for k, v in patch.items()}
    before, after = diff_snapshots({p: current_flat[p] for p in requested}, requested)

    audit_id: Optional[str] = None
    if after:
        repo = SystemSettingsRepo(db)
        changed_keys = {
            _SETTING_KEY_OF[tuple(path.split(".", 1))]: v
            for path, v in requested.items()
            if current_flat[path] != v
        }
        previous = await repo.get_many(changed_keys.keys())

        touched: List[str] = []
        try:
            for key, v in changed_keys.items():
                touched.append(key)
                await repo.upsert(key=key, value=v, updated_by=actor_id)

            audit = await record_audit(
                db,
                actor_id=actor_id,
                action=AuditAction.UPDATE,
                entity_table=SYSTEM_SETTINGS_COL,
                entity_id=GLOBAL_DEFAULTS_ENTITY_ID,
                before=before,
                after=after,
            )
        except PyMongoError as exc:
            await _restore_settings(repo, touched, previous)
            raise StorageUnavailableError(
                message="Could not record default deduction change; nothing was applied",
                details={"keys": sorted(changed_keys)},
            ) from exc

        audit_id = audit["id"]
        logger.info("defaults_update:done fields=%s actor_id=%s", sorted(requested), actor_id)

    out = await get_global_defaults(db)
    warnings = check_invariants(
        base_price=None,
        age_tier_prices={},
        condition_pct=out.condition_deduction_pct.model_dump(),
    )
    return GlobalDefaultsUpdateResponse(
        defaults=out,
        changed=bool(after),
        audit_id=audit_id,
        warnings=[InvariantViolationRead(**w.to_dict()) for w in warnings],
    )
