"""
Tests: PricingAdminService (validated, versioned, audited edits).

Run with:
    pytest tests/test_pricing_admin.py -v
"""

import pytest
from pymongo.errors import AutoReconnect

from app.core.config import config
from app.core.errors import ConflictError, NotFoundError, StorageUnavailableError, ValidationFailedError
from app.features.catalog.repo import PricingRecordsRepo
from app.features.catalog.service import resolve_pricing
from app.features.catalog.settings_repo import SystemSettingsRepo
from app.features.catalog.types import AgeBracket
from app.features.pricing_admin.schemas import DeductionParamsUpdate, GlobalDefaultsUpdate
from app.features.pricing_admin.service import get_global_defaults, update_deduction_params, update_global_defaults

pytestmark = pytest.mark.anyio

EXPLICIT_PCT = {"good": 0, "average": 10, "below_average": 20}


async def _update_audits(db, variant_id):
    return await db["audit_logs"].count_documents(
        {"action": "update", "entity_table": "pricing_records", "entity_id": variant_id}
    )


class TestUpdateDeductionParams:
    async def test_success_audits_only_changed_fields(self, db, make_variant):
        vid = await make_variant(condition_deduction_pct=EXPLICIT_PCT)

        resp = await update_deduction_params(db, vid, DeductionParamsUpdate(good=0, average=15), actor_id=None)

        assert resp.changed is True
        assert resp.pricing.condition_deduction_pct.average == 15.0
        assert resp.pricing.version == 2

        audit = await db["audit_logs"].find_one({"id": resp.audit_id})
        assert audit["action"] == "update"
        assert audit["entity_table"] == "pricing_records"
        assert audit["entity_id"] == vid
        assert audit["before"] == {"condition_deduction_pct": {"average": 10.0}}
        assert audit["after"] == {"condition_deduction_pct": {"average": 15.0}}

    async def test_out_of_range_rejected_and_nothing_written(self, db, make_variant):
        vid = await make_variant(condition_deduction_pct=EXPLICIT_PCT)

        with pytest.raises(ValidationFailedError) as exc:
            await update_deduction_params(db, vid, DeductionParamsUpdate(good=150, box=-1), actor_id=None)

        fields = sorted(e["field"] for e in exc.value.errors)
        assert fields == ["accessory_deductions.box", "condition_deduction_pct.good"]

        rec = await resolve_pricing(db, vid)
        assert rec.version == 1
        assert rec.condition_deduction_pct.good == 0.0
        assert await _update_audits(db, vid) == 0

    async def test_negative_pct_rejected(self, db, make_variant):
        vid = await make_variant()
        with pytest.raises(ValidationFailedError):
            await update_deduction_params(db, vid, DeductionParamsUpdate(below_average=-1), actor_id=None)
        assert await _update_audits(db, vid) == 0

    async def test_noop_writes_no_audit(self, db, make_variant):
        vid = await make_variant(condition_deduction_pct=EXPLICIT_PCT)

        resp = await update_deduction_params(db, vid, DeductionParamsUpdate(average=10), actor_id=None)

        assert resp.changed is False
        assert resp.audit_id is None
        assert resp.pricing.version == 1
        assert await _update_audits(db, vid) == 0

    async def test_empty_patch_is_rejected(self, db, make_variant):
        vid = await make_variant()
        with pytest.raises(ValidationFailedError) as exc:
            await update_deduction_params(db, vid, DeductionParamsUpdate(), actor_id=None)
        assert exc.value.errors[0]["field"] == "*"

    async def test_null_clears_override(self, db, make_variant):
        vid = await make_variant(accessory_deductions={"charger": 75})

        resp = await update_deduction_params(db, vid, DeductionParamsUpdate(charger=None), actor_id=None)

        assert resp.changed is True
        assert resp.pricing.accessory_deductions.charger == 200.0
        assert resp.pricing.sources["accessory_deductions.charger"] == "builtin"
        stored = await db["pricing_records"].find_one({"variant_id": vid})
        assert stored["accessory_deductions"]["charger"] is None

    async def test_null_age_tier_rejected(self, db, make_variant):
        vid = await make_variant()
        with pytest.raises(ValidationFailedError) as exc:
            await update_deduction_params(db, vid, DeductionParamsUpdate(age_tier_prices={"12+": None}), actor_id=None)
        assert exc.value.errors[0]["field"] == "age_tier_prices.12+"

    async def test_age_tier_update_reports_warning(self, db, make_variant):
        vid = await make_variant(base_price=12000)

        resp = await update_deduction_params(
            db, vid, DeductionParamsUpdate(age_tier_prices={"6-11": 9500}), actor_id=None
        )

        assert resp.changed is True
        assert resp.pricing.age_tier_prices[AgeBracket.M6_11] == 9500.0
        assert [w.code for w in resp.warnings] == ["age_tier_not_monotonic"]

    async def test_unknown_variant(self, db):
        with pytest.raises(NotFoundError):
            await update_deduction_params(db, "missing", DeductionParamsUpdate(average=5), actor_id=None)


class TestConcurrency:
    async def test_lost_race_is_retried(self, db, make_variant, monkeypatch):
        vid = await make_variant(condition_deduction_pct=EXPLICIT_PCT)
        original = PricingRecordsRepo.compare_and_set
        calls = []

        async def racing(self, **kwargs):
            if not calls:
                # Another writer bumps the version between our read and write
                await db["pricing_records"].update_one({"variant_id": vid}, {"$inc": {"version": 1}})
            calls.append(kwargs["expected_version"])
            return await original(self, **kwargs)

        monkeypatch.setattr(PricingRecordsRepo, "compare_and_set", racing)

        resp = await update_deduction_params(db, vid, DeductionParamsUpdate(average=12), actor_id=None)

        assert calls == [1, 2]
        assert resp.pricing.version == 3
        assert resp.pricing.condition_deduction_pct.average == 12.0
        assert await _update_audits(db, vid) == 1

    async def test_retries_exhausted(self, db, make_variant, monkeypatch):
        vid = await make_variant()
        attempts = []

        async def always_lose(self, **kwargs):
            attempts.append(kwargs)
            return None

        monkeypatch.setattr(PricingRecordsRepo, "compare_and_set", always_lose)
        monkeypatch.setattr(config, "pricing_write_retries", 2)

        with pytest.raises(ConflictError) as exc:
            await update_deduction_params(db, vid, DeductionParamsUpdate(average=12), actor_id=None)

        assert exc.value.code == "pricing_write_conflict"
        assert len(attempts) == 2
        assert await _update_audits(db, vid) == 0

    async def test_audit_failure_reverts_the_write(self, db, make_variant, monkeypatch):
        vid = await make_variant(condition_deduction_pct=EXPLICIT_PCT)

        async def broken_audit(*args, **kwargs):
            raise AutoReconnect("audit store down")

        monkeypatch.setattr("app.features.pricing_admin.service.record_audit", broken_audit)

        with pytest.raises(StorageUnavailableError):
            await update_deduction_params(db, vid, DeductionParamsUpdate(average=40), actor_id=None)

        rec = await resolve_pricing(db, vid)
        assert rec.condition_deduction_pct.average == 10.0
        assert await _update_audits(db, vid) == 0


class TestGlobalDefaults:
    async def test_update_changes_fallback_for_variants_without_override(self, db, make_variant):
        plain = await make_variant()
        overridden = await make_variant(accessory_deductions={"box": 50})

        resp = await update_global_defaults(db, GlobalDefaultsUpdate(box=250, average=12.5), actor_id=None)

        assert resp.changed is True
        assert resp.defaults.accessory_deductions.box == 250.0
        assert resp.defaults.sources["accessory_deductions.box"] == "global"

        assert (await resolve_pricing(db, plain)).accessory_deductions.box == 250.0
        assert (await resolve_pricing(db, overridden)).accessory_deductions.box == 50.0

        audit = await db["audit_logs"].find_one({"id": resp.audit_id})
        assert audit["entity_table"] == "system_settings"
        assert audit["after"] == {
            "accessory_deductions": {"box": 250.0},
            "condition_deduction_pct": {"average": 12.5},
        }

    async def test_same_values_are_a_noop(self, db):
        resp = await update_global_defaults(db, GlobalDefaultsUpdate(charger=200), actor_id=None)
        assert resp.changed is False
        assert resp.audit_id is None
        assert await db["system_settings"].count_documents({}) == 0

    async def test_null_and_out_of_range_rejected(self, db):
        with pytest.raises(ValidationFailedError) as exc:
            await update_global_defaults(db, GlobalDefaultsUpdate(bill=None, good=101), actor_id=None)

        fields = sorted(e["field"] for e in exc.value.errors)
        assert fields == ["accessory_deductions.bill", "condition_deduction_pct.good"]
        out = await get_global_defaults(db)
        assert out.accessory_deductions.bill == 150.0

    async def test_audit_failure_restores_previous_defaults(self, db, monkeypatch):
        await update_global_defaults(db, GlobalDefaultsUpdate(bill=80), actor_id=None)

        async def broken_audit(*args, **kwargs):
            raise AutoReconnect("audit store down")

        monkeypatch.setattr("app.features.pricing_admin.service.record_audit", broken_audit)

        with pytest.raises(StorageUnavailableError):
            await update_global_defaults(db, GlobalDefaultsUpdate(box=999, bill=60), actor_id=None)

        out = await get_global_defaults(db)
        assert out.accessory_deductions.box == 100.0
        assert out.sources["accessory_deductions.box"] == "builtin"
        assert out.accessory_deductions.bill == 80.0
        assert await db["system_settings"].count_documents({"key": "box_missing_deduction"}) == 0
        assert await db["audit_logs"].count_documents({"entity_table": "system_settings"}) == 1

    async def test_partial_settings_write_is_rolled_back(self, db, monkeypatch):
        original = SystemSettingsRepo.upsert
        keys = []

        async def flaky(self, **kwargs):
            keys.append(kwargs["key"])
            if len(keys) == 2:
                raise AutoReconnect("primary stepped down")
            return await original(self, **kwargs)

        monkeypatch.setattr(SystemSettingsRepo, "upsert", flaky)

        with pytest.raises(StorageUnavailableError) as exc:
            await update_global_defaults(db, GlobalDefaultsUpdate(charger=250, box=120), actor_id=None)

        assert exc.value.code == "storage_unavailable"
        assert keys == ["charger_missing_deduction", "box_missing_deduction"]
        assert await db["system_settings"].count_documents({}) == 0
        assert await db["audit_logs"].count_documents({"entity_table": "system_settings"}) == 0
