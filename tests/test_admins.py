"""
Tests: admin identities and audit attribution.

Run with:
    pytest tests/test_admins.py -v
"""

import pytest

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.features.admins.schemas import AdminCreate
from app.features.admins.service import create_admin, delete_admin, resolve_actor
from app.features.audit.service import diff_snapshots, list_audit_logs
from app.features.audit.types import AuditAction
from app.features.pricing_admin.schemas import DeductionParamsUpdate, GlobalDefaultsUpdate
from app.features.pricing_admin.service import update_deduction_params, update_global_defaults


class TestDiffSnapshots:
    def test_only_changed_leaves_survive(self):
        before = {"condition_deduction_pct": {"good": 0, "average": 10}, "accessory_deductions": {"box": 100}}
        after = {"condition_deduction_pct": {"good": 0, "average": 15}, "accessory_deductions": {"box": 100}}
        assert diff_snapshots(before, after) == (
            {"condition_deduction_pct": {"average": 10}},
            {"condition_deduction_pct": {"average": 15}},
        )

    def test_dotted_keys_are_nested(self):
        b, a = diff_snapshots({"accessory_deductions.bill": None}, {"accessory_deductions.bill": 80.0})
        assert b == {"accessory_deductions": {"bill": None}}
        assert a == {"accessory_deductions": {"bill": 80.0}}

    def test_identical_snapshots(self):
        assert diff_snapshots({"a": 1}, {"a": 1}) == ({}, {})


@pytest.mark.anyio
class TestAdmins:
    async def test_duplicate_email_conflicts(self, db):
        await create_admin(db, AdminCreate(username="ops", email="ops@shop.in"), actor_id=None)
        with pytest.raises(ConflictError):
            await create_admin(db, AdminCreate(username="ops2", email="ops@shop.in"), actor_id=None)

    async def test_resolve_actor(self, db):
        admin = await create_admin(db, AdminCreate(username="pricing", email="pricing@shop.in"), actor_id=None)

        assert await resolve_actor(db, None) is None
        assert await resolve_actor(db, "  ") is None
        assert await resolve_actor(db, admin.id) == admin.id

        with pytest.raises(ForbiddenError) as exc:
            await resolve_actor(db, "ghost")
        assert exc.value.code == "unknown_actor"

    async def test_delete_keeps_history_but_detaches_actor(self, db, make_variant):
        admin = await create_admin(db, AdminCreate(username="pricing", email="pricing@shop.in"), actor_id=None)
        vid = await make_variant()
        await update_deduction_params(db, vid, DeductionParamsUpdate(average=11), actor_id=admin.id)

        assert len(await list_audit_logs(db, actor_id=admin.id)) == 1

        await delete_admin(db, admin.id, actor_id=None)

        assert await list_audit_logs(db, actor_id=admin.id) == []
        updates = await list_audit_logs(db, entity_id=vid, action=AuditAction.UPDATE)
        assert len(updates) == 1
        assert updates[0].actor_id is None
        assert updates[0].after == {"condition_deduction_pct": {"average": 11.0}}

    async def test_delete_unknown_admin(self, db):
        with pytest.raises(NotFoundError):
            await delete_admin(db, "ghost", actor_id=None)

    async def test_delete_clears_settings_updated_by(self, db):
        admin = await create_admin(db, AdminCreate(username="pricing", email="pricing@shop.in"), actor_id=None)
        await update_global_defaults(db, GlobalDefaultsUpdate(charger=250), actor_id=admin.id)

        stored = await db["system_settings"].find_one({"key": "charger_missing_deduction"})
        assert stored["updated_by"] == admin.id

        await delete_admin(db, admin.id, actor_id=None)

        stored = await db["system_settings"].find_one({"key": "charger_missing_deduction"})
        assert stored["updated_by"] is None
        assert stored["value"] == 250.0
