"""
Tests: valuation engine (pure arithmetic, no database).

Run with:
    pytest tests/test_engine.py -v
"""

import itertools

import pytest

from app.features.catalog.models import AccessoryDeductions, ConditionDeductionPct, PricingRecord
from app.features.catalog.types import AgeBracket, ConditionTier
from app.features.valuation.engine import AccessoryDeclaration, compute_final_price


def _pricing(
    *,
    tiers=None,
    charger=200.0,
    box=100.0,
    bill=150.0,
    good=0.0,
    average=10.0,
    below_average=20.0,
) -> PricingRecord:
    tiers = tiers or {
        AgeBracket.M0_3: 10000.0,
        AgeBracket.M3_6: 9000.0,
        AgeBracket.M6_11: 8000.0,
        AgeBracket.M12_PLUS: 6000.0,
    }
    return PricingRecord(
        variant_id="v1",
        base_price=12000.0,
        age_tier_prices=tiers,
        accessory_deductions=AccessoryDeductions(charger=charger, box=box, bill=bill),
        condition_deduction_pct=ConditionDeductionPct(good=good, average=average, below_average=below_average),
    )


ALL_ACCESSORY_COMBOS = [
    AccessoryDeclaration(has_charger=c, has_box=b, has_bill=i)
    for c, b, i in itertools.product([True, False], repeat=3)
]


class TestScenarios:
    def test_average_condition_missing_box(self):
        result = compute_final_price(
            _pricing(),
            AgeBracket.M0_3,
            ConditionTier.AVERAGE,
            AccessoryDeclaration(has_charger=True, has_box=False, has_bill=True),
        )
        assert result.age_adjusted_price == 10000.0
        assert result.condition_deduction_amount == 1000.0
        assert result.price_after_condition == 9000.0
        assert result.accessory_deduction_amount == 100.0
        assert result.final_price == 8900.0

    def test_zero_age_tier_price_pays_nothing(self):
        pricing = _pricing(tiers={AgeBracket.M12_PLUS: 0.0})
        for tier in ConditionTier:
            for acc in ALL_ACCESSORY_COMBOS:
                result = compute_final_price(pricing, AgeBracket.M12_PLUS, tier, acc)
                assert result.final_price == 0.0
                assert result.condition_deduction_amount == 0.0
                assert result.accessory_deduction_amount == 0.0

    def test_missing_age_tier_price_pays_nothing(self):
        pricing = _pricing(tiers={AgeBracket.M0_3: 10000.0})
        result = compute_final_price(pricing, AgeBracket.M6_11, ConditionTier.GOOD, AccessoryDeclaration())
        assert result.final_price == 0.0

    def test_all_accessories_missing_each_counted_once(self):
        result = compute_final_price(
            _pricing(),
            AgeBracket.M3_6,
            ConditionTier.GOOD,
            AccessoryDeclaration(has_charger=False, has_box=False, has_bill=False),
        )
        assert result.accessory_deduction_amount == 450.0
        assert result.final_price == 9000.0 - 450.0
        assert [a.value for a in result.missing_accessories] == ["charger", "box", "bill"]


class TestBounds:
    def test_floor_at_zero(self):
        pricing = _pricing(tiers={AgeBracket.M12_PLUS: 300.0}, below_average=50.0)
        result = compute_final_price(
            pricing,
            AgeBracket.M12_PLUS,
            ConditionTier.BELOW_AVERAGE,
            AccessoryDeclaration(has_charger=False, has_box=False, has_bill=False),
        )
        assert result.price_after_condition == 150.0
        assert result.accessory_deduction_amount == 450.0
        assert result.final_price == 0.0

    def test_pct_above_100_is_clamped(self):
        pricing = _pricing(below_average=250.0)
        result = compute_final_price(pricing, AgeBracket.M0_3, ConditionTier.BELOW_AVERAGE, AccessoryDeclaration())
        assert result.condition_deduction_pct == 100.0
        assert result.condition_deduction_amount == 10000.0
        assert result.final_price == 0.0

    def test_negative_pct_is_clamped_to_zero(self):
        pricing = _pricing(good=-5.0)
        result = compute_final_price(pricing, AgeBracket.M0_3, ConditionTier.GOOD, AccessoryDeclaration())
        assert result.condition_deduction_amount == 0.0
        assert result.final_price == 10000.0

    def test_negative_flat_deduction_never_adds_money(self):
        pricing = _pricing(box=-500.0)
        result = compute_final_price(
            pricing, AgeBracket.M0_3, ConditionTier.GOOD, AccessoryDeclaration(has_box=False)
        )
        assert result.final_price == 10000.0

    @pytest.mark.parametrize("bracket", list(AgeBracket))
    @pytest.mark.parametrize("tier", list(ConditionTier))
    def test_final_price_within_zero_and_age_price(self, bracket, tier):
        pricing = _pricing()
        cap = pricing.age_price(bracket)
        for acc in ALL_ACCESSORY_COMBOS:
            result = compute_final_price(pricing, bracket, tier, acc)
            assert 0.0 <= result.final_price <= cap


class TestProperties:
    def test_idempotent(self):
        pricing = _pricing()
        acc = AccessoryDeclaration(has_charger=False)
        first = compute_final_price(pricing, AgeBracket.M6_11, ConditionTier.AVERAGE, acc)
        second = compute_final_price(pricing, AgeBracket.M6_11, ConditionTier.AVERAGE, acc)
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_higher_pct_never_raises_price(self):
        acc = AccessoryDeclaration(has_bill=False)
        last = None
        for pct in [0, 0.5, 1, 7.25, 10, 33.33, 50, 99.99, 100, 120]:
            price = compute_final_price(
                _pricing(average=pct), AgeBracket.M3_6, ConditionTier.AVERAGE, acc
            ).final_price
            if last is not None:
                assert price <= last
            last = price

    def test_condition_deduction_rounds_half_up(self):
        # 100.50 * 1% = 1.005 -> 1.01 (banker's rounding would give 1.00)
        pricing = _pricing(tiers={AgeBracket.M0_3: 100.50}, average=1.0)
        result = compute_final_price(pricing, AgeBracket.M0_3, ConditionTier.AVERAGE, AccessoryDeclaration())
        assert result.condition_deduction_amount == 1.01
        assert result.final_price == 99.49

    def test_condition_applies_before_accessories(self):
        # 20% of (10000) then -200, not 20% of (10000 - 200)
        result = compute_final_price(
            _pricing(),
            AgeBracket.M0_3,
            ConditionTier.BELOW_AVERAGE,
            AccessoryDeclaration(has_charger=False),
        )
        assert result.condition_deduction_amount == 2000.0
        assert result.final_price == 7800.0

    def test_breakdown_dict_is_plain(self):
        result = compute_final_price(
            _pricing(), AgeBracket.M12_PLUS, ConditionTier.GOOD, AccessoryDeclaration(has_box=False)
        )
        d = result.to_dict()
        assert d["age_bracket"] == "12+"
        assert d["tier"] == "good"
        assert d["missing_accessories"] == ["box"]
        assert d["final_price"] == 5900.0
