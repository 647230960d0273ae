from __future__ import annotations

import logging
from typing import Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import config
from app.core.errors import ValidationFailedError
from app.features.catalog.models import PricingRecord
from app.features.catalog.service import resolve_pricing
from app.features.catalog.types import AgeBracket, ConditionTier, DeviceCondition
from app.features.valuation.classifier import classify, tier_from_device_condition
from app.features.valuation.engine import AccessoryDeclaration, ValuationResult, compute_final_price
from app.features.valuation.schemas import (
    ConditionInput,
    ConditionSignals,
    QuoteRequest,
    QuoteResponse,
    ValuationBreakdown,
)

logger = logging.getLogger(__name__)


def determine_tier(
    *,
    signals: Optional[ConditionSignals],
    tier: Optional[ConditionTier],
    condition: Optional[DeviceCondition],
) -> Tuple[ConditionTier, str]:
    """Returns (tier, source) where source is "signals", "tier" or "condition"."""
    if signals is not None:
        return classify(signals.to_assessment()), "signals"
    if tier is not None:
        return ConditionTier(tier), "tier"
    if condition is not None:
        return tier_from_device_condition(condition), "condition"

    raise ValidationFailedError(
        errors=[
            {
                "field": "condition_signals",
                "reason": "one of condition_signals, tier or condition is required",
                "value": None,
            }
        ]
    )


def tier_for(payload: ConditionInput) -> Tuple[ConditionTier, str]:
    return determine_tier(signals=payload.condition_signals, tier=payload.tier, condition=payload.condition)


async def value_device(
    db: AsyncIOMotorDatabase,
    *,
    variant_id: str,
    age_bracket: AgeBracket,
    tier: ConditionTier,
    accessories: AccessoryDeclaration,
) -> Tuple[PricingRecord, ValuationResult]:
    """resolve_pricing -> compute_final_price. Raises NotFoundError for unknown variants."""
    pricing = await resolve_pricing(db, variant_id)
    result = compute_final_price(pricing, age_bracket, tier, accessories)

    logger.info(
        "valuation variant_id=%s version=%s bracket=%s tier=%s missing=%s final=%s",
        variant_id,
        pricing.version,
        age_bracket.value,
        tier.value,
        ",".join(a.value for a in result.missing_accessories) or "-",
        result.final_price,
    )
    return pricing, result


async def quote(db: AsyncIOMotorDatabase, payload: QuoteRequest) -> QuoteResponse:
    tier, source = tier_for(payload)
    pricing, result = await value_device(
        db,
        variant_id=payload.variant_id,
        age_bracket=payload.age_bracket,
        tier=tier,
        accessories=payload.accessories.to_declaration(),
    )
    return QuoteResponse(
        variant_id=payload.variant_id,
        pricing_version=pricing.version,
        currency=config.currency,
        tier_source=source,
        breakdown=ValuationBreakdown.from_result(result),
    )
