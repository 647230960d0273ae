from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from app.core.utils import to_float

from .types import AGE_BRACKET_ORDER, CONDITION_TIER_ORDER, AgeBracket


PCT_FIELDS = ("good", "average", "below_average")
FLAT_FIELDS = ("charger", "box", "bill")


@dataclass(frozen=True)
class InvariantViolation:
    """A soft rule broken by otherwise valid data. Reported, never auto-corrected."""

    code: str
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def _err(field: str, reason: str, value: Any) -> Dict[str, Any]:
    return {"field": field, "reason": reason, "value": value}


def validate_pct(field: str, v: Any) -> Optional[Dict[str, Any]]:
    f = to_float(v)
    if f is None:
        return _err(field, "must be a finite number", v)
    if f < 0 or f > 100:
        return _err(field, "must be between 0 and 100", v)
    return None


def validate_amount(field: str, v: Any) -> Optional[Dict[str, Any]]:
    f = to_float(v)
    if f is None:
        return _err(field, "must be a finite number", v)
    if f < 0:
        return _err(field, "must be >= 0", v)
    return None


def validate_deduction_values(
    *,
    condition_pct: Mapping[str, Any] | None = None,
    accessory: Mapping[str, Any] | None = None,
    age_tier_prices: Mapping[Any, Any] | None = None,
) -> List[Dict[str, Any]]:
    """
    Collect EVERY field error (not just the first) so callers can fix the input
    in one go. Keys whose value is None are treated as "not supplied".
    """
    errors: List[Dict[str, Any]] = []

    for k, v in (condition_pct or {}).items():
        if v is None:
            continue
        if k not in PCT_FIELDS:
            errors.append(_err(f"condition_deduction_pct.{k}", "unknown field", v))
            continue
        e = validate_pct(f"condition_deduction_pct.{k}", v)
        if e:
            errors.append(e)

    for k, v in (accessory or {}).items():
        if v is None:
            continue
        if k not in FLAT_FIELDS:
            errors.append(_err(f"accessory_deductions.{k}", "unknown field", v))
            continue
        e = validate_amount(f"accessory_deductions.{k}", v)
        if e:
            errors.append(e)

    valid_brackets = {b.value for b in AgeBracket}
    for k, v in (age_tier_prices or {}).items():
        key = k.value if isinstance(k, AgeBracket) else str(k)
        if key not in valid_brackets:
            errors.append(_err(f"age_tier_prices.{key}", "unknown age bracket", v))
            continue
        if v is None:
            continue
        e = validate_amount(f"age_tier_prices.{key}", v)
        if e:
            errors.append(e)

    return errors


def check_invariants(
    *,
    base_price: Any,
    age_tier_prices: Mapping[Any, Any],
    condition_pct: Mapping[str, Any],
) -> List[InvariantViolation]:
    out: List[InvariantViolation] = []
    base = to_float(base_price)

    prices: Dict[AgeBracket, Optional[float]] = {}
    for k, v in (age_tier_prices or {}).items():
        try:
            prices[AgeBracket(k)] = to_float(v)
        except ValueError:
            continue

    if base is not None:
        for b in AGE_BRACKET_ORDER:
            p = prices.get(b)
            if p is not None and p > base:
                out.append(
                    InvariantViolation(
                        code="age_tier_exceeds_base_price",
                        field=f"age_tier_prices.{b.value}",
                        message=f"age tier price {p} exceeds base price {base}",
                    )
                )

    prev: Optional[tuple[AgeBracket, float]] = None
    for b in AGE_BRACKET_ORDER:
        p = prices.get(b)
        if p is None:
            continue
        if prev is not None and p > prev[1]:
            out.append(
                InvariantViolation(
                    code="age_tier_not_monotonic",
                    field=f"age_tier_prices.{b.value}",
                    message=f"price for {b.value} ({p}) is higher than for {prev[0].value} ({prev[1]})",
                )
            )
        prev = (b, p)

    prev_pct: Optional[tuple[str, float]] = None
    for tier in CONDITION_TIER_ORDER:
        v = to_float((condition_pct or {}).get(tier.value))
        if v is None:
            continue
        if prev_pct is not None and v < prev_pct[1]:
            out.append(
                InvariantViolation(
                    code="condition_pct_not_monotonic",
                    field=f"condition_deduction_pct.{tier.value}",
                    message=f"{tier.value} deduction {v}% is lower than {prev_pct[0]} deduction {prev_pct[1]}%",
                )
            )
        prev_pct = (tier.value, v)

    return out
