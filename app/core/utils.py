from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping
from uuid import uuid4

# ---------------------------------------------------------------------
# Time / ids
# ---------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------
# Generic coercion / dict helpers
# ---------------------------------------------------------------------


def is_bool(v: Any) -> bool:
    # bool is a subclass of int; avoid silent coercion
    return isinstance(v, bool)


def to_float(v: Any) -> float | None:
    """Best-effort float; None for bools, junk, NaN and infinities."""
    try:
        if v is None or is_bool(v):
            return None
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def get_nested(d: Mapping[str, Any], path: str, default: Any = None) -> Any:
    cur: Any = d
    for key in path.split("."):
        if not isinstance(cur, dict):
            return default
        cur = cur.get(key)
    return cur if cur is not None else default


# ---------------------------------------------------------------------
# Money helpers (minor-unit precision, round-half-up)
# ---------------------------------------------------------------------

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(x: Any) -> Decimal:
    """Float/int/str -> Decimal quantized to 2dp. Junk becomes 0.00."""
    if isinstance(x, Decimal):
        d = x
    else:
        f = to_float(x)
        if f is None:
            return ZERO
        try:
            # str() keeps 0.1 as 0.1 instead of its binary expansion
            d = Decimal(str(f))
        except InvalidOperation:
            return ZERO
    return d.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
