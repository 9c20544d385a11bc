import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def round2(value) -> float:
    """Half-up rounding to 2 decimals; None and NaN become 0."""
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def percentage(part, whole) -> float:
    if not whole:
        return 0.0
    return round2(part / whole * 100)


def parse_float(raw) -> Optional[float]:
    """Lenient numeric query parsing: anything malformed counts as absent."""
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value
