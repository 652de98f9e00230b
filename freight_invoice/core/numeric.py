"""Numeric coercion for monetary values returned by the extraction model.

The model is asked for JSON numbers but does not always comply: amounts arrive
as currency-formatted strings ("₹1,234.50", "Rs. 4,000/-"), placeholders
("N/A", "-"), nulls, or are missing entirely. Every monetary field passes
through :func:`coerce_amount` before it is used.
"""

import math
import re
from decimal import Decimal
from numbers import Real
from typing import Any, Optional

# First numeric token: optional leading minus, digits with thousands separators,
# optional fraction. A bare ".5" counts unless the dot ends an abbreviation ("Rs.4000").
_NUMBER_TOKEN = re.compile(r"-?(?:\d[\d,]*(?:\.\d+)?|(?<![A-Za-z])\.\d+)")

# Figure stated as a minimum next to a percentage: "0.12% or Min Rs.4000"
_MINIMUM_FIGURE = re.compile(r"\bmin(?:imum)?\b[^\d%]*(\d[\d,]*(?:\.\d+)?)(?!\d|[.,]\d|\s*%)", re.IGNORECASE)


def _parse_number(text: str) -> Optional[float]:
    match = _NUMBER_TOKEN.search(text)
    if match is None:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def _to_float(value: Any) -> Optional[float]:
    """A finite float for numbers and numeric strings, otherwise None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (Real, Decimal)):
        try:
            number = float(value)
        except (ValueError, OverflowError):
            return None
    elif isinstance(value, str):
        number = _parse_number(value)
        if number is None:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_amount(value: Any) -> float:
    """Normalize arbitrary model output into a non-negative amount.

    Never raises. Anything that is not a finite number, or a string containing
    one, becomes ``0.0``. Negative values are clamped to ``0.0``.
    """
    number = _to_float(value)
    if number is None or number < 0:
        return 0.0
    return number


def coerce_optional_rate(value: Any) -> Optional[float]:
    """Coerce a quoted rate, keeping "no figure" distinct from zero.

    Returns ``None`` when the value carries no single figure: missing, null,
    "At actual", or a percentage. A percentage with a stated minimum yields the
    minimum. A literal zero stays ``0.0``.
    """
    if isinstance(value, str) and "%" in value:
        minimum = _MINIMUM_FIGURE.search(value)
        if minimum is None:
            return None
        value = minimum.group(1)
    number = _to_float(value)
    if number is None or number < 0:
        return None
    return number
