"""Loose value coercion for answers coming from form widgets.

Answers arrive as whatever the UI produced: numbers, numeric strings such as
``"180"`` or ``"180 lb"``, booleans, lists of option values.  Conditions and
formulas in form configurations are written against the coercion rules of a
loosely-typed host, so these helpers reproduce them:

  - :func:`parse_number` reads a leading numeric prefix and rejects
    booleans, empty strings and containers.
  - :func:`stringify` renders booleans as ``true``/``false``, integral floats
    without a trailing ``.0`` and lists as comma-joined values.
"""

from __future__ import annotations

import math
import re
from typing import Any

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_number(value: Any) -> float | None:
    """Return *value* as a float, or None if it has no numeric reading."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped in ("Infinity", "+Infinity"):
            return math.inf
        if stripped == "-Infinity":
            return -math.inf
        match = _NUMBER_PREFIX.match(stripped)
        if match:
            return float(match.group(1))
    return None


def is_numeric(value: Any) -> bool:
    """True if *value* is a number or a non-empty numeric-parseable string."""
    if value is None or value == "":
        return False
    return parse_number(value) is not None


def stringify(value: Any) -> str:
    """Render *value* the way the configuration language compares strings."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join("" if v is None else stringify(v) for v in value)
    return str(value)
