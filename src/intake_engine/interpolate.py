"""Template interpolation for screen copy.

Headlines and body text may embed ``${calc.<id>}`` and ``${<answer key>}``
placeholders, e.g. ``"Nice work, ${first_name}! Your BMI is ${calc.bmi}."``.

  - ``${calc.bmi}`` is shown to one decimal place.
  - ``${calc.weight_loss}`` falls back to 20% of the highest (or current)
    weight when no calculation produced it.
  - A missing calculation keeps its placeholder so the gap is visible.
  - A missing answer renders as an empty string, and the punctuation left
    dangling by it is tidied up.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from intake_engine.aliases import AliasTable
from intake_engine.coerce import parse_number, stringify

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")

# (pattern, replacement) pairs applied after substitution, in order
_CLEANUPS: list[tuple[re.Pattern, str]] = [
    (re.compile(r",\s*!"), "!"),
    (re.compile(r",\s*\."), "."),
    (re.compile(r",\s*:"), ":"),
    (re.compile(r",\s*,"), ","),
    (re.compile(r"\s{2,}"), " "),
    (re.compile(r",\s*$"), ""),
]


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _round_half_up(value: float, digits: int) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _weight_loss_estimate(answers: Mapping[str, Any]) -> Any:
    """20% of the highest recorded weight, else of the current weight."""
    weight = parse_number(answers.get("highest_weight"))
    if not weight:
        weight = parse_number(answers.get("weight"))
    if weight and weight > 0:
        return _round_half_up(weight * 0.2, 0)
    return None


def interpolate_text(
    text: str,
    calculations: Mapping[str, Any] | None = None,
    answers: Mapping[str, Any] | None = None,
    aliases: AliasTable | None = None,
) -> str:
    """Fill ``${...}`` placeholders in *text* from calculations and answers."""
    if not text:
        return text
    calculations = calculations or {}
    answers = answers or {}
    aliases = aliases if aliases is not None else AliasTable()

    def _replace(match: re.Match) -> str:
        expression = match.group(1).strip()

        if expression.startswith("calc."):
            calc_key = expression[len("calc."):]
            value = calculations.get(calc_key)
            if calc_key == "bmi" and isinstance(value, (int, float)):
                return stringify(_round_half_up(float(value), 1))
            if calc_key == "weight_loss" and _is_blank(value):
                value = _weight_loss_estimate(answers)
            if _is_blank(value):
                return match.group(0)
            return stringify(value)

        value = aliases.lookup(expression, answers)
        if _is_blank(value):
            return ""
        return stringify(value).strip()

    result = _PLACEHOLDER.sub(_replace, text)
    for pattern, replacement in _CLEANUPS:
        result = pattern.sub(replacement, result)
    return result.strip()
