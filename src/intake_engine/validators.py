"""Field validation for question screens.

Each validator returns an error message, or None when the value is valid.
:func:`validate_screen` runs the right validators for every answer a screen
collects and returns ``{answer_key: message}`` for the failures; an empty
dict means the screen may be submitted.

Validation is advisory: the engine never refuses to advance on its own.
Consumers call :meth:`IntakeSession.validate_current` before ``advance()``.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional

from intake_engine.aliases import AliasTable
from intake_engine.calculator import age_in_years
from intake_engine.coerce import parse_number
from intake_engine.evaluator import ConditionEvaluator
from intake_engine.models.screen import (
    CompositeScreen,
    ConsentItemField,
    ConsentScreen,
    ContentScreen,
    DateScreen,
    MedicationDetailsGroupField,
    MultiSelectScreen,
    NumberField,
    NumberScreen,
    SingleSelectScreen,
    TextScreen,
    Validation,
)

REQUIRED_MESSAGE = "This field is required."
CONSENT_MESSAGE = "This consent is required to continue."
INVALID_NUMBER_MESSAGE = "Please enter a valid number."
INVALID_DATE_MESSAGE = "Please enter a valid date."
PAST_DATE_MESSAGE = "Date cannot be in the past."

# Text-screen masks that denote a month/day/year date
DATE_MASKS = ("##/##/####", "##-##-####")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


# ---------------------------------------------------------------------------
# Single-purpose validators
# ---------------------------------------------------------------------------

def validate_required(value: Any) -> Optional[str]:
    if _is_empty(value):
        return REQUIRED_MESSAGE
    return None


def validate_pattern(value: str, pattern: str, error: str) -> Optional[str]:
    if not re.search(pattern, value):
        return error
    return None


def validate_number_range(
    value: Any,
    min_value: float | None = None,
    max_value: float | None = None,
    error: str | None = None,
) -> Optional[str]:
    number = parse_number(value)
    if number is None:
        return INVALID_NUMBER_MESSAGE
    if min_value is not None and number < min_value:
        return error or f"Value must be at least {min_value:g}."
    if max_value is not None and number > max_value:
        return error or f"Value must be no more than {max_value:g}."
    return None


def validate_date(
    value: str,
    mask: str = "##/##/####",
    validation: Validation | None = None,
    min_today: bool = False,
    today: date | None = None,
) -> Optional[str]:
    """Validate an ``MM/DD/YYYY`` (or ``MM-DD-YYYY``) date string.

    An incomplete date is not an error yet: the user is still typing.
    """
    if not value:
        return None
    separator = "/" if "/" in mask else "-"
    parts = value.split(separator)
    if len(parts) != 3 or [len(p) for p in parts] != [2, 2, 4]:
        return None

    try:
        month, day, year = (int(p) for p in parts)
        entered = date(year, month, day)
    except ValueError:
        return (validation.error if validation else None) or INVALID_DATE_MESSAGE

    today = today or date.today()
    if validation is not None and (validation.min_age is not None or validation.max_age is not None):
        age = age_in_years(entered, today)
        if validation.min_age is not None and age < validation.min_age:
            return validation.error
        if validation.max_age is not None and age > validation.max_age:
            return validation.error

    if min_today and entered < today:
        return PAST_DATE_MESSAGE
    return None


def validate_cross_field(
    value: Any,
    other: Any,
    operator: str,
    error: str,
) -> Optional[str]:
    """Compare *value* with another answer: ``greater_than``, ``less_than`` or ``matches``."""
    if _is_empty(value) or _is_empty(other):
        return None
    if operator == "matches":
        return error if value != other else None

    number, other_number = parse_number(value), parse_number(other)
    if number is None or other_number is None:
        return None
    if operator == "greater_than" and number <= other_number:
        return error
    if operator == "less_than" and number >= other_number:
        return error
    return None


# ---------------------------------------------------------------------------
# Field / screen validation
# ---------------------------------------------------------------------------

def validate_field(
    field: Any,
    value: Any,
    answers: Mapping[str, Any],
    aliases: AliasTable | None = None,
) -> Optional[str]:
    """Validate one value against a field or question screen definition.

    *field* may be a composite-screen field or a text/number/date screen;
    both expose ``required``, ``validation`` and (for numbers) ``min``/``max``.
    Other answers named by cross-field rules are read through *aliases*.
    """
    aliases = aliases if aliases is not None else AliasTable()
    if isinstance(field, ConsentItemField):
        if field.required and value is not True:
            return CONSENT_MESSAGE
        return None

    if getattr(field, "required", False):
        error = validate_required(value)
        if error:
            return error

    if _is_empty(value) or value is False:
        return None

    validation: Validation | None = getattr(field, "validation", None)

    if validation is not None and validation.pattern and isinstance(value, str):
        error = validate_pattern(value, validation.pattern, validation.error or "Invalid format")
        if error:
            return error

    if isinstance(field, TextScreen) and field.mask in DATE_MASKS and isinstance(value, str):
        error = validate_date(value, field.mask, validation, field.min_today)
        if error:
            return error

    if isinstance(field, (NumberField, NumberScreen)):
        min_value = validation.min if validation and validation.min is not None else field.min
        max_value = validation.max if validation and validation.max is not None else field.max
        error = validate_number_range(value, min_value, max_value, validation.error if validation else None)
        if error:
            return error

    if validation is not None:
        if validation.greater_than_field:
            rule = validation.greater_than_field
            error = validate_cross_field(value, aliases.lookup(rule.field, answers), "greater_than", rule.error)
            if error:
                return error
        if validation.less_than_field:
            rule = validation.less_than_field
            error = validate_cross_field(value, aliases.lookup(rule.field, answers), "less_than", rule.error)
            if error:
                return error
        if validation.matches:
            error = validate_cross_field(
                value, aliases.lookup(validation.matches, answers), "matches",
                validation.error or "Values do not match",
            )
            if error:
                return error

    return None


def visible_fields(
    fields: List[Any],
    answers: Mapping[str, Any],
    evaluator: ConditionEvaluator,
    calculations: Mapping[str, Any] | None = None,
    flags: Iterable[str] = (),
) -> list[Any]:
    """Flatten composite *fields*, dropping those whose ``show_if`` is false.

    A hidden medication group hides all of its children.
    """
    out: list[Any] = []
    for item in fields:
        if isinstance(item, list):
            out.extend(visible_fields(item, answers, evaluator, calculations, flags))
            continue
        if not evaluator.is_visible(item.show_if, answers, calculations, flags):
            continue
        out.append(item)
        if isinstance(item, MedicationDetailsGroupField):
            out.extend(visible_fields(item.fields, answers, evaluator, calculations, flags))
    return out


def validate_screen(
    screen: Any,
    answers: Mapping[str, Any],
    evaluator: ConditionEvaluator | None = None,
    calculations: Mapping[str, Any] | None = None,
    aliases: AliasTable | None = None,
) -> dict[str, str]:
    """Validate every answer *screen* collects.  Returns ``{key: message}``.

    Answers are read through *aliases*, so a field declared under an alias
    finds the value stored under its canonical key.  Errors stay keyed by
    the id the screen declares.
    """
    aliases = aliases if aliases is not None else AliasTable()
    errors: dict[str, str] = {}

    if isinstance(screen, (SingleSelectScreen, MultiSelectScreen, DateScreen)):
        if screen.required:
            error = validate_required(aliases.lookup(screen.answer_key, answers))
            if error:
                errors[screen.answer_key] = error

    elif isinstance(screen, (TextScreen, NumberScreen)):
        error = validate_field(
            screen, aliases.lookup(screen.answer_key, answers), answers, aliases,
        )
        if error:
            errors[screen.answer_key] = error

    elif isinstance(screen, CompositeScreen):
        evaluator = evaluator if evaluator is not None else ConditionEvaluator()
        for field in visible_fields(screen.fields, answers, evaluator, calculations):
            if isinstance(field, MedicationDetailsGroupField):
                continue
            error = validate_field(field, aliases.lookup(field.id, answers), answers, aliases)
            if error:
                errors[field.id] = error

    elif isinstance(screen, (ConsentScreen, ContentScreen)):
        items = screen.items if isinstance(screen, ConsentScreen) else screen.consent_items
        for item in items:
            if item.required and aliases.lookup(item.id, answers) is not True:
                errors[item.id] = CONSENT_MESSAGE

    return errors
