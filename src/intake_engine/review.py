"""Review summary and provider packet rendering.

The provider packet's ``include_fields`` decides what is summarised.  Each
review item records the screen that collects the answer, so a review UI can
call ``IntakeSession.go_to_screen(item.screen_id)`` to let the user edit it;
the next ``advance()`` then returns to the review screen.

The packet's ``summary_template`` and ``risk_stratification`` give the
reviewing clinician a one-glance text summary and the most severe risk tier.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional

from intake_engine.aliases import AliasTable
from intake_engine.coerce import stringify
from intake_engine.constants import REVIEW_FALLBACK_GROUP, REVIEW_GROUPS
from intake_engine.models.form import FormConfig
from intake_engine.models.screen import CompositeScreen, Option
from intake_engine.models.session import ReviewItem

# Shown in the provider summary for values the patient never gave
MISSING_VALUE = "n/a"

_SUMMARY_PLACEHOLDER = re.compile(r"\{([^{}:]+)(?::([^{}]+))?\}")


def review_group(key: str) -> str:
    """Name of the review section *key* belongs to."""
    for name, prefixes, exact in REVIEW_GROUPS:
        if key in exact or key.startswith(prefixes):
            return name
    return REVIEW_FALLBACK_GROUP


def _describe(screen: Any, key: str) -> tuple[str, Optional[List[Option]]]:
    """Return ``(label, options)`` for *key* as collected by *screen*."""
    if isinstance(screen, CompositeScreen):
        for field in screen.flat_fields():
            if field.id == key:
                return field.label or screen.title, getattr(field, "options", None) or None
    title = getattr(screen, "title", None) or getattr(screen, "label", None) or key
    return title, getattr(screen, "options", None) or None


def format_answer(
    key: str,
    value: Any,
    answers: Mapping[str, Any],
    options: Optional[List[Option]] = None,
) -> str:
    """Render an answer for display; an empty string means "do not show"."""
    labels = {o.value: o.label for o in options or []}
    if isinstance(value, (list, tuple)):
        return ", ".join(labels.get(v, stringify(v)) for v in value)
    if labels:
        return labels.get(value, stringify(value))
    # Height is collected as two numbers but shown as one item
    if key == "height_ft" and answers.get("height_in") is not None:
        return f"{stringify(value)}' {stringify(answers['height_in'])}\""
    if key == "height_in":
        return ""
    return stringify(value)


def build_review_items(
    form: FormConfig,
    answers: Mapping[str, Any],
    aliases: AliasTable | None = None,
) -> list[ReviewItem]:
    """Summarise the provider-packet fields that have answers, grouped for display."""
    if form.provider_packet is None:
        return []
    aliases = aliases if aliases is not None else AliasTable()

    items: list[ReviewItem] = []
    for key in form.provider_packet.include_fields:
        value = aliases.lookup(key, answers)
        if value is None:
            continue
        screen = None
        for name in aliases.names(key):
            screen = form.screen_for_answer_key(name)
            if screen is not None:
                break
        if screen is None:
            continue
        label, options = _describe(screen, key)
        answer = format_answer(key, value, answers, options)
        if answer == "":
            continue
        items.append(ReviewItem(
            key=key,
            label=label,
            answer=answer,
            screen_id=screen.id,
            group=review_group(key),
        ))

    order = [name for name, _, _ in REVIEW_GROUPS] + [REVIEW_FALLBACK_GROUP]
    items.sort(key=lambda item: order.index(item.group))
    return items


# ---------------------------------------------------------------------------
# Provider packet
# ---------------------------------------------------------------------------

def render_provider_summary(
    form: FormConfig,
    answers: Mapping[str, Any],
    calculations: Mapping[str, Any],
    flags: Iterable[str],
    aliases: AliasTable | None = None,
) -> str:
    """Fill the provider packet's ``summary_template``.

    Placeholders are ``{key}``, ``{calc.<id>}`` or ``{flags}``, optionally
    with a format spec (``{calc.bmi:.1f}``).  Unknown values render as
    :data:`MISSING_VALUE`.
    """
    if form.provider_packet is None or not form.provider_packet.summary_template:
        return ""
    aliases = aliases if aliases is not None else AliasTable()
    flags = sorted(flags)

    def _replace(match: re.Match) -> str:
        key, spec = match.group(1).strip(), match.group(2)
        if key == "flags":
            value: Any = flags or None
        elif key.startswith("calc."):
            value = calculations.get(key[len("calc."):])
        else:
            value = aliases.lookup(key, answers)

        if value is None or value == "" or value == []:
            return MISSING_VALUE
        if spec:
            try:
                return format(value, spec)
            except (TypeError, ValueError):
                pass
        if isinstance(value, (list, tuple)):
            return ", ".join(stringify(v) for v in value)
        return stringify(value)

    return _SUMMARY_PLACEHOLDER.sub(_replace, form.provider_packet.summary_template)


def risk_tier(form: FormConfig, triggered: Iterable[str]) -> Optional[str]:
    """Highest risk tier any of the *triggered* rule names belongs to.

    Tiers are checked in the order the form declares them, so list the most
    severe first.  Returns None when no triggered rule is stratified.
    """
    if form.provider_packet is None or not form.provider_packet.risk_stratification:
        return None
    triggered = set(triggered)
    for tier, rules in form.provider_packet.risk_stratification.items():
        if triggered.intersection(rules):
            return tier
    return None
