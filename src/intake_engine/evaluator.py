"""ConditionEvaluator — resolves the condition strings used in form configs.

Conditions appear in three places:

  - **next_logic** ``if`` entries: branch routing after a screen
  - **eligibility_rules** ``if`` entries: global flag rules
  - **conditional_display.show_if**: composite field visibility

A condition is ``<left> <op> <right>``, split on the first operator from
:data:`~intake_engine.constants.CONDITION_OPERATORS` that yields exactly two
parts.  Left operands resolve against the session context:

  - ``answer``      → the screen's own answer
  - ``calc.<id>``   → the calculation map
  - ``flags``       → the flag set as a sorted list
  - anything else   → the answer map by exact key (then its aliases)

Atomic comparisons may be joined with ``AND`` / ``OR`` in any case; ``AND``
binds tighter and there are no parentheses.

The evaluator never raises.  A missing left operand, an unknown operator or
a malformed literal makes the condition false.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Mapping, Optional

from intake_engine.aliases import AliasTable
from intake_engine.coerce import parse_number, stringify
from intake_engine.constants import CONDITION_OPERATORS
from intake_engine.models.routing import BranchRule

logger = logging.getLogger(__name__)

_OR_SPLIT = re.compile(r"\s+OR\s+", re.IGNORECASE)
_AND_SPLIT = re.compile(r"\s+AND\s+", re.IGNORECASE)
_QUOTES = re.compile(r"['\"]")


def parse_condition(condition: str) -> Optional[tuple[str, str, str]]:
    """Split an atomic condition into ``(left, op, right)``.

    Returns None if no operator splits the string into exactly two parts.
    """
    for op in CONDITION_OPERATORS:
        parts = condition.split(f" {op} ")
        if len(parts) == 2:
            return parts[0].strip(), op, parts[1].strip()
    return None


def split_compound(condition: str) -> list[list[str]]:
    """Split a condition into OR-groups of AND-ed atomic conditions."""
    return [
        [part.strip() for part in _AND_SPLIT.split(group)]
        for group in _OR_SPLIT.split(condition.strip())
    ]


class ConditionEvaluator:
    """Evaluates condition strings against answers, calculations and flags.

    Args:
        aliases: alias table used when a left operand names an answer key
            that was stored under a different (canonical) key.
    """

    def __init__(self, aliases: AliasTable | None = None) -> None:
        self._aliases = aliases if aliases is not None else AliasTable()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(
        self,
        condition: str,
        current_answer: Any,
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any],
        flags: Iterable[str],
    ) -> bool:
        """Return True if *condition* holds in the given context."""
        if not condition or not condition.strip():
            return False
        flags = frozenset(flags)
        try:
            return any(
                all(
                    self._check_atomic(part, current_answer, answers, calculations, flags)
                    for part in group
                )
                for group in split_compound(condition)
            )
        except Exception:
            logger.warning("Error checking condition %r", condition, exc_info=True)
            return False

    def evaluate_logic(
        self,
        logic: Iterable[BranchRule],
        current_answer: Any,
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any],
        flags: Iterable[str],
    ) -> Optional[str]:
        """Resolve a ``next_logic`` table to a screen id.

        Conditional entries are tried top to bottom; the first that holds
        wins.  If none holds, the ``else`` target is returned (the last one,
        should a table declare several).  Returns None when nothing matched
        and there is no ``else``.
        """
        flags = frozenset(flags)
        else_target: Optional[str] = None
        for rule in logic:
            if rule.is_else:
                else_target = rule.else_
                continue
            if self.check(rule.if_, current_answer, answers, calculations, flags):
                return rule.go_to
        return else_target

    def is_visible(
        self,
        show_if: Optional[str],
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any] | None = None,
        flags: Iterable[str] = (),
    ) -> bool:
        """Conditional display check for composite fields.

        A field without ``show_if`` is always visible.
        """
        if not show_if:
            return True
        return self.check(show_if, None, answers, calculations or {}, flags)

    def is_well_formed(self, condition: str) -> bool:
        """True if every atomic part of *condition* parses.

        Used by configuration linting; runtime evaluation stays lenient.
        """
        if not condition or not condition.strip():
            return False
        for group in split_compound(condition):
            for part in group:
                parsed = parse_condition(part)
                if parsed is None:
                    return False
                _, op, right = parsed
                if op == "in":
                    try:
                        if not isinstance(json.loads(right.replace("'", '"')), list):
                            return False
                    except ValueError:
                        return False
        return True

    # ------------------------------------------------------------------
    # Operand resolution
    # ------------------------------------------------------------------

    def resolve(
        self,
        key: str,
        current_answer: Any,
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any],
        flags: Iterable[str],
    ) -> Any:
        """Resolve a left-hand operand token to its value."""
        if key == "answer":
            return current_answer
        if key.startswith("calc."):
            return calculations.get(key[len("calc."):])
        if key == "flags":
            return sorted(flags)
        return self._aliases.lookup(key, answers)

    # ------------------------------------------------------------------
    # Atomic comparison
    # ------------------------------------------------------------------

    def _check_atomic(
        self,
        condition: str,
        current_answer: Any,
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any],
        flags: Iterable[str],
    ) -> bool:
        parsed = parse_condition(condition)
        if parsed is None:
            logger.debug("Unparseable condition: %r", condition)
            return False

        left, op, right = parsed
        left_val = self.resolve(left, current_answer, answers, calculations, flags)
        # Unanswered questions never satisfy a condition
        if left_val is None:
            return False

        try:
            return self._compare(op, left_val, right)
        except (TypeError, ValueError) as exc:
            logger.warning("Error checking condition %r: %s", condition, exc)
            return False

    @staticmethod
    def _compare(op: str, left_val: Any, right: str) -> bool:
        """Apply *op* to a resolved left value and a right-hand literal."""
        if op == "==":
            return stringify(left_val) == _QUOTES.sub("", right)

        if op == "!=":
            return stringify(left_val) != _QUOTES.sub("", right)

        # --- Numeric comparisons ---
        if op in ("<", ">", "<=", ">="):
            num_left = parse_number(left_val)
            num_right = parse_number(right)
            if num_left is None or num_right is None:
                return False
            if op == "<":
                return num_left < num_right
            if op == ">":
                return num_left > num_right
            if op == "<=":
                return num_left <= num_right
            return num_left >= num_right

        # --- Collection membership ---
        if op == "contains":
            if not isinstance(left_val, (list, tuple, set, frozenset)):
                return False
            return _QUOTES.sub("", right) in left_val

        if op == "in":
            values = json.loads(right.replace("'", '"'))
            if not isinstance(values, list):
                return False
            return stringify(left_val) in values

        logger.warning("Unknown condition operator: %s", op)
        return False
