"""EligibilityProcessor — accumulates safety/eligibility flags.

Global rules are declared once per form::

    eligibility_rules:
      - rule: underweight_no_meds
        if: "calc.bmi < 19"
        action: flag_no_medication
        severity: critical

After every forward transition the engine runs all rules against the latest
answers and calculations.  Flags only ever accumulate: a rule that stops
matching later does not remove the flag it raised.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from intake_engine.evaluator import ConditionEvaluator
from intake_engine.models.form import EligibilityRule

logger = logging.getLogger(__name__)


class EligibilityProcessor:
    """Evaluates global eligibility rules into a growing flag set."""

    def __init__(self, evaluator: ConditionEvaluator | None = None) -> None:
        self._evaluator = evaluator if evaluator is not None else ConditionEvaluator()

    def process(
        self,
        rules: Iterable[EligibilityRule],
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any],
        flags: Iterable[str],
    ) -> frozenset[str]:
        """Return *flags* plus the action of every rule whose condition holds.

        Every rule sees the same input flag set, so the order of *rules*
        never changes the outcome.
        """
        current = frozenset(flags)
        raised = set(current)
        for rule in self.triggered_rules(rules, answers, calculations, current):
            if rule.action not in raised:
                logger.info(
                    "Eligibility rule %s raised %s (severity=%s)",
                    rule.rule, rule.action, rule.severity,
                )
            raised.add(rule.action)
        return frozenset(raised)

    def triggered_rules(
        self,
        rules: Iterable[EligibilityRule],
        answers: Mapping[str, Any],
        calculations: Mapping[str, Any],
        flags: Iterable[str],
    ) -> list[EligibilityRule]:
        """Return the rules whose condition currently holds, in declaration order."""
        flags = frozenset(flags)
        # Rules are global: there is no "current answer" to compare against
        return [
            rule for rule in rules
            if self._evaluator.check(rule.if_, None, answers, calculations, flags)
        ]
