"""IntakeSession — the stateful navigation engine for one intake.

The session walks a form's screen graph.  Its state bundle is:

  - current_screen_id: always a valid screen id in the form
  - answers:           answer key -> raw value (stored under canonical keys)
  - calculations:      calculation id -> number or None ("not yet known")
  - flags:             eligibility flags; they only ever accumulate
  - history:           stack of screen ids visited on the way here
  - return_to:         one-shot redirect set by ``go_to_screen``
  - direction:         forward/backward hint for consumers

Commands are the only mutators.  Navigation commands return True when the
current screen changed and False on a no-op; they never raise.  An
unresolvable target is logged and the user stays where they are.

Typical flow::

    session = IntakeSession(form)
    session.update_answer("goal.range", "31-50")
    session.advance()          # calculations → flags → next_logic → next
    session.go_back()
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from intake_engine.aliases import AliasTable
from intake_engine.calculator import CalculationEngine
from intake_engine.coerce import stringify
from intake_engine.constants import EXCLUSIVE_OPTION, OTHER_OPTION
from intake_engine.eligibility import EligibilityProcessor
from intake_engine.evaluator import ConditionEvaluator
from intake_engine.interpolate import interpolate_text
from intake_engine.models.form import FormConfig
from intake_engine.models.screen import CompositeScreen, Option, Screen
from intake_engine.models.session import Direction, ReviewItem, SessionSnapshot
from intake_engine.review import build_review_items, render_provider_summary, risk_tier
from intake_engine.validators import validate_screen, visible_fields

logger = logging.getLogger(__name__)


class IntakeSession:
    """Navigation state machine over a :class:`FormConfig`.

    Args:
        form: the parsed form configuration.
        evaluator: condition evaluator; defaults to one sharing the form's
            alias table.
        calculator: calculation engine; same default.
        processor: eligibility processor; defaults to one using *evaluator*.
    """

    def __init__(
        self,
        form: FormConfig,
        *,
        evaluator: ConditionEvaluator | None = None,
        calculator: CalculationEngine | None = None,
        processor: EligibilityProcessor | None = None,
    ) -> None:
        self._form = form
        self._aliases = AliasTable().merged(form.aliases)
        self._evaluator = evaluator if evaluator is not None else ConditionEvaluator(self._aliases)
        self._calculator = calculator if calculator is not None else CalculationEngine(self._aliases)
        self._processor = processor if processor is not None else EligibilityProcessor(self._evaluator)

        self._current_screen_id: str = form.first_screen_id
        self._answers: dict[str, Any] = {}
        self._calculations: dict[str, Optional[float]] = {}
        self._flags: frozenset[str] = frozenset()
        self._history: list[str] = []
        self._return_to: Optional[str] = None
        self._direction = Direction.FORWARD

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def form(self) -> FormConfig:
        return self._form

    @property
    def aliases(self) -> AliasTable:
        return self._aliases

    @property
    def current_screen_id(self) -> str:
        return self._current_screen_id

    @property
    def current_screen(self) -> Screen:
        return self._form.get_screen(self._current_screen_id)

    @property
    def answers(self) -> dict[str, Any]:
        """Copy of the answer map."""
        return dict(self._answers)

    @property
    def calculations(self) -> dict[str, Optional[float]]:
        """Copy of the calculation results."""
        return dict(self._calculations)

    @property
    def flags(self) -> frozenset[str]:
        return self._flags

    @property
    def history(self) -> tuple[str, ...]:
        return tuple(self._history)

    @property
    def return_to(self) -> Optional[str]:
        return self._return_to

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def can_go_back(self) -> bool:
        return bool(self._history) or self._return_to is not None

    @property
    def progress(self) -> float:
        """Percentage (0-100) of answerable screens up to the current one.

        Terminal and review screens are not counted; when the current screen
        is one of them, progress is 100.
        """
        counted = [s.id for s in self._form.screens if s.counts_toward_progress]
        if self._current_screen_id not in counted:
            return 100.0
        return (counted.index(self._current_screen_id) + 1) / len(counted) * 100

    def answer(self, key: str) -> Any:
        """Read one answer by its canonical key or any alias."""
        return self._aliases.lookup(key, self._answers)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            current_screen_id=self._current_screen_id,
            current_screen_type=self.current_screen.type,
            answers=dict(self._answers),
            calculations=dict(self._calculations),
            flags=sorted(self._flags),
            history=list(self._history),
            return_to=self._return_to,
            direction=self._direction,
            progress=self.progress,
            can_go_back=self.can_go_back,
        )

    # ------------------------------------------------------------------
    # Answer commands
    # ------------------------------------------------------------------

    def update_answer(self, key: str, value: Any) -> None:
        """Store one answer.  Navigation state is untouched."""
        canonical = self._aliases.canonical(key)
        if canonical != key:
            logger.debug("Storing answer %r under canonical key %r", key, canonical)
        self._answers[canonical] = value

    def clear_answer(self, key: str) -> None:
        for name in self._aliases.names(key):
            self._answers.pop(name, None)

    def toggle_option(
        self, key: str, value: str, *, other_text_id: str | None = None
    ) -> list[str]:
        """Toggle *value* in the multi-select answer under *key*.

        Selecting ``none`` clears every other choice, and selecting anything
        else clears ``none``.  Deselecting ``other`` also clears the
        free-text answer under *other_text_id*.  Returns the new selection.
        """
        current = self.answer(key)
        selected = list(current) if isinstance(current, (list, tuple)) else []

        if value in selected:
            selected.remove(value)
            if value == OTHER_OPTION and other_text_id:
                self.clear_answer(other_text_id)
        elif value == EXCLUSIVE_OPTION:
            if OTHER_OPTION in selected and other_text_id:
                self.clear_answer(other_text_id)
            selected = [EXCLUSIVE_OPTION]
        else:
            selected = [v for v in selected if v != EXCLUSIVE_OPTION]
            selected.append(value)

        self.update_answer(key, selected)
        return selected

    # ------------------------------------------------------------------
    # Navigation commands
    # ------------------------------------------------------------------

    def advance(self) -> bool:
        """Move forward from the current screen.

        Calculations and flags computed here are kept even when no next
        screen resolves.
        """
        if self._return_to is not None:
            target, self._return_to = self._return_to, None
            self._current_screen_id = target
            self._direction = Direction.FORWARD
            return True

        screen = self.current_screen

        if screen.calculations:
            results = self._calculator.perform(screen.calculations, self._answers)
            self._calculations.update(results)

        self._flags = self._processor.process(
            self._form.eligibility_rules, self._answers, self._calculations, self._flags,
        )

        next_id: Optional[str] = None
        if screen.next_logic:
            next_id = self._evaluator.evaluate_logic(
                screen.next_logic,
                self.answer(screen.answer_key),
                self._answers,
                self._calculations,
                self._flags,
            )
        if not next_id:
            next_id = screen.next

        if not next_id or not self._form.has_screen(next_id):
            logger.warning(
                "No valid next screen from %s (resolved %r); staying put",
                screen.id, next_id,
            )
            return False

        self._history.append(screen.id)
        self._current_screen_id = next_id
        self._direction = Direction.FORWARD
        return True

    def go_back(self) -> bool:
        if self._return_to is not None:
            target, self._return_to = self._return_to, None
            self._current_screen_id = target
            self._direction = Direction.BACKWARD
            return True

        if not self._history:
            logger.debug("go_back() on %s with empty history", self._current_screen_id)
            return False

        self._current_screen_id = self._history.pop()
        self._direction = Direction.BACKWARD
        return True

    def go_to_screen(self, screen_id: str) -> bool:
        """Jump to *screen_id*, remembering where to return on the next move."""
        if not self._form.has_screen(screen_id):
            logger.warning("go_to_screen(): unknown screen id %r", screen_id)
            return False

        self._return_to = self._current_screen_id
        self._current_screen_id = screen_id
        self._direction = Direction.FORWARD
        return True

    def reset(self) -> None:
        """Discard all answers and start over at the first screen."""
        self._current_screen_id = self._form.first_screen_id
        self._answers.clear()
        self._calculations.clear()
        self._flags = frozenset()
        self._history.clear()
        self._return_to = None
        self._direction = Direction.FORWARD

    # ------------------------------------------------------------------
    # Screen helpers
    # ------------------------------------------------------------------

    def visible_fields(self, screen: Screen | None = None) -> list[Any]:
        """Composite fields of *screen* (default: current) whose ``show_if`` holds."""
        screen = screen if screen is not None else self.current_screen
        if not isinstance(screen, CompositeScreen):
            return []
        return visible_fields(
            screen.fields, self._answers, self._evaluator, self._calculations, self._flags,
        )

    def field_options(self, field: Any) -> List[Option]:
        """Options for a select field, honouring ``conditional_options``."""
        default: List[Option] = list(getattr(field, "options", None) or [])
        rule = getattr(field, "conditional_options", None)
        if rule is None:
            return default
        based_on = self.answer(rule.based_on)
        if based_on is None:
            return default
        return list(rule.options_map.get(stringify(based_on), default))

    def interpolate(self, text: str) -> str:
        return interpolate_text(text, self._calculations, self._answers, self._aliases)

    def validate_current(self) -> dict[str, str]:
        """Field errors for the current screen; empty means it may be submitted."""
        return validate_screen(
            self.current_screen, self._answers, self._evaluator, self._calculations,
            self._aliases,
        )

    def review_items(self) -> list[ReviewItem]:
        return build_review_items(self._form, self._answers, self._aliases)

    def triggered_rules(self) -> list[str]:
        """Names of the eligibility rules that hold right now."""
        return [
            rule.rule for rule in self._processor.triggered_rules(
                self._form.eligibility_rules, self._answers, self._calculations, self._flags,
            )
        ]

    def provider_summary(self) -> str:
        return render_provider_summary(
            self._form, self._answers, self._calculations, self._flags, self._aliases,
        )

    def risk_tier(self) -> Optional[str]:
        """Most severe risk tier among the rules that hold right now."""
        return risk_tier(self._form, self.triggered_rules())
