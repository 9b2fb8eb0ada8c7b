"""CalculationEngine — derives numeric facts (BMI, age) from answers.

Each screen may declare ``calculations`` that run when the user leaves it::

    calculations:
      - id: bmi
        formula: "703 * weight / ((height_ft * 12 + height_in) ** 2)"
      - id: age
        formula: "AGE(demographics.dob)"

Resolution happens in three passes:

  1. ``AGE(<key>)`` calls are replaced by the completed years since the
     birthdate answer under ``<key>``.
  2. Every numeric (or numeric-parseable) answer whose key appears in the
     formula as a whole token is replaced by a positional placeholder.
  3. If any alphabetic character is left, some variable has no answer yet
     and the result is None.  Otherwise the pure arithmetic expression is
     parsed and evaluated by a small recursive-descent interpreter.

No Python code is ever compiled from a formula: the interpreter only knows
numbers, placeholders, ``+ - * / % **`` and parentheses.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from intake_engine.aliases import AliasTable
from intake_engine.coerce import is_numeric, parse_number
from intake_engine.constants import CALC_PRECISION
from intake_engine.models.routing import Calculation

logger = logging.getLogger(__name__)

_AGE_CALL = re.compile(r"AGE\(\s*([^()\s]+)\s*\)")
_PLACEHOLDER = re.compile(r"__arg(\d+)__")
_LETTER = re.compile(r"[A-Za-z]")
_TOKEN = re.compile(r"\s*(?:(__arg\d+__)|(\d+\.?\d*|\.\d+)|(\*\*|[-+*/%()]))")

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d")


class FormulaError(ValueError):
    """Raised internally when a substituted formula is not valid arithmetic."""


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

def parse_date(value: Any) -> Optional[date]:
    """Parse a birthdate answer.  Returns None if it is not a recognisable date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # ISO timestamps, e.g. "1990-05-01T00:00:00Z"
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def age_in_years(birthdate: date, today: date) -> int:
    """Completed years between *birthdate* and *today*."""
    years = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        years -= 1
    return years


# ---------------------------------------------------------------------------
# Arithmetic interpreter
# ---------------------------------------------------------------------------

def tokenize(expr: str) -> list[tuple[str, Any]]:
    """Split a substituted formula into ``(kind, value)`` tokens."""
    tokens: list[tuple[str, Any]] = []
    pos = 0
    expr = expr.rstrip()
    while pos < len(expr):
        match = _TOKEN.match(expr, pos)
        if match is None:
            raise FormulaError(f"unexpected character at {pos}: {expr[pos:pos + 10]!r}")
        placeholder, number, op = match.groups()
        if placeholder is not None:
            tokens.append(("arg", int(_PLACEHOLDER.match(placeholder).group(1))))
        elif number is not None:
            tokens.append(("num", float(number)))
        else:
            tokens.append(("op", op))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent evaluator over a token list.

    Grammar (lowest to highest binding)::

        expr    := term (("+" | "-") term)*
        term    := unary (("*" | "/" | "%") unary)*
        unary   := ("+" | "-") unary | power
        power   := primary ("**" unary)?
        primary := NUMBER | ARG | "(" expr ")"
    """

    def __init__(self, tokens: list[tuple[str, Any]], args: list[float]) -> None:
        self._tokens = tokens
        self._args = args
        self._pos = 0

    def parse(self) -> float:
        if not self._tokens:
            raise FormulaError("empty formula")
        value = self._expr()
        if self._pos != len(self._tokens):
            raise FormulaError(f"unexpected token {self._tokens[self._pos][1]!r}")
        return value

    def _peek(self) -> Optional[tuple[str, Any]]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _accept(self, *ops: str) -> Optional[str]:
        tok = self._peek()
        if tok is not None and tok[0] == "op" and tok[1] in ops:
            self._pos += 1
            return tok[1]
        return None

    def _expr(self) -> float:
        value = self._term()
        while (op := self._accept("+", "-")) is not None:
            rhs = self._term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def _term(self) -> float:
        value = self._unary()
        while (op := self._accept("*", "/", "%")) is not None:
            rhs = self._unary()
            if op == "*":
                value = value * rhs
            elif op == "/":
                value = _divide(value, rhs)
            else:
                value = math.fmod(value, rhs) if rhs != 0 else math.nan
        return value

    def _unary(self) -> float:
        op = self._accept("+", "-")
        if op == "-":
            return -self._unary()
        if op == "+":
            return self._unary()
        return self._power()

    def _power(self) -> float:
        base = self._primary()
        if self._accept("**") is not None:
            return math.pow(base, self._unary())
        return base

    def _primary(self) -> float:
        tok = self._peek()
        if tok is None:
            raise FormulaError("unexpected end of formula")
        kind, value = tok
        if kind == "num":
            self._pos += 1
            return value
        if kind == "arg":
            self._pos += 1
            try:
                return self._args[value]
            except IndexError:
                raise FormulaError(f"unknown placeholder {value}") from None
        if self._accept("(") is not None:
            inner = self._expr()
            if self._accept(")") is None:
                raise FormulaError("missing closing parenthesis")
            return inner
        raise FormulaError(f"unexpected token {value!r}")


def _divide(lhs: float, rhs: float) -> float:
    """Float division that yields inf/nan instead of raising on zero."""
    if rhs == 0:
        if lhs == 0 or math.isnan(lhs):
            return math.nan
        return math.copysign(math.inf, lhs) * math.copysign(1.0, rhs)
    return lhs / rhs


def evaluate_arithmetic(expr: str, args: list[float] | None = None) -> float:
    """Evaluate a placeholder-substituted arithmetic expression."""
    return _Parser(tokenize(expr), list(args or [])).parse()


def round_half_up(value: float, digits: int) -> float:
    """Round exact ties away from zero: 0.125 -> 0.13, -0.125 -> -0.13."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# CalculationEngine
# ---------------------------------------------------------------------------

class CalculationEngine:
    """Evaluates screen calculations against the answer map.

    Args:
        aliases: alias table so formulas may name any alias of an answer key.
        today: fixed "today" for age calculations; defaults to the current
            date at evaluation time.
    """

    def __init__(
        self,
        aliases: AliasTable | None = None,
        today: date | None = None,
    ) -> None:
        self._aliases = aliases if aliases is not None else AliasTable()
        self._today = today

    def perform(
        self,
        calculations: Iterable[Calculation],
        answers: Mapping[str, Any],
    ) -> dict[str, Optional[float]]:
        """Run every calculation; a failing one yields None without affecting others."""
        return {
            calc.id: self.evaluate_formula(calc.formula, answers)
            for calc in calculations
        }

    def evaluate_formula(self, formula: str, answers: Mapping[str, Any]) -> Optional[float]:
        """Evaluate one formula.  Returns None when it is not computable yet."""
        try:
            expanded = self._aliases.expand(answers)
            substituted, args = self.substitute(formula, expanded)

            # Anything alphabetic left over is a variable without an answer
            if _LETTER.search(_PLACEHOLDER.sub("", substituted)):
                logger.debug("Formula %r has unresolved variables", formula)
                return None

            result = evaluate_arithmetic(substituted, args)
            if not math.isfinite(result):
                return None
            return round_half_up(result, CALC_PRECISION)
        except Exception as exc:
            logger.warning("Error evaluating formula %r: %s", formula, exc)
            return None

    def substitute(
        self, formula: str, answers: Mapping[str, Any]
    ) -> tuple[str, list[float]]:
        """Replace ``AGE()`` calls and numeric answer keys with placeholders.

        Returns the substituted formula and the positional argument values.
        """
        args: list[float] = []

        def _age(match: re.Match) -> str:
            born = parse_date(answers.get(match.group(1)))
            if born is None:
                return match.group(0)
            args.append(float(age_in_years(born, self._today or date.today())))
            return f"__arg{len(args) - 1}__"

        substituted = _AGE_CALL.sub(_age, formula)

        for name, value in answers.items():
            if not is_numeric(value):
                continue
            pattern = re.compile(rf"(?<![\w.]){re.escape(name)}(?![\w.])")
            if not pattern.search(substituted):
                continue
            substituted = pattern.sub(f"__arg{len(args)}__", substituted)
            args.append(parse_number(value))

        return substituted, args
