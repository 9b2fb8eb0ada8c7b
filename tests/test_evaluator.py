"""ConditionEvaluator unit tests — operators, operand resolution, branching.

Operator reference (tried in this order, first clean two-way split wins):
    contains        — list membership of the unquoted literal
    in              — JSON array literal (single quotes allowed)
    == / !=         — string comparison after unquoting the literal
    < > <= >=       — numeric comparison (numeric strings are coerced)

Conditions never raise: a malformed condition or a missing operand is false.
"""

import pytest

from intake_engine.aliases import AliasTable
from intake_engine.evaluator import ConditionEvaluator, parse_condition, split_compound
from intake_engine.models.routing import BranchRule


@pytest.fixture
def evaluator():
    """Fresh ConditionEvaluator for each test."""
    return ConditionEvaluator()


def _check(evaluator, condition, answer=None, answers=None, calcs=None, flags=()):
    return evaluator.check(condition, answer, answers or {}, calcs or {}, flags)


# =====================================================================
# Parsing
# =====================================================================


class TestParsing:
    """parse_condition / split_compound."""

    def test_simple_split(self):
        assert parse_condition("calc.bmi < 19") == ("calc.bmi", "<", "19")

    def test_two_char_operator(self):
        assert parse_condition("calc.age >= 12") == ("calc.age", ">=", "12")

    def test_contains_before_equality(self):
        assert parse_condition("answer contains 'other'") == ("answer", "contains", "'other'")

    def test_no_operator(self):
        assert parse_condition("answer is yes") is None

    def test_ambiguous_split_is_rejected(self):
        """Two '==' in one atomic condition do not split into two parts."""
        assert parse_condition("a == b == c") is None

    def test_compound_groups(self):
        groups = split_compound("a == 1 AND b == 2 OR c == 3")
        assert groups == [["a == 1", "b == 2"], ["c == 3"]]

    def test_lowercase_connectives(self):
        groups = split_compound("a == 1 and b == 2 or c == 3")
        assert groups == [["a == 1", "b == 2"], ["c == 3"]]


# =====================================================================
# Operators
# =====================================================================


class TestOperators:
    """One positive and one negative case per operator."""

    def test_equality(self, evaluator):
        assert _check(evaluator, "answer == 'yes'", "yes") is True
        assert _check(evaluator, "answer == 'yes'", "no") is False

    def test_equality_double_quotes(self, evaluator):
        assert _check(evaluator, 'answer == "type1"', "type1") is True

    def test_inequality(self, evaluator):
        assert _check(evaluator, "answer != 'yes'", "no") is True
        assert _check(evaluator, "answer != 'yes'", "yes") is False

    def test_equality_with_boolean(self, evaluator):
        """Booleans compare as the strings true/false."""
        assert _check(evaluator, "used_wegovy == true", answers={"used_wegovy": True}) is True
        assert _check(evaluator, "used_wegovy == true", answers={"used_wegovy": False}) is False

    def test_equality_with_integral_number(self, evaluator):
        assert _check(evaluator, "answer == 5", 5.0) is True

    def test_less_than(self, evaluator):
        assert _check(evaluator, "calc.bmi < 19", calcs={"bmi": 18.4}) is True
        assert _check(evaluator, "calc.bmi < 19", calcs={"bmi": 25}) is False

    def test_greater_than(self, evaluator):
        assert _check(evaluator, "calc.age > 90", calcs={"age": 91}) is True
        assert _check(evaluator, "calc.age > 90", calcs={"age": 90}) is False

    def test_less_equal_and_greater_equal(self, evaluator):
        assert _check(evaluator, "calc.age <= 18", calcs={"age": 18}) is True
        assert _check(evaluator, "calc.age >= 12", calcs={"age": 11}) is False

    def test_numeric_string_coercion(self, evaluator):
        assert _check(evaluator, "weight < 200", answers={"weight": "180 lb"}) is True

    def test_non_numeric_comparison_is_false(self, evaluator):
        assert _check(evaluator, "weight < 200", answers={"weight": "heavy"}) is False

    def test_contains(self, evaluator):
        assert _check(evaluator, "answer contains 'pancreatitis'", ["pancreatitis", "gerd"]) is True
        assert _check(evaluator, "answer contains 'pancreatitis'", ["gerd"]) is False

    def test_contains_on_scalar_is_false(self, evaluator):
        assert _check(evaluator, "answer contains 'x'", "x") is False

    def test_in(self, evaluator):
        cond = "assess.pregnancy in ['pregnant','trying','nursing']"
        assert _check(evaluator, cond, answers={"assess.pregnancy": "trying"}) is True
        assert _check(evaluator, cond, answers={"assess.pregnancy": "none"}) is False

    def test_flags_operand(self, evaluator):
        cond = "flags contains 'flag_no_medication'"
        assert _check(evaluator, cond, flags={"flag_no_medication"}) is True
        assert _check(evaluator, cond, flags=set()) is False


# =====================================================================
# Compound conditions
# =====================================================================


class TestCompound:
    """AND binds tighter than OR; no parentheses."""

    def test_or(self, evaluator):
        cond = "calc.age < 12 OR calc.age > 90"
        assert _check(evaluator, cond, calcs={"age": 95}) is True
        assert _check(evaluator, cond, calcs={"age": 40}) is False

    def test_and(self, evaluator):
        cond = "calc.age >= 12 AND calc.age < 18"
        assert _check(evaluator, cond, calcs={"age": 15}) is True
        assert _check(evaluator, cond, calcs={"age": 18}) is False

    def test_and_binds_tighter(self, evaluator):
        cond = "a == 1 AND b == 2 OR c == 3"
        assert _check(evaluator, cond, answers={"a": "0", "b": "0", "c": "3"}) is True
        assert _check(evaluator, cond, answers={"a": "1", "b": "0", "c": "0"}) is False

    def test_lowercase_or(self, evaluator):
        cond = (
            "medical.substance_use.alcohol == 'heavy' "
            "or medical.substance_use.substances contains 'meth'"
        )
        answers = {"medical.substance_use.alcohol": "heavy"}
        assert _check(evaluator, cond, answers=answers) is True
        answers = {"medical.substance_use.substances": ["meth"]}
        assert _check(evaluator, cond, answers=answers) is True
        assert _check(evaluator, cond, answers={"medical.substance_use.alcohol": "none"}) is False


# =====================================================================
# Failure semantics
# =====================================================================


class TestNeverRaises:
    """Malformed input degrades to False instead of raising."""

    @pytest.mark.parametrize("condition", [
        "",
        "   ",
        "nonsense",
        "answer in [broken",
        "answer in {'a': 1}",
        "answer ~= 'x'",
    ])
    def test_malformed_conditions_are_false(self, evaluator, condition):
        assert _check(evaluator, condition, "x") is False

    def test_missing_operand_is_false(self, evaluator):
        assert _check(evaluator, "medical.diabetes == 'type1'") is False
        assert _check(evaluator, "medical.diabetes != 'type1'") is False

    def test_missing_calculation_is_false(self, evaluator):
        assert _check(evaluator, "calc.bmi < 19", calcs={"bmi": None}) is False

    def test_well_formed(self, evaluator):
        assert evaluator.is_well_formed("calc.age < 12 OR calc.age > 90") is True
        assert evaluator.is_well_formed("answer in ['a']") is True
        assert evaluator.is_well_formed("answer in [broken") is False
        assert evaluator.is_well_formed("answer is yes") is False


# =====================================================================
# Operand resolution
# =====================================================================


class TestResolution:
    """Left-hand operands: answer, calc.*, flags, plain keys and aliases."""

    def test_dotted_answer_key(self, evaluator):
        answers = {"medical.diabetes": "type1"}
        assert _check(evaluator, "medical.diabetes == 'type1'", answers=answers) is True

    def test_alias_read(self):
        evaluator = ConditionEvaluator(AliasTable({"state": ["shipping_state", "home_state"]}))
        answers = {"state": "TX"}
        assert _check(evaluator, "shipping_state == 'TX'", answers=answers) is True
        assert _check(evaluator, "home_state == 'TX'", answers=answers) is True

    def test_flags_resolve_sorted(self, evaluator):
        assert evaluator.resolve("flags", None, {}, {}, {"b", "a"}) == ["a", "b"]


# =====================================================================
# Branch tables
# =====================================================================


class TestEvaluateLogic:
    """First matching ``if`` wins, else the ``else`` target."""

    @pytest.fixture
    def logic(self):
        return [
            BranchRule.model_validate({"if": "answer == 'a'", "go_to": "T1"}),
            BranchRule.model_validate({"if": "answer contains 'a'", "go_to": "T2"}),
            BranchRule.model_validate({"else": "T3"}),
        ]

    def test_first_match_wins(self, evaluator, logic):
        """C1 true → T1 regardless of C2."""
        assert evaluator.evaluate_logic(logic, "a", {}, {}, ()) == "T1"

    def test_second_match(self, evaluator, logic):
        """C1 false ('a,b' != 'a'), C2 true → T2."""
        assert evaluator.evaluate_logic(logic, ["a", "b"], {}, {}, ()) == "T2"

    def test_else(self, evaluator, logic):
        assert evaluator.evaluate_logic(logic, "z", {}, {}, ()) == "T3"

    def test_no_else_returns_none(self, evaluator):
        logic = [BranchRule.model_validate({"if": "answer == 'a'", "go_to": "T1"})]
        assert evaluator.evaluate_logic(logic, "z", {}, {}, ()) is None

    def test_visibility(self, evaluator):
        assert evaluator.is_visible(None, {}) is True
        cond = "mental_health_diagnosis contains 'other'"
        assert evaluator.is_visible(cond, {"mental_health_diagnosis": ["other"]}) is True
        assert evaluator.is_visible(cond, {"mental_health_diagnosis": ["ptsd"]}) is False
