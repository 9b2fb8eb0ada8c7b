"""Field and screen validation tests."""

from datetime import date

import pytest

from intake_engine.aliases import AliasTable
from intake_engine.engine import IntakeSession
from intake_engine.models.screen import Validation
from intake_engine.validators import (
    CONSENT_MESSAGE,
    INVALID_DATE_MESSAGE,
    INVALID_NUMBER_MESSAGE,
    PAST_DATE_MESSAGE,
    REQUIRED_MESSAGE,
    validate_cross_field,
    validate_date,
    validate_number_range,
    validate_required,
    validate_screen,
)

from helpers.builders import make_form, screen

TODAY = date(2026, 1, 1)


# =====================================================================
# Single-purpose validators
# =====================================================================


class TestRequired:
    @pytest.mark.parametrize("value", [None, "", []])
    def test_empty(self, value):
        assert validate_required(value) == REQUIRED_MESSAGE

    @pytest.mark.parametrize("value", ["x", 0, ["a"], False])
    def test_present(self, value):
        assert validate_required(value) is None


class TestNumberRange:
    def test_in_range(self):
        assert validate_number_range(150, 70, 700) is None

    def test_numeric_string(self):
        assert validate_number_range("150", 70, 700) is None

    def test_below_with_custom_error(self):
        assert validate_number_range(50, 70, 700, "Too light") == "Too light"

    def test_default_messages(self):
        assert validate_number_range(1, 2) == "Value must be at least 2."
        assert validate_number_range(15, None, 14) == "Value must be no more than 14."

    def test_not_a_number(self):
        assert validate_number_range("abc", 0, 10) == INVALID_NUMBER_MESSAGE


class TestDate:
    @pytest.fixture
    def age_rule(self):
        return Validation(min_age=12, max_age=90, error="Age out of range")

    def test_valid(self, age_rule):
        assert validate_date("05/15/1990", validation=age_rule, today=TODAY) is None

    def test_incomplete_is_not_an_error(self):
        assert validate_date("05/15", today=TODAY) is None

    def test_impossible_date(self):
        assert validate_date("02/30/1990", today=TODAY) == INVALID_DATE_MESSAGE

    def test_too_young(self, age_rule):
        assert validate_date("06/01/2016", validation=age_rule, today=TODAY) == "Age out of range"

    def test_too_old(self, age_rule):
        assert validate_date("01/01/1900", validation=age_rule, today=TODAY) == "Age out of range"

    def test_dash_mask(self):
        assert validate_date("05-15-1990", mask="##-##-####", today=TODAY) is None

    def test_min_today(self):
        assert validate_date("12/31/2025", min_today=True, today=TODAY) == PAST_DATE_MESSAGE
        assert validate_date("01/02/2026", min_today=True, today=TODAY) is None


class TestCrossField:
    def test_less_than(self):
        assert validate_cross_field(250, 260, "less_than", "err") is None
        assert validate_cross_field(260, 260, "less_than", "err") == "err"

    def test_greater_than(self):
        assert validate_cross_field(260, 250, "greater_than", "err") is None
        assert validate_cross_field(240, 250, "greater_than", "err") == "err"

    def test_matches(self):
        assert validate_cross_field("secret12", "secret12", "matches", "err") is None
        assert validate_cross_field("secret12", "secret13", "matches", "err") == "err"

    def test_other_missing_is_skipped(self):
        assert validate_cross_field(250, None, "less_than", "err") is None


# =====================================================================
# Screen validation
# =====================================================================


class TestValidateScreen:
    """validate_screen() on the bundled form and on small built screens."""

    def test_body_measurements_cross_field(self, weight_loss):
        body = weight_loss.get_screen("assess.body_measurements")
        answers = {"height_ft": 5, "height_in": 10, "weight": 260, "highest_weight": 250}
        errors = validate_screen(body, answers)
        assert errors == {
            "weight": "Current weight cannot be higher than your highest weight",
            "highest_weight": "Highest weight must be greater than your current weight",
        }

    def test_body_measurements_range(self, weight_loss):
        body = weight_loss.get_screen("assess.body_measurements")
        answers = {"height_ft": 9, "height_in": 10, "weight": 180, "highest_weight": 200}
        assert validate_screen(body, answers) == {"height_ft": "Enter height between 3-8 feet"}

    def test_missing_composite_fields(self, weight_loss):
        body = weight_loss.get_screen("assess.body_measurements")
        errors = validate_screen(body, {"height_ft": 5})
        assert set(errors) == {"height_in", "weight", "highest_weight"}
        assert set(errors.values()) == {REQUIRED_MESSAGE}

    def test_dob_pattern(self, weight_loss):
        dob = weight_loss.get_screen("demographics.dob")
        errors = validate_screen(dob, {"demographics.dob": "1990-05-15"})
        assert errors == {"demographics.dob": "Enter date as MM/DD/YYYY"}

    def test_number_screen_uses_field_id(self, weight_loss):
        goal = weight_loss.get_screen("assess.goal_weight")
        errors = validate_screen(goal, {"goal_weight": 220, "weight": 200})
        assert errors == {"goal_weight": "Goal weight must be less than your current weight"}

    def test_password_confirmation(self, weight_loss):
        account = weight_loss.get_screen("logistics.create_password")
        answers = {"password": "longenough", "password_confirm": "different1", "all_consents": True}
        assert validate_screen(account, answers) == {"password_confirm": "Passwords don't match"}

    def test_consent_item_must_be_true(self, weight_loss):
        account = weight_loss.get_screen("logistics.create_password")
        answers = {"password": "longenough", "password_confirm": "longenough"}
        assert validate_screen(account, answers) == {"all_consents": CONSENT_MESSAGE}

    def test_hidden_fields_are_skipped(self, weight_loss):
        glp1 = weight_loss.get_screen("treatment.glp1_history")
        assert validate_screen(glp1, {}) == {}
        errors = validate_screen(glp1, {"used_wegovy": True, "used_other": True})
        assert errors == {
            "wegovy_currently_taking": REQUIRED_MESSAGE,
            "other_name": REQUIRED_MESSAGE,
        }

    def test_consent_screen(self):
        form = make_form(
            screen("terms", "consent", items=[
                {"id": "tos", "label": "Terms", "required": True},
                {"id": "marketing", "label": "Emails"},
            ], next="end"),
            screen("end", "terminal"),
        )
        errors = validate_screen(form.get_screen("terms"), {"tos": False})
        assert errors == {"tos": CONSENT_MESSAGE}

    def test_flow_screens_never_fail(self, weight_loss):
        assert validate_screen(weight_loss.get_screen("interstitial.success"), {}) == {}
        assert validate_screen(weight_loss.get_screen("review.summary"), {}) == {}


class TestAliasedFields:
    """Answers stored under a canonical key satisfy fields declared by alias."""

    @pytest.fixture
    def shipping_form(self):
        return make_form(
            screen("shipping", "composite", fields=[
                {"id": "shipping_state", "type": "single_select", "label": "State", "required": True},
                {"id": "shipping_city", "type": "text", "label": "City"},
            ], next="end"),
            screen("end", "terminal"),
        )

    def test_session_stores_canonical_and_validates(self, shipping_form):
        session = IntakeSession(shipping_form)
        session.update_answer("shipping_state", "TX")
        assert session.answers == {"state": "TX"}
        assert session.validate_current() == {}

    def test_missing_value_keeps_declared_key(self, shipping_form):
        session = IntakeSession(shipping_form)
        assert session.validate_current() == {"shipping_state": REQUIRED_MESSAGE}

    def test_screen_answer_key_alias(self):
        form = make_form(screen("home_state", required=True, next="end"), screen("end", "terminal"))
        errors = validate_screen(form.get_screen("home_state"), {"state": "CA"}, aliases=AliasTable())
        assert errors == {}

    def test_cross_field_reads_alias(self):
        form = make_form(
            screen("goal", "number", validation={
                "less_than_field": {"field": "current_weight", "error": "Goal must be lower"},
            }, next="end"),
            screen("end", "terminal"),
        )
        aliases = AliasTable({"weight": ["current_weight"]})
        errors = validate_screen(form.get_screen("goal"), {"goal": 220, "weight": 200}, aliases=aliases)
        assert errors == {"goal": "Goal must be lower"}

    def test_matches_reads_alias(self):
        form = make_form(
            screen("confirm_name", "text", validation={"matches": "firstName", "error": "Names differ"}, next="end"),
            screen("end", "terminal"),
        )
        errors = validate_screen(form.get_screen("confirm_name"), {"confirm_name": "Sam", "first_name": "Ana"})
        assert errors == {"confirm_name": "Names differ"}
