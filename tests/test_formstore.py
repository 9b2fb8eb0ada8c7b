"""FormStore tests — loading the bundled forms, lookup and configuration linting."""

import json
import logging

import pydantic
import pytest
import yaml

from intake_engine.formstore import FormStore, find_repo_root, load_document, slug_for
from intake_engine.models.screen import (
    CompositeScreen,
    InterstitialScreen,
    MedicationDetailsGroupField,
    NumberScreen,
    TerminalScreen,
)

from helpers.builders import make_form, screen


def _write(directory, name, data):
    path = directory / name
    if name.endswith(".json"):
        path.write_text(json.dumps(data), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


MINIMAL = {
    "meta": {"product": "Test", "form_name": "Minimal", "version": "0.0.1"},
    "screens": [
        {"id": "q1", "type": "single_select", "title": "Pick one", "next": "end"},
        {"id": "end", "type": "terminal", "status": "success", "title": "Done"},
    ],
}


# =====================================================================
# Bundled forms
# =====================================================================


class TestBundledForms:
    """The forms shipped in forms/ load cleanly."""

    def test_slugs(self, store):
        assert store.slugs() == ["strength-recovery", "weight-loss"]

    @pytest.mark.parametrize("slug", ["strength-recovery", "weight-loss"])
    def test_lint_clean(self, store, slug):
        assert store.lint(store.get(slug)) == []

    def test_weight_loss_shape(self, weight_loss):
        assert weight_loss.meta.product == "Weight Loss Program"
        assert weight_loss.first_screen_id == "goal.range"
        assert len(weight_loss.screens) == 41
        assert len(weight_loss.eligibility_rules) == 15
        assert weight_loss.aliases == {"goal_weight": ["target_weight"]}

    def test_condition(self, weight_loss):
        assert weight_loss.condition == "Weight Loss"
        form = make_form(screen("a", "terminal"), meta={"product": "Hair Program"})
        assert form.condition == "Hair Program"

    def test_screen_types_are_discriminated(self, weight_loss):
        assert isinstance(weight_loss.get_screen("assess.body_measurements"), CompositeScreen)
        assert isinstance(weight_loss.get_screen("assess.goal_weight"), NumberScreen)
        assert isinstance(weight_loss.get_screen("interstitial.success"), InterstitialScreen)
        assert isinstance(weight_loss.get_screen("complete.success"), TerminalScreen)

    def test_nested_fields(self, weight_loss):
        glp1 = weight_loss.get_screen("treatment.glp1_history")
        group = next(f for f in glp1.flat_fields() if f.id == "other_details")
        assert isinstance(group, MedicationDetailsGroupField)
        assert [f.id for f in group.fields] == ["other_name", "other_dose"]

    def test_branch_rule_aliases(self, weight_loss):
        dob = weight_loss.get_screen("demographics.dob")
        assert dob.next_logic[0].if_ == "calc.age < 12"
        assert dob.next_logic[-1].is_else
        assert dob.next_logic[-1].target == "assess.body_measurements"

    def test_yes_no_values_stay_strings(self, weight_loss):
        ideation = weight_loss.get_screen("assess.mental_health_ideation")
        assert [o.value for o in ideation.options] == ["no", "yes"]

    def test_field_id_answer_key(self, weight_loss):
        assert weight_loss.get_screen("assess.sex_birth").answer_key == "sex_birth"
        assert weight_loss.get_screen("goal.range").answer_key == "goal.range"

    def test_screen_for_answer_key(self, weight_loss):
        assert weight_loss.screen_for_answer_key("height_in").id == "assess.body_measurements"
        assert weight_loss.screen_for_answer_key("medical_conditions_other").id == "assess.medical_conditions"
        assert weight_loss.screen_for_answer_key("nope") is None

    def test_get_unknown(self, store):
        with pytest.raises(KeyError, match="Unknown form"):
            store.get("hair-loss")

    def test_default_directory(self):
        assert FormStore().forms_dir == find_repo_root() / "forms"


# =====================================================================
# Loading from disk
# =====================================================================


class TestLoading:
    def test_yaml_and_json(self, tmp_path):
        _write(tmp_path, "first_form.yaml", MINIMAL)
        _write(tmp_path, "second.json", MINIMAL)
        (tmp_path / "README.md").write_text("ignored", encoding="utf-8")
        store = FormStore(forms_dir=tmp_path)
        store.load()
        assert store.slugs() == ["first-form", "second"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FormStore(forms_dir=tmp_path / "nowhere").load()

    def test_duplicate_slug(self, tmp_path):
        _write(tmp_path, "weight_loss.yaml", MINIMAL)
        _write(tmp_path, "weight-loss.json", MINIMAL)
        with pytest.raises(ValueError, match="duplicate form slug"):
            FormStore(forms_dir=tmp_path).load()

    def test_invalid_screen_type(self, tmp_path):
        bad = {"screens": [{"id": "q1", "type": "slider", "title": "?"}]}
        path = _write(tmp_path, "bad.yaml", bad)
        with pytest.raises(pydantic.ValidationError):
            FormStore(forms_dir=tmp_path).load_file(path)

    def test_duplicate_screen_id(self, tmp_path):
        dup = {"screens": [MINIMAL["screens"][0], MINIMAL["screens"][0]]}
        path = _write(tmp_path, "dup.yaml", dup)
        with pytest.raises(pydantic.ValidationError, match="duplicate screen id"):
            FormStore(forms_dir=tmp_path).load_file(path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "form.toml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError, match="unsupported"):
            FormStore(forms_dir=tmp_path).load_file(path)

    def test_load_document_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_document(tmp_path / "missing.yaml")

    def test_slug_for(self, tmp_path):
        assert slug_for(tmp_path / "strength_recovery.yaml") == "strength-recovery"


# =====================================================================
# Linting
# =====================================================================


class TestLint:
    """Configuration problems are reported, and raised only in strict mode."""

    @pytest.fixture
    def broken(self):
        return {
            "screens": [
                {
                    "id": "q1", "type": "number", "title": "Weight",
                    "calculations": [{"id": "x", "formula": "w * 2"}],
                    "next_logic": [
                        {"if": "calc.y > 3", "go_to": "end"},
                        {"if": "answer is big", "go_to": "end"},
                        {"else": "gone"},
                    ],
                },
                {"id": "end", "type": "terminal", "status": "success", "title": "Done"},
            ],
            "eligibility_rules": [
                {"rule": "r1", "if": "q1 in [broken", "action": "flag_x"},
            ],
        }

    def test_problems_reported(self, tmp_path, broken):
        store = FormStore(forms_dir=tmp_path, strict=False)
        problems = store.lint(make_form(*broken["screens"], rules=broken["eligibility_rules"]))
        assert "screen q1: unknown calculation 'y'" in problems
        assert "screen q1: unparseable condition 'answer is big'" in problems
        assert "screen q1: unknown target 'gone'" in problems
        assert "rule r1: unparseable condition 'q1 in [broken'" in problems
        assert len(problems) == 4

    def test_lenient_load_logs(self, tmp_path, broken, caplog):
        path = _write(tmp_path, "broken.yaml", broken)
        with caplog.at_level(logging.WARNING, logger="intake_engine.formstore"):
            form = FormStore(forms_dir=tmp_path, strict=False).load_file(path)
        assert form.first_screen_id == "q1"
        assert "unknown target 'gone'" in caplog.text

    def test_strict_load_raises(self, tmp_path, broken):
        path = _write(tmp_path, "broken.yaml", broken)
        with pytest.raises(ValueError, match="configuration problem"):
            FormStore(forms_dir=tmp_path, strict=True).load_file(path)

    def test_duplicate_calculation_id(self):
        form = make_form(
            screen("a", "number", calculations=[{"id": "x", "formula": "1"}], next="b"),
            screen("b", "number", calculations=[{"id": "x", "formula": "2"}], next="c"),
            screen("c", "terminal"),
        )
        assert FormStore(strict=False).lint(form) == ["screen b: duplicate calculation id 'x'"]

    def test_show_if_checked(self):
        form = make_form(
            screen("a", "composite", fields=[
                {"id": "f1", "type": "text", "conditional_display": {"show_if": "f0 maybe"}},
            ]),
        )
        assert FormStore(strict=False).lint(form) == [
            "field a/f1: unparseable condition 'f0 maybe'",
        ]
