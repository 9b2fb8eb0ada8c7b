"""intake_engine — form navigation & eligibility SDK for intake questionnaires.

Public API:
    IntakeSession        — navigation state machine for one intake
    FormStore            — loads form configurations (YAML/JSON) into typed models
    FormConfig           — a parsed form: screens, eligibility rules, provider packet
    ConditionEvaluator   — evaluates branch/eligibility/visibility conditions
    CalculationEngine    — evaluates screen formulas (BMI, age) safely
    EligibilityProcessor — accumulates flags from global eligibility rules
    AliasTable           — canonical answer keys and their read-compatible aliases
    SessionSnapshot      — serialisable view of session state
    ReviewItem           — one answered field on the review screen

Helpers:
    interpolate_text     — ``${calc.x}`` / ``${key}`` templating for screen copy
    validate_screen      — field-level validation of a question screen
    build_review_items   — provider-packet summary for review screens
"""

from intake_engine.aliases import AliasTable
from intake_engine.calculator import CalculationEngine
from intake_engine.eligibility import EligibilityProcessor
from intake_engine.engine import IntakeSession
from intake_engine.evaluator import ConditionEvaluator
from intake_engine.formstore import FormStore
from intake_engine.interpolate import interpolate_text
from intake_engine.models.form import EligibilityRule, FormConfig
from intake_engine.models.session import Direction, ReviewItem, SessionSnapshot
from intake_engine.review import build_review_items
from intake_engine.validators import validate_screen

__all__ = [
    # Engine & store
    "IntakeSession",
    "FormStore",
    # Components
    "AliasTable",
    "CalculationEngine",
    "ConditionEvaluator",
    "EligibilityProcessor",
    # Models
    "Direction",
    "EligibilityRule",
    "FormConfig",
    "ReviewItem",
    "SessionSnapshot",
    # Helpers
    "build_review_items",
    "interpolate_text",
    "validate_screen",
]
