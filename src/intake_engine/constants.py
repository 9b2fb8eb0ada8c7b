"""Intake engine constants shared across the SDK.

These values are referenced by the session engine, calculation engine, and
form store.  A few can be overridden via environment variables so that
deployments can tune behaviour without code changes.
"""

import os

# Operators recognised by the condition evaluator, in the order they are
# tried.  The first operator that splits a condition into exactly two parts
# wins; there is no precedence between them.
CONDITION_OPERATORS: tuple[str, ...] = ("contains", "in", "==", "<", ">", "<=", ">=", "!=")

# Decimal places kept for calculation results (BMI, age).
# Overridable via INTAKE_CALC_PRECISION env var.
CALC_PRECISION = int(os.getenv("INTAKE_CALC_PRECISION", "2"))

# When true, FormStore.load() raises on configuration lint problems instead
# of logging them.  Overridable via INTAKE_STRICT_FORMS env var.
STRICT_FORMS = os.getenv("INTAKE_STRICT_FORMS", "0").lower() in ("1", "true", "yes")

# Screen types that do not count toward the progress bar.
NON_PROGRESS_TYPES: frozenset[str] = frozenset({"terminal", "review"})

# Selecting this option in a multi-select clears every other choice.
EXCLUSIVE_OPTION = "none"

# Deselecting this option clears the screen's dependent free-text answer.
OTHER_OPTION = "other"

# Review screen grouping: (group name, key prefixes, exact keys).
REVIEW_GROUPS: list[tuple[str, tuple[str, ...], tuple[str, ...]]] = [
    ("Your Details", ("demographics.", "contact."), ("email", "password")),
    ("Measurements", ("anthro.",), ("goal.range", "weight", "height_ft", "highest_weight")),
    ("Medical History", ("safety.", "medical.", "assess."), ()),
    ("Goals & Motivation", ("goals.", "goal.", "motivation."), ()),
    ("Medication", ("meds.",), ()),
]
REVIEW_FALLBACK_GROUP = "Other"
