"""Public model re-exports for intake_engine.

Consumers should import from ``intake_engine.models`` rather than
reaching into sub-modules directly.
"""

# --- Routing ---
from intake_engine.models.routing import BranchRule, Calculation

# --- Screens ---
from intake_engine.models.screen import (
    BaseField,
    BaseScreen,
    CheckboxField,
    CompositeScreen,
    ConditionalDisplay,
    ConditionalOptions,
    ConsentItem,
    ConsentItemField,
    ConsentScreen,
    ContentScreen,
    DateScreen,
    FormField,
    InterstitialScreen,
    MedicationDetailsGroupField,
    MultiSelectScreen,
    NumberField,
    NumberScreen,
    Option,
    ReviewScreen,
    Screen,
    SelectField,
    SingleSelectScreen,
    TerminalScreen,
    TextField,
    TextScreen,
    Validation,
    flatten_fields,
    screen_mapper,
)

# --- Form ---
from intake_engine.models.form import (
    EligibilityRule,
    FormConfig,
    FormMeta,
    FormSettings,
    ProviderPacket,
)

# --- Session ---
from intake_engine.models.session import Direction, ReviewItem, SessionSnapshot

__all__ = [
    # Routing
    "BranchRule",
    "Calculation",
    # Screens
    "BaseField",
    "BaseScreen",
    "CheckboxField",
    "CompositeScreen",
    "ConditionalDisplay",
    "ConditionalOptions",
    "ConsentItem",
    "ConsentItemField",
    "ConsentScreen",
    "ContentScreen",
    "DateScreen",
    "FormField",
    "InterstitialScreen",
    "MedicationDetailsGroupField",
    "MultiSelectScreen",
    "NumberField",
    "NumberScreen",
    "Option",
    "ReviewScreen",
    "Screen",
    "SelectField",
    "SingleSelectScreen",
    "TerminalScreen",
    "TextField",
    "TextScreen",
    "Validation",
    "flatten_fields",
    "screen_mapper",
    # Form
    "EligibilityRule",
    "FormConfig",
    "FormMeta",
    "FormSettings",
    "ProviderPacket",
    # Session
    "Direction",
    "ReviewItem",
    "SessionSnapshot",
]
