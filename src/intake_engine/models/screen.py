"""Screen type models for intake form graphs.

Each screen type maps to a specific UI component and answer handling logic:

  Question screens (collect answers):
    - single_select: pick one option
    - multi_select: pick one or more options (optional "other" free text)
    - composite: several fields on one screen (rows, groups, conditional display)
    - text: free text with optional mask/pattern validation
    - number: numeric input with min/max
    - date: calendar date
    - consent: list of consent checkboxes

  Flow screens (collect nothing):
    - content: informational copy with a primary call to action
    - interstitial: transition/celebration screen between sections
    - review: summary of answers with edit links
    - terminal: end of the flow (success or warning)

The discriminated ``Screen`` union uses ``type`` as its discriminator.
Presentation keys the engine does not interpret (copy, images, CTAs) are kept
as extra attributes so consumers can still read them.
"""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from intake_engine.constants import NON_PROGRESS_TYPES

from .routing import BranchRule, Calculation


# --- Shared option/field models ---

class Option(BaseModel):
    """A selectable option: stored ``value`` and display ``label``."""

    value: str
    label: str
    risk_level: Optional[str] = None


class Link(BaseModel):
    label: str
    url: str


class ConsentItem(BaseModel):
    """A single consent checkbox on a consent or content screen."""

    id: str
    label: str
    links: List[Link] = []
    required: bool = False


class CrossFieldRule(BaseModel):
    """Compare this field's value with another answer."""

    field: str
    error: str


class Validation(BaseModel):
    """Field validation constraints (all optional)."""

    pattern: Optional[str] = None
    error: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    less_than_field: Optional[CrossFieldRule] = None
    greater_than_field: Optional[CrossFieldRule] = None
    matches: Optional[str] = None


class ConditionalDisplay(BaseModel):
    """Show a field only while ``show_if`` holds."""

    show_if: str


class ConditionalOptions(BaseModel):
    """Pick a field's option list from another answer's value."""

    based_on: str
    options_map: Dict[str, List[Option]]


# --- Composite screen fields ---

class BaseField(BaseModel):
    """Fields shared by all composite-screen field types."""

    model_config = ConfigDict(extra="allow")

    id: str
    label: str = ""
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    required: bool = False
    validation: Optional[Validation] = None
    conditional_display: Optional[ConditionalDisplay] = None
    conditional_options: Optional[ConditionalOptions] = None

    @property
    def show_if(self) -> Optional[str]:
        return self.conditional_display.show_if if self.conditional_display else None


class TextField(BaseField):
    type: Literal["text", "email", "password"]
    mask: Optional[str] = None
    multiline: bool = False
    rows: Optional[int] = None


class NumberField(BaseField):
    type: Literal["number"]
    min: Optional[float] = None
    max: Optional[float] = None
    suffix: Optional[str] = None


class SelectField(BaseField):
    type: Literal["single_select", "multi_select"]
    options: List[Option] = []
    other_text_id: Optional[str] = None
    auto_advance: bool = False


class CheckboxField(BaseField):
    type: Literal["checkbox"]
    value: Optional[bool] = None


class ConsentItemField(BaseField):
    type: Literal["consent_item"]
    links: List[Link] = []


class MedicationDetailsGroupField(BaseField):
    """A nested group of fields (e.g. dose, start date, currently taking)."""

    type: Literal["medication_details_group"]
    fields: List[Union[FormField, List[FormField]]] = []


FormField = Annotated[
    Union[
        TextField,
        NumberField,
        SelectField,
        CheckboxField,
        ConsentItemField,
        MedicationDetailsGroupField,
    ],
    Field(discriminator="type"),
]

MedicationDetailsGroupField.model_rebuild()


def flatten_fields(fields: List[Union[FormField, List[FormField]]]) -> List[FormField]:
    """Flatten row groups and medication groups into a single field list.

    Group containers themselves are kept (before their children) so callers
    can evaluate the group's own ``show_if``.
    """
    flat: List[FormField] = []
    for item in fields:
        if isinstance(item, list):
            flat.extend(flatten_fields(item))
            continue
        flat.append(item)
        if isinstance(item, MedicationDetailsGroupField):
            flat.extend(flatten_fields(item.fields))
    return flat


# --- Base screen type ---

class BaseScreen(BaseModel):
    """Attributes shared by all screen types."""

    model_config = ConfigDict(extra="allow")

    id: str
    phase: Optional[str] = None
    next: Optional[str] = None
    next_logic: Optional[List[BranchRule]] = None
    calculations: Optional[List[Calculation]] = None
    safety_critical: bool = False
    # Redirects where this screen's answer is read from / written to
    field_id: Optional[str] = None

    @property
    def answer_key(self) -> str:
        """Key of this screen's own answer in the answer map."""
        return self.field_id or self.id

    @property
    def counts_toward_progress(self) -> bool:
        return self.type not in NON_PROGRESS_TYPES

    def answer_keys(self) -> List[str]:
        """Every answer key this screen writes.  Flow screens write none."""
        return []

    def targets(self) -> List[str]:
        """Every screen id this screen can route to."""
        out = [rule.target for rule in self.next_logic or []]
        if self.next:
            out.append(self.next)
        return out


# --- Flow screens ---

class ContentScreen(BaseScreen):
    type: Literal["content"] = "content"
    headline: str
    body: str = ""
    status: Optional[Literal["warning", "success", "info"]] = None
    consent_items: List[ConsentItem] = []

    def answer_keys(self) -> List[str]:
        return [item.id for item in self.consent_items]


class InterstitialScreen(BaseScreen):
    type: Literal["interstitial"] = "interstitial"
    variant: Optional[str] = None


class ReviewScreen(BaseScreen):
    type: Literal["review"] = "review"
    title: str
    help_text: Optional[str] = None


class TerminalScreen(BaseScreen):
    type: Literal["terminal"] = "terminal"
    status: Literal["success", "warning"]
    title: str
    body: str = ""


# --- Question screens ---

class SingleSelectScreen(BaseScreen):
    type: Literal["single_select"] = "single_select"
    title: str
    help_text: Optional[str] = None
    options: List[Option] = []
    auto_advance: bool = False
    required: bool = False

    def answer_keys(self) -> List[str]:
        return [self.answer_key]


class MultiSelectScreen(BaseScreen):
    type: Literal["multi_select"] = "multi_select"
    title: str
    help_text: Optional[str] = None
    options: List[Option] = []
    other_text_id: Optional[str] = None
    required: bool = False

    def answer_keys(self) -> List[str]:
        keys = [self.answer_key]
        if self.other_text_id:
            keys.append(self.other_text_id)
        return keys


class CompositeScreen(BaseScreen):
    type: Literal["composite"] = "composite"
    title: str
    help_text: Optional[str] = None
    fields: List[Union[FormField, List[FormField]]]
    footer_note: Optional[str] = None
    post_screen_note: Optional[str] = None

    def flat_fields(self) -> List[FormField]:
        return flatten_fields(self.fields)

    def answer_keys(self) -> List[str]:
        keys: List[str] = []
        for f in self.flat_fields():
            if isinstance(f, MedicationDetailsGroupField):
                continue
            keys.append(f.id)
            if isinstance(f, SelectField) and f.other_text_id:
                keys.append(f.other_text_id)
        return keys


class TextScreen(BaseScreen):
    type: Literal["text"] = "text"
    title: str
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    mask: Optional[str] = None
    validation: Optional[Validation] = None
    required: bool = False
    min_today: bool = False
    multiline: bool = False

    def answer_keys(self) -> List[str]:
        return [self.answer_key]


class NumberScreen(BaseScreen):
    type: Literal["number"] = "number"
    title: str
    help_text: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    suffix: Optional[str] = None
    validation: Optional[Validation] = None
    required: bool = False

    def answer_keys(self) -> List[str]:
        return [self.answer_key]


class DateScreen(BaseScreen):
    type: Literal["date"] = "date"
    title: str
    help_text: Optional[str] = None
    min_today: bool = False
    required: bool = False

    def answer_keys(self) -> List[str]:
        return [self.answer_key]


class ConsentScreen(BaseScreen):
    type: Literal["consent"] = "consent"
    title: str
    items: List[ConsentItem]

    def answer_keys(self) -> List[str]:
        return [item.id for item in self.items]


# --- Discriminated union of all screen types ---

Screen = Annotated[
    Union[
        ContentScreen,
        InterstitialScreen,
        SingleSelectScreen,
        MultiSelectScreen,
        CompositeScreen,
        TextScreen,
        NumberScreen,
        DateScreen,
        ConsentScreen,
        ReviewScreen,
        TerminalScreen,
    ],
    Field(discriminator="type"),
]

# Maps type string -> Pydantic class for building screens one at a time.
screen_mapper = {
    "content": ContentScreen,
    "interstitial": InterstitialScreen,
    "single_select": SingleSelectScreen,
    "multi_select": MultiSelectScreen,
    "composite": CompositeScreen,
    "text": TextScreen,
    "number": NumberScreen,
    "date": DateScreen,
    "consent": ConsentScreen,
    "review": ReviewScreen,
    "terminal": TerminalScreen,
}
