"""Form configuration models — the document the engine is built from.

A form configuration is loaded once (from YAML or JSON) and never mutated:

  - FormConfig: meta, settings, the screen list, global eligibility rules,
    provider packet definition and the alias table
  - EligibilityRule: a global rule that raises a flag when its condition holds

``if`` is a Python keyword, so :class:`EligibilityRule` exposes it as ``if_``
and accepts the YAML key as an alias.  Branch rules and calculations live
in :mod:`intake_engine.models.routing`.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .screen import Screen


class EligibilityRule(BaseModel):
    """Global rule: when ``if`` holds, ``action`` is added to the flag set."""

    model_config = ConfigDict(populate_by_name=True)

    rule: str
    if_: str = Field(alias="if")
    action: str
    severity: Optional[str] = None


class FormMeta(BaseModel):
    product: str = ""
    form_name: str = ""
    version: str = ""
    language: str = "en-US"


class FormSettings(BaseModel):
    """Presentation settings; the engine only passes them through."""

    model_config = ConfigDict(extra="allow")

    progress_bar: bool = True
    show_back_button: bool = True
    autosave_ms: int = 0
    show_phase_indicator: bool = False
    theme: Optional[dict] = None


class ProviderPacket(BaseModel):
    """Fields summarised for the reviewing clinician (and the review screen)."""

    include_fields: List[str] = []
    summary_template: str = ""
    risk_stratification: Optional[Dict[str, List[str]]] = None


class FormConfig(BaseModel):
    """A complete intake form: the screen graph plus its global rules."""

    meta: FormMeta = FormMeta()
    settings: FormSettings = FormSettings()
    screens: List[Screen]
    eligibility_rules: List[EligibilityRule] = []
    provider_packet: Optional[ProviderPacket] = None
    default_condition: Optional[str] = None
    # canonical answer key -> alias keys, layered over the default alias table
    aliases: Dict[str, List[str]] = {}

    @model_validator(mode="after")
    def _chk(self):
        if not self.screens:
            raise ValueError("form must define at least one screen")
        seen: set[str] = set()
        for screen in self.screens:
            if screen.id in seen:
                raise ValueError(f"duplicate screen id: {screen.id}")
            seen.add(screen.id)
        return self

    # --- Lookup helpers ---

    @property
    def screen_map(self) -> dict[str, Screen]:
        """Screens keyed by id (document order preserved)."""
        return {s.id: s for s in self.screens}

    @property
    def first_screen_id(self) -> str:
        return self.screens[0].id

    @property
    def condition(self) -> str:
        """Condition the form screens for; falls back to the product name."""
        return self.default_condition or self.meta.product

    def has_screen(self, screen_id: str) -> bool:
        return any(s.id == screen_id for s in self.screens)

    def get_screen(self, screen_id: str) -> Screen:
        """Return the screen with *screen_id*.

        Raises:
            KeyError: if no such screen exists.
        """
        for screen in self.screens:
            if screen.id == screen_id:
                return screen
        raise KeyError(screen_id)

    def screen_for_answer_key(self, key: str) -> Optional[Screen]:
        """Find the screen that collects *key* (directly or via a composite field)."""
        for screen in self.screens:
            if key in screen.answer_keys():
                return screen
        return None
