"""Routing models shared by screens and the form: branch rules and calculations.

``if`` and ``else`` are Python keywords, so :class:`BranchRule` exposes them
as ``if_`` / ``else_`` and accepts the YAML keys as aliases.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Calculation(BaseModel):
    """A formula evaluated against the answer map, e.g. BMI or age."""

    id: str
    formula: str


class BranchRule(BaseModel):
    """One entry of a ``next_logic`` table.

    Either a conditional route ``{if, go_to}`` or a fallback ``{else}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    if_: Optional[str] = Field(default=None, alias="if")
    go_to: Optional[str] = None
    else_: Optional[str] = Field(default=None, alias="else")

    @model_validator(mode="after")
    def _chk(self):
        is_conditional = self.if_ is not None
        if is_conditional and self.else_ is not None:
            raise ValueError("branch rule cannot have both 'if' and 'else'")
        if is_conditional and not self.go_to:
            raise ValueError("conditional branch rule requires 'go_to'")
        if not is_conditional and self.else_ is None:
            raise ValueError("branch rule requires either 'if'/'go_to' or 'else'")
        return self

    @property
    def is_else(self) -> bool:
        return self.if_ is None

    @property
    def target(self) -> str:
        """The screen id this rule routes to."""
        return self.else_ if self.is_else else self.go_to
