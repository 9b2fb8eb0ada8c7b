"""Session view models — the contract between the engine and its consumers.

``IntakeSession`` owns the mutable state; consumers only ever see these
snapshots, which are safe to serialise (server responses) or hand to a UI
layer.
"""

import enum
from typing import Any, Optional

from pydantic import BaseModel


class Direction(str, enum.Enum):
    """Which way the last transition went.

    A hint for consumers that animate screen changes; the engine itself does
    not depend on it.
    """

    FORWARD = "forward"
    BACKWARD = "backward"


class SessionSnapshot(BaseModel):
    """Read-only view of an intake session's state."""

    current_screen_id: str
    current_screen_type: str
    answers: dict[str, Any]
    calculations: dict[str, Optional[float]]
    # Sorted so snapshots of equal sessions compare equal
    flags: list[str]
    history: list[str]
    return_to: Optional[str] = None
    direction: Direction = Direction.FORWARD
    progress: float
    can_go_back: bool


class ReviewItem(BaseModel):
    """One answered field as shown on the review screen.

    ``screen_id`` is the screen that collects the answer; passing it to
    ``IntakeSession.go_to_screen`` starts an edit-from-review detour.
    """

    key: str
    label: str
    answer: str
    screen_id: str
    group: str
