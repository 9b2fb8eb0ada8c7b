"""Session endpoints — create intake sessions and drive their navigation.

Every command responds with the session snapshot, the current screen (with
its copy interpolated) and ``moved``: whether the command changed the
current screen.  Navigation that cannot resolve a target is not an error;
it answers ``moved: false`` and leaves the session where it was.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from intake_engine.models.session import ReviewItem, SessionSnapshot

from intake_server.dependencies import get_manager
from intake_server.manager import SessionEntry, SessionManager

router = APIRouter(tags=["sessions"])

# Screen attributes that may carry ${...} placeholders
_TEXT_ATTRIBUTES = ("title", "headline", "body", "help_text")


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class UpdateAnswersRequest(BaseModel):
    """Body for PUT /sessions/{session_id}/answers."""
    answers: dict[str, Any] = {}
    clear: list[str] = []


class GoToRequest(BaseModel):
    """Body for POST /sessions/{session_id}/goto."""
    screen_id: str


class SessionResponse(SessionSnapshot):
    """Snapshot plus the rendered current screen."""
    session_id: str
    form: str
    screen: dict[str, Any]
    visible_fields: list[str] = []
    moved: Optional[bool] = None


def _respond(entry: SessionEntry, moved: bool | None = None) -> SessionResponse:
    session = entry.session
    screen = session.current_screen.model_dump(mode="json", by_alias=True, exclude_none=True)
    for attr in _TEXT_ATTRIBUTES:
        if isinstance(screen.get(attr), str):
            screen[attr] = session.interpolate(screen[attr])

    return SessionResponse(
        **session.snapshot().model_dump(),
        session_id=entry.session_id,
        form=entry.form_slug,
        screen=screen,
        visible_fields=[f.id for f in session.visible_fields()],
        moved=moved,
    )


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/forms/{slug}/sessions", status_code=201)
async def create_session(
    slug: str,
    manager: SessionManager = Depends(get_manager),
) -> SessionResponse:
    """Start a new intake session on form *slug*.

    Returns 201 on success, 404 for an unknown form, 429 when the server
    holds its maximum number of sessions.
    """
    entry = manager.create(slug)
    return _respond(entry)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> SessionResponse:
    async with manager.locked(session_id) as entry:
        return _respond(entry)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> None:
    """Discard a session.  Returns 204, or 404 if it does not exist."""
    async with manager.locked(session_id):
        manager.delete(session_id)


@router.put("/sessions/{session_id}/answers")
async def update_answers(
    session_id: str,
    body: UpdateAnswersRequest,
    manager: SessionManager = Depends(get_manager),
) -> SessionResponse:
    """Merge answers into the session (and clear the keys in ``clear``).

    Never moves the session.
    """
    async with manager.locked(session_id) as entry:
        for key in body.clear:
            entry.session.clear_answer(key)
        for key, value in body.answers.items():
            entry.session.update_answer(key, value)
        return _respond(entry, moved=False)


@router.post("/sessions/{session_id}/advance")
async def advance(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> SessionResponse:
    async with manager.locked(session_id) as entry:
        moved = entry.session.advance()
        return _respond(entry, moved=moved)


@router.post("/sessions/{session_id}/back")
async def go_back(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> SessionResponse:
    async with manager.locked(session_id) as entry:
        moved = entry.session.go_back()
        return _respond(entry, moved=moved)


@router.post("/sessions/{session_id}/goto")
async def go_to_screen(
    session_id: str,
    body: GoToRequest,
    manager: SessionManager = Depends(get_manager),
) -> SessionResponse:
    """Jump to a screen; the next advance or back returns here."""
    async with manager.locked(session_id) as entry:
        moved = entry.session.go_to_screen(body.screen_id)
        return _respond(entry, moved=moved)


@router.get("/sessions/{session_id}/validation")
async def validate_current(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> dict[str, dict[str, str]]:
    """Field errors for the current screen; ``errors`` is empty when it may be submitted."""
    async with manager.locked(session_id) as entry:
        return {"errors": entry.session.validate_current()}


@router.get("/sessions/{session_id}/review")
async def review(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> list[ReviewItem]:
    """Answered provider-packet fields, grouped for a review screen."""
    async with manager.locked(session_id) as entry:
        return entry.session.review_items()


@router.get("/sessions/{session_id}/packet")
async def provider_packet(
    session_id: str,
    manager: SessionManager = Depends(get_manager),
) -> dict[str, Any]:
    """Clinician-facing summary: rendered template, flags and risk tier."""
    async with manager.locked(session_id) as entry:
        session = entry.session
        return {
            "summary": session.provider_summary(),
            "flags": sorted(session.flags),
            "triggered_rules": session.triggered_rules(),
            "risk_tier": session.risk_tier(),
        }
