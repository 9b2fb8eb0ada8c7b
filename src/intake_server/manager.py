"""SessionManager — the in-memory table of live intake sessions.

Sessions are not persisted: restarting the server discards them.  Every
transition reads and writes several parts of a session's state, so each
session carries its own ``asyncio.Lock`` and route handlers run a whole
command under it::

    async with manager.locked(session_id) as entry:
        entry.session.advance()
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator

from intake_engine.engine import IntakeSession
from intake_engine.formstore import FormStore

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    """One live session plus its bookkeeping."""

    session_id: str
    form_slug: str
    session: IntakeSession
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SessionManager:
    """Creates, looks up and discards intake sessions.

    Args:
        store: loaded form store; sessions are created from its forms.
        max_sessions: refuse new sessions beyond this many (0 = unlimited).
    """

    def __init__(self, store: FormStore, max_sessions: int = 0) -> None:
        self._store = store
        self._max_sessions = max_sessions
        self._entries: dict[str, SessionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def create(self, form_slug: str) -> SessionEntry:
        """Start a session on the form *form_slug*.

        Raises:
            KeyError: unknown form slug.
            ValueError: the session limit is reached.
        """
        form = self._store.get(form_slug)
        if self._max_sessions and len(self._entries) >= self._max_sessions:
            raise ValueError(f"Session limit reached ({self._max_sessions})")

        session_id = uuid.uuid4().hex
        entry = SessionEntry(session_id=session_id, form_slug=form_slug, session=IntakeSession(form))
        self._entries[session_id] = entry
        logger.info("Created session %s on form %s", session_id, form_slug)
        return entry

    def get(self, session_id: str) -> SessionEntry:
        entry = self._entries.get(session_id)
        if entry is None:
            raise ValueError(f"Session not found: session_id={session_id}")
        return entry

    def delete(self, session_id: str) -> None:
        if self._entries.pop(session_id, None) is None:
            raise ValueError(f"Session not found: session_id={session_id}")
        logger.info("Deleted session %s", session_id)

    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[SessionEntry]:
        """Hold the session's lock for the duration of one command."""
        entry = self.get(session_id)
        async with entry.lock:
            yield entry
