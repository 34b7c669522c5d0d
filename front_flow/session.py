"""Simple in-memory store for wizard sessions."""

from __future__ import annotations

import logging
from typing import Dict
from uuid import uuid4

from .errors import SessionNotFoundError
from .schemas import WizardSession

logger = logging.getLogger(__name__)


class SessionStore:
    """Hold every live session for the lifetime of the process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, WizardSession] = {}

    def create(self) -> WizardSession:
        """Create a blank session positioned on the first step."""

        session = WizardSession(session_id=uuid4().hex)
        self._sessions[session.session_id] = session
        logger.info("Created session %s", session.session_id)
        return session

    def get(self, session_id: str) -> WizardSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def reset(self, session_id: str) -> WizardSession:
        """Replace the session with a blank one under the same id.

        The replacement carries a fresh ``run_id`` so results of calls that
        were in flight before the reset can be recognised as stale.
        """

        self.get(session_id)
        session = WizardSession(session_id=session_id)
        self._sessions[session_id] = session
        logger.info("Reset session %s", session_id)
        return session

    def discard(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(session_id)
        logger.info("Discarded session %s", session_id)

    def is_current(self, session: WizardSession) -> bool:
        """True when *session* is still the live run for its id."""

        live = self._sessions.get(session.session_id)
        return live is not None and live.run_id == session.run_id

    def __len__(self) -> int:
        return len(self._sessions)
