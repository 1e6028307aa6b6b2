"""Session lookup within one agent's listing."""

from typing import List, Optional

from .models import SessionSummary


class SessionNotFoundError(Exception):
    """Raised when a requested session, or any session at all, is missing."""

    def __init__(self, message: str, agent: Optional[str] = None, session_id: Optional[str] = None):
        self.agent = agent
        self.session_id = session_id
        super().__init__(message)


def find_session_by_id(sessions: List[SessionSummary], session_id: str) -> Optional[SessionSummary]:
    """Find a specific session by ID.

    Supports both full session IDs and partial IDs (prefixes).
    If multiple sessions match a partial ID, returns the most recent one.
    """
    matches = []

    for session in sessions:
        # First try exact match
        if session.id == session_id:
            return session
        # Then try prefix match
        elif session_id and session.id.startswith(session_id):
            matches.append(session)

    # Sessions are already sorted newest first
    if matches:
        return matches[0]

    return None


def require_sessions(agent: str, sessions: List[SessionSummary]) -> List[SessionSummary]:
    """Return the sessions, raising when there are none to export."""
    if not sessions:
        raise SessionNotFoundError(
            f"No sessions found for agent '{agent}'. Check the logs directory.",
            agent=agent,
        )
    return sessions


def require_session(agent: str, sessions: List[SessionSummary], session_id: str) -> SessionSummary:
    """Find a session by ID or prefix, raising a descriptive error if absent."""
    session = find_session_by_id(sessions, session_id)
    if session is None:
        raise SessionNotFoundError(
            f"Session '{session_id}' not found for agent '{agent}'.",
            agent=agent,
            session_id=session_id,
        )
    return session
