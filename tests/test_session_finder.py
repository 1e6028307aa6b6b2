"""Tests for session lookup."""

import pytest

from md_talk.models import SessionSummary
from md_talk.session_finder import (
    SessionNotFoundError,
    find_session_by_id,
    require_session,
    require_sessions,
)


@pytest.fixture
def sessions():
    # Newest first, as listed by the parsers
    return [
        SessionSummary(id="abc-2", title="newer"),
        SessionSummary(id="abc", title="exact"),
        SessionSummary(id="abd-1", title="other"),
    ]


class TestFindSessionById:
    """Tests for find_session_by_id function."""

    def test_exact_match_wins(self, sessions):
        """Should prefer an exact id over earlier prefix matches."""
        assert find_session_by_id(sessions, "abc").title == "exact"

    def test_prefix_returns_most_recent(self, sessions):
        """Should return the first (newest) prefix match."""
        assert find_session_by_id(sessions, "ab").title == "newer"

    def test_no_match(self, sessions):
        """Should return None when nothing matches."""
        assert find_session_by_id(sessions, "zzz") is None

    def test_empty_id(self, sessions):
        """Should not treat an empty id as a prefix of everything."""
        assert find_session_by_id(sessions, "") is None


class TestRequire:
    """Tests for require_sessions and require_session."""

    def test_require_sessions_empty(self):
        """Should raise when an agent has no sessions."""
        with pytest.raises(SessionNotFoundError) as exc_info:
            require_sessions("codex", [])
        assert str(exc_info.value) == "No sessions found for agent 'codex'. Check the logs directory."
        assert exc_info.value.agent == "codex"

    def test_require_sessions_passthrough(self, sessions):
        """Should return the sessions unchanged."""
        assert require_sessions("codex", sessions) is sessions

    def test_require_session_missing(self, sessions):
        """Should name the session and agent in the error."""
        with pytest.raises(SessionNotFoundError) as exc_info:
            require_session("claude-code", sessions, "zzz")
        assert str(exc_info.value) == "Session 'zzz' not found for agent 'claude-code'."
        assert exc_info.value.session_id == "zzz"

    def test_require_session_found(self, sessions):
        """Should return the matching session."""
        assert require_session("codex", sessions, "abd").id == "abd-1"
