"""Base formatter interface for output formatters."""

from abc import ABC, abstractmethod
from typing import List, TextIO, Optional

from ..models import SessionSummary


class BaseFormatter(ABC):
    """Abstract base class for session listing formatters.

    All formatters implement ``format_session_list`` so the command line
    can pick one by output format.
    """

    @abstractmethod
    def format_session_list(
        self,
        agent: str,
        sessions: List[SessionSummary],
        output_file: Optional[TextIO] = None,
        verbose: bool = False
    ) -> Optional[str]:
        """Format a list of available sessions.

        Args:
            agent: Agent the sessions belong to
            sessions: Session summaries, newest first
            output_file: Optional file to write output to
            verbose: Whether to show full session IDs and descriptions

        Returns:
            Formatted string, or None if output was written directly
        """
        pass

    @staticmethod
    def no_sessions_message(agent: str) -> str:
        return f"No sessions found for agent '{agent}'."
