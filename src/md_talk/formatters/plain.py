"""Plain text output formatter for session listings."""

import os
import sys
from typing import List, TextIO, Optional

from .base import BaseFormatter
from ..models import SessionSummary
from ..utils import format_timestamp_iso


class PlainFormatter(BaseFormatter):
    """Formats session listings as plain text suitable for piping.

    Session ids are always printed in full so they can be passed back
    to an export.
    """

    def format_session_list(
        self,
        agent: str,
        sessions: List[SessionSummary],
        output_file: Optional[TextIO] = None,
        verbose: bool = False
    ) -> Optional[str]:
        """Format session list as plain text blocks."""
        lines = []

        if not sessions:
            lines.append(self.no_sessions_message(agent))
        else:
            lines.append(f"Sessions for agent '{agent}':")
            lines.append("")

            for session in sessions:
                started = format_timestamp_iso(session.started_at) or 'unknown start'
                lines.append(f"- {session.id}")
                lines.append(f"  Title: {session.title}")
                lines.append(f"  Started: {started}")
                if verbose and session.ended_at:
                    lines.append(f"  Ended: {format_timestamp_iso(session.ended_at)}")
                lines.append(f"  Messages: {session.message_count}")
                if session.description:
                    lines.append(f"  Summary: {session.description}")
                if verbose and session.source_path:
                    lines.append(f"  Source: {session.source_path}")
                lines.append("")

        plain_content = '\n'.join(lines)

        if output_file:
            output_file.write(plain_content)
            if not plain_content.endswith('\n'):
                output_file.write('\n')

        return plain_content


def should_use_plain_output() -> bool:
    """Detect if output should be plain text (when piping or NO_COLOR is set)."""
    # Check if output is being piped (not a terminal)
    if not sys.stdout.isatty():
        return True

    # Check for NO_COLOR environment variable
    if os.getenv('NO_COLOR'):
        return True

    return False
