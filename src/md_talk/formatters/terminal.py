"""Rich terminal output formatter for session listings."""

from typing import List, Optional, TextIO

from rich.console import Console
from rich.table import Table
from rich import box

from .base import BaseFormatter
from ..config import SESSION_ID_DISPLAY_LENGTH, TITLE_DISPLAY_LENGTH
from ..models import SessionSummary
from ..utils import format_timestamp_date, truncate_content


class TerminalFormatter(BaseFormatter):
    """Formats session listings for rich terminal display."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

        # Color scheme
        self.colors = {
            'id': 'bright_blue',
            'title': 'bright_green',
            'metadata': 'dim blue',
            'timestamp': 'dim white',
            'border': 'dim white',
        }

    def format_session_list(
        self,
        agent: str,
        sessions: List[SessionSummary],
        output_file: Optional[TextIO] = None,
        verbose: bool = False
    ) -> Optional[str]:
        """Format and display a list of available sessions."""
        if not sessions:
            self.console.print(self.no_sessions_message(agent), style=self.colors['metadata'])
            return None

        table = Table(
            title=f"Sessions for {agent}",
            box=box.ROUNDED,
            border_style=self.colors['border'],
            title_style="bold"
        )

        # Shortened ids still resolve as prefixes when exporting
        table.add_column("Session ID", style=self.colors['id'], no_wrap=True)
        table.add_column("Title", style=self.colors['title'])
        table.add_column("Started", style=self.colors['timestamp'])
        table.add_column("Messages", justify="right", style=self.colors['metadata'])

        for session in sessions:
            session_id = session.id
            title = session.title
            if not verbose:
                session_id = truncate_content(session_id, SESSION_ID_DISPLAY_LENGTH + 3)
                title = truncate_content(title, TITLE_DISPLAY_LENGTH)

            date_str = format_timestamp_date(session.started_at) or 'Unknown'
            table.add_row(session_id, title, date_str, str(session.message_count))

        self.console.print(table)
        return None
