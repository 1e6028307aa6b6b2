"""md-talk: coding-agent session logs to Markdown.

Parses Codex and Claude Code session logs into one canonical session
model and renders sessions as Markdown transcripts.
"""

__version__ = "1.0.0"

from .models import SessionSummary, SessionMessage, SessionData, Plan, PlanStep
from .parsers import (
    AgentParser,
    CodexParser,
    ClaudeCodeParser,
    UnknownAgentError,
    get_parser,
)
from .formatters import RenderOptions, render_session_markdown
from .session_finder import (
    SessionNotFoundError,
    find_session_by_id,
)
from .config import DEFAULT_METADATA_FIELDS

__all__ = [
    # Core model
    'SessionSummary',
    'SessionMessage',
    'SessionData',
    'Plan',
    'PlanStep',
    # Parsers
    'AgentParser',
    'CodexParser',
    'ClaudeCodeParser',
    'UnknownAgentError',
    'get_parser',
    # Rendering
    'RenderOptions',
    'render_session_markdown',
    # Session lookup
    'SessionNotFoundError',
    'find_session_by_id',
    # Config
    'DEFAULT_METADATA_FIELDS',
]
