"""Markdown output formatter for agent sessions."""

import json
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from .base import BaseFormatter
from ..config import DEFAULT_METADATA_FIELDS, TITLE_DISPLAY_LENGTH
from ..models import (
    SessionData,
    SessionMessage,
    SessionSummary,
    ROLE_USER,
    TYPE_BASH,
    TYPE_PLAN,
    TYPE_THINKING,
    TYPE_TOOL_CALL,
    TYPE_TOOL_OUTPUT,
    TYPE_WRITE_FILE,
)
from ..utils import format_timestamp_date, format_timestamp_iso, split_lines, truncate_content

MCP_MARKER = 'mcp__'
MARKDOWN_FENCE = '---'
CODE_FENCE = '```'

# File extension -> fence language tag
FENCE_LANGUAGES = {
    'md': 'markdown',
    'markdown': 'markdown',
    'py': 'python',
    'ts': 'ts',
    'tsx': 'tsx',
    'js': 'javascript',
    'jsx': 'jsx',
    'json': 'json',
    'yaml': 'yaml',
    'yml': 'yaml',
    'sh': 'bash',
    'bash': 'bash',
    'c': 'c',
    'cc': 'cpp',
    'cpp': 'cpp',
    'cxx': 'cpp',
    'h': 'c',
    'hpp': 'cpp',
    'hh': 'cpp',
    'rs': 'rust',
    'go': 'go',
    'java': 'java',
    'cs': 'csharp',
    'php': 'php',
    'rb': 'ruby',
    'swift': 'swift',
    'kt': 'kotlin',
    'kts': 'kotlin',
    'html': 'html',
    'css': 'css',
    'xml': 'xml',
    'sql': 'sql',
}

PLAN_MARKERS = {
    'completed': '[x]',
    'in_progress': '[-]',
}
PENDING_MARKER = '[ ]'

_EXTENSION_RE = re.compile(r'\.([a-z0-9]+)$')


@dataclass
class RenderOptions:
    """Options controlling how a session is rendered.

    ``include_metadata_fields`` of None uses the default fields; an empty
    sequence renders no metadata at all.
    """
    include_metadata_fields: Optional[Sequence[str]] = None
    display_tool_output: bool = False
    title: Optional[str] = None


def _metadata_value(key: str) -> Callable[[SessionData], Optional[str]]:
    return lambda session: session.metadata.get(key)


METADATA_RESOLVERS: Dict[str, Callable[[SessionData], Optional[str]]] = {
    'agent': lambda session: session.agent,
    'session-id': lambda session: session.id,
    'started-time': lambda session: format_timestamp_iso(session.started_at),
    'ended-time': lambda session: format_timestamp_iso(session.ended_at),
    'cwd': _metadata_value('cwd'),
    'cli-version': _metadata_value('cli_version'),
    'originator': _metadata_value('originator'),
    'summary': _metadata_value('summary'),
    'session-file': _metadata_value('session_file'),
    'project-path': _metadata_value('project_path'),
    'history-file': _metadata_value('history_file'),
    'history-lines': _metadata_value('history_lines'),
}


def metadata_label(field_name: str) -> str:
    """Turn a field key into a label: 'started-time' -> 'Started Time'."""
    return ' '.join(part[:1].upper() + part[1:] for part in field_name.split('-'))


def resolve_metadata_field(session: SessionData, field_name: str) -> Optional[str]:
    """Resolve one metadata field of a session.

    Known fields use their resolver; other keys are looked up in the
    session's metadata as given, then with hyphens as underscores.
    """
    resolver = METADATA_RESOLVERS.get(field_name)
    if resolver is not None:
        return resolver(session)
    value = session.metadata.get(field_name)
    if value is None:
        value = session.metadata.get(field_name.replace('-', '_'))
    return value


def resolve_metadata_lines(session: SessionData, fields: Sequence[str]) -> List[str]:
    """Render one bullet per requested field that has a value."""
    seen = set()
    lines = []
    for field_name in fields:
        if field_name in seen:
            continue
        seen.add(field_name)
        value = resolve_metadata_field(session, field_name)
        if not value:
            continue
        lines.append(f"- {metadata_label(field_name)}: {value}")
    return lines


def fence_language(path: Optional[str]) -> Optional[str]:
    """Fence language tag for a file path, None when unknown."""
    if not path:
        return None
    match = _EXTENSION_RE.search(path.lower())
    if not match:
        return None
    return FENCE_LANGUAGES.get(match.group(1))


def parse_write_payload(text: str) -> Dict[str, str]:
    """Decode a write-file message into its path and file body.

    Content that is not a JSON object is taken as the file body with no path.
    """
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return {'path': '', 'content': text}
    if not isinstance(parsed, dict):
        return {'path': '', 'content': text}
    return {
        'path': parsed.get('path') if isinstance(parsed.get('path'), str) else '',
        'content': parsed.get('content') if isinstance(parsed.get('content'), str) else '',
    }


def plan_marker(status: Optional[str]) -> str:
    return PLAN_MARKERS.get(status, PENDING_MARKER)


def render_session_markdown(session: SessionData, options: Optional[RenderOptions] = None) -> str:
    """Render a session as a Markdown document.

    Pure function: no I/O, the session is not modified, and the same
    input always yields the same text.
    """
    options = options or RenderOptions()
    fields = options.include_metadata_fields
    if fields is None:
        fields = DEFAULT_METADATA_FIELDS

    title = (options.title or '').strip() or session.title or f"Session {session.id}"
    lines = [f"# {title}", ""]

    metadata_lines = resolve_metadata_lines(session, fields)
    if metadata_lines:
        lines.extend(metadata_lines)
        lines.append("")

    lines.append("## Conversation")
    lines.append("")

    for message in session.messages:
        lines.extend(render_message(message, options))

    return '\n'.join(lines) + '\n'


def render_message(message: SessionMessage, options: RenderOptions) -> List[str]:
    """Render one message; each non-empty block ends with a blank line."""
    if not message.content and message.plan is None:
        return []

    if message.type == TYPE_TOOL_OUTPUT:
        return _render_tool_output(message, options.display_tool_output)
    renderer = _MESSAGE_RENDERERS.get(message.type, _render_text)
    return renderer(message)


def _render_text(message: SessionMessage) -> List[str]:
    content = (message.content or '').strip()
    if not content:
        return []
    if message.role == ROLE_USER:
        lines = [f"> {line}" for line in split_lines(content)]
    else:
        lines = [content]
    lines.append("")
    return lines


def _render_plan(message: SessionMessage) -> List[str]:
    lines = []
    if message.content:
        lines.append(message.content.strip())
    steps = message.plan.steps if message.plan else []
    for step in steps:
        lines.append(f"- {plan_marker(step.status)} {step.text}")
    lines.append("")
    return lines


def _render_thinking(message: SessionMessage) -> List[str]:
    text = (message.content or '').strip()
    if not text:
        return []
    return [f"*{text}*", ""]


def _render_bash(message: SessionMessage) -> List[str]:
    command = (message.content or '').strip()
    if not command:
        return ["Ran shell command.", ""]
    if '\n' in command:
        return ["Ran shell:", CODE_FENCE, command, CODE_FENCE, ""]
    return [f"Ran shell: `{command}`", ""]


def _render_write_file(message: SessionMessage) -> List[str]:
    payload = parse_write_payload(message.content or '')
    language = fence_language(payload['path'])
    if language == 'markdown':
        opening = closing = MARKDOWN_FENCE
    else:
        opening = f"{CODE_FENCE}{language}" if language else CODE_FENCE
        closing = CODE_FENCE

    target = f" `{payload['path']}`" if payload['path'] else ""
    return [f"Wrote file{target}:", opening, payload['content'].rstrip(), closing, ""]


def _render_tool_call(message: SessionMessage) -> List[str]:
    tool = message.tool_name or message.name or 'tool'
    content = (message.content or '').strip()
    if MCP_MARKER in tool:
        line = f"MCP call: `{tool}: {content}`"
    elif content:
        line = f"Ran {tool}: {content}"
    else:
        line = f"Ran {tool}"
    return [line, ""]


def _render_tool_output(message: SessionMessage, display_tool_output: bool) -> List[str]:
    if not display_tool_output:
        return []
    output = (message.content or '').strip()
    if not output:
        return []
    return [CODE_FENCE, output, CODE_FENCE, ""]


_MESSAGE_RENDERERS: Dict[str, Callable[[SessionMessage], List[str]]] = {
    TYPE_PLAN: _render_plan,
    TYPE_THINKING: _render_thinking,
    TYPE_BASH: _render_bash,
    TYPE_WRITE_FILE: _render_write_file,
    TYPE_TOOL_CALL: _render_tool_call,
}


class MarkdownFormatter(BaseFormatter):
    """Formats sessions and session listings as Markdown documents."""

    def format_session(
        self,
        session: SessionData,
        options: Optional[RenderOptions] = None,
        output_file: Optional[TextIO] = None
    ) -> str:
        """Format a full session transcript as Markdown."""
        markdown_content = render_session_markdown(session, options)

        if output_file:
            output_file.write(markdown_content)

        return markdown_content

    def format_session_list(
        self,
        agent: str,
        sessions: List[SessionSummary],
        output_file: Optional[TextIO] = None,
        verbose: bool = False
    ) -> Optional[str]:
        """Format session list as Markdown table."""
        lines = []

        lines.append(f"# Sessions for {agent}")
        lines.append("")

        if not sessions:
            lines.append(f"_{self.no_sessions_message(agent)}_")
        else:
            lines.append("| Session ID | Title | Started | Messages |")
            lines.append("|------------|-------|---------|----------|")

            for session in sessions:
                title = session.title if verbose else truncate_content(session.title, TITLE_DISPLAY_LENGTH)
                title = title.replace('|', '\\|')
                started = format_timestamp_date(session.started_at) or 'Unknown'
                lines.append(f"| `{session.id}` | {title} | {started} | {session.message_count} |")

        lines.append("")

        markdown_content = '\n'.join(lines)

        if output_file:
            output_file.write(markdown_content)

        return markdown_content
