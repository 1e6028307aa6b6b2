"""Parser for Claude Code history and project session files."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import anyio

from ..config import (
    CLAUDE_DESCRIPTION_PREVIEWS,
    HISTORY_FILE_NAME,
    SESSION_FILE_SUFFIX,
    get_claude_dir,
)
from ..models import (
    Plan,
    PlanStep,
    SessionData,
    SessionMessage,
    SessionSummary,
    ROLE_ASSISTANT,
    ROLE_TOOL,
    ROLE_USER,
    TYPE_BASH,
    TYPE_PLAN,
    TYPE_TEXT,
    TYPE_THINKING,
    TYPE_TOOL_CALL,
    TYPE_TOOL_OUTPUT,
    TYPE_WRITE_FILE,
    sort_summaries,
)
from ..utils import extract_command, normalize_role, parse_timestamp, to_json, unwrap_tool_result
from .base import (
    AgentParser,
    HistoryCache,
    append_message,
    derive_session_id,
    iter_json_lines,
    read_text_if_exists,
)

logger = logging.getLogger(__name__)

TODO_EXPLANATION = 'Todo list'
TODO_FALLBACK_CONTENT = 'Todo update'


@dataclass
class HistoryAggregate:
    """History rows grouped under one session id."""
    id: str
    project_path: Optional[str] = None
    project_dir: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    previews: List[str] = field(default_factory=list)
    entry_count: int = 0


@dataclass
class ConversationRecord:
    """A ``user`` or ``assistant`` transcript line with its content entries."""
    type: str
    role: str
    entries: List[Dict[str, Any]]
    timestamp: Optional[datetime] = None


def sanitize_project_path(project: str) -> str:
    """Convert a project path to the directory name Claude Code stores it under.

    Example: /home/user/my-app -> -home-user-my-app
    """
    normalized = project.strip().replace('\\', '/')
    if normalized.startswith('/'):
        normalized = normalized[1:]
    return '-' + normalized.replace(':', '-').replace('/', '-')


def normalize_content(content: Any) -> List[Dict[str, Any]]:
    """Return message content as a list of typed entries.

    A bare string becomes a single text entry.
    """
    if not content:
        return []
    if isinstance(content, str):
        return [{'type': 'text', 'text': content}]
    if isinstance(content, list):
        return [entry for entry in content if isinstance(entry, dict)]
    return []


def decode_conversation_record(raw: Dict[str, Any]) -> Optional[ConversationRecord]:
    """Decode a transcript line into a ConversationRecord.

    Returns None for lines that are not user/assistant messages
    (summaries, system notices, file snapshots, ...).
    """
    record_type = raw.get('type')
    message = raw.get('message')
    if record_type not in (ROLE_USER, ROLE_ASSISTANT) or not isinstance(message, dict):
        return None

    role = message.get('role') if isinstance(message.get('role'), str) else record_type
    return ConversationRecord(
        type=record_type,
        role=normalize_role(role),
        entries=normalize_content(message.get('content')),
        timestamp=parse_timestamp(raw.get('timestamp')),
    )


def serialize_write_payload(tool_input: Optional[Dict[str, Any]]) -> str:
    """Encode a Write tool's target path and file body as JSON."""
    tool_input = tool_input or {}
    path = tool_input.get('file_path') if isinstance(tool_input.get('file_path'), str) else ''
    content = tool_input.get('content') if isinstance(tool_input.get('content'), str) else ''
    return to_json({'path': path, 'content': content})


def format_todo_plan(tool_input: Optional[Dict[str, Any]]) -> Optional[Plan]:
    """Build a plan from a TodoWrite call's ``todos`` array."""
    if not tool_input:
        return None
    todos = tool_input.get('todos')
    if not isinstance(todos, list) or not todos:
        return None

    steps = []
    for todo in todos:
        todo_fields = todo if isinstance(todo, dict) else {}
        if isinstance(todo_fields.get('activeForm'), str):
            text = todo_fields['activeForm']
        elif isinstance(todo_fields.get('content'), str):
            text = todo_fields['content']
        else:
            text = to_json(todo)
        status = todo_fields.get('status') if isinstance(todo_fields.get('status'), str) else None
        steps.append(PlanStep(text=text, status=status))

    return Plan(explanation=TODO_EXPLANATION, steps=steps)


def format_tool_use(entry: Dict[str, Any]) -> Tuple[str, str, Optional[Plan]]:
    """Choose content, message type and plan for a tool_use entry.

    Returns:
        Tuple of (content, message type, plan or None)
    """
    tool_name = entry.get('name') if isinstance(entry.get('name'), str) else 'tool'
    tool_input = entry.get('input') if isinstance(entry.get('input'), dict) else None
    input_string = to_json(tool_input) if tool_input else ''
    lower = tool_name.lower()

    if lower == 'write':
        return serialize_write_payload(tool_input), TYPE_WRITE_FILE, None
    if lower in ('bash', 'shell'):
        return extract_command(tool_input) or input_string, TYPE_BASH, None
    if lower.startswith('todo'):
        plan = format_todo_plan(tool_input)
        return (plan.explanation if plan else None) or TODO_FALLBACK_CONTENT, TYPE_PLAN, plan
    return input_string, TYPE_TOOL_CALL, None


class TextBuffer:
    """Accumulates consecutive text entries of one content array.

    Flushed as a single text message whenever a non-text entry is reached
    and at the end of the record.
    """

    def __init__(self, role: str, timestamp: Optional[datetime]):
        self.role = role
        self.timestamp = timestamp
        self._parts: List[str] = []

    def add(self, text: str) -> None:
        self._parts.append(text)

    def flush(self, messages: List[SessionMessage]) -> None:
        if not self._parts:
            return
        text = '\n\n'.join(self._parts).strip()
        self._parts = []
        if text:
            messages.append(SessionMessage(
                role=self.role,
                content=text,
                timestamp=self.timestamp,
                type=TYPE_TEXT,
            ))


class ClaudeCodeParser(AgentParser):
    """Parser for Claude Code logs.

    Reads ``history.jsonl`` (one line per prompt, keyed by ``sessionId``)
    for listings and ``projects/<project>/<session>.jsonl`` for full
    transcripts.
    """

    agent = 'claude-code'

    def __init__(self, history_file: Optional[Union[str, Path]] = None,
                 projects_root: Optional[Union[str, Path]] = None):
        claude_dir = get_claude_dir()
        self.history_file = Path(history_file) if history_file else claude_dir / HISTORY_FILE_NAME
        self.projects_root = Path(projects_root) if projects_root else claude_dir / 'projects'
        self._history: HistoryCache[Dict[str, HistoryAggregate]] = HistoryCache()

    @classmethod
    def from_data_dir(cls, data_dir: Union[str, Path]) -> 'ClaudeCodeParser':
        """Create a parser reading a Claude data directory other than the default."""
        data_dir = Path(data_dir).expanduser()
        return cls(history_file=data_dir / HISTORY_FILE_NAME, projects_root=data_dir / 'projects')

    def parse_history(self, content: str, source_path: Optional[str] = None) -> List[SessionSummary]:
        aggregates = self._parse_history_content(content)
        return self._build_summaries(aggregates, source_path or str(self.history_file))

    def parse_session(self, content: str, source_path: Optional[str] = None) -> SessionData:
        session_id = derive_session_id(source_path)
        messages, started_at, ended_at = self._parse_session_content(content)
        metadata = {}
        if source_path:
            metadata['session_file'] = source_path
        return SessionData(
            id=session_id,
            agent=self.agent,
            title=messages[0].content if messages and messages[0].content else session_id,
            started_at=started_at,
            ended_at=ended_at,
            metadata=metadata,
            messages=messages,
        )

    async def list_sessions(self) -> List[SessionSummary]:
        aggregates = await self._load_history()
        return self._build_summaries(aggregates, str(self.history_file))

    async def load_session(self, summary: SessionSummary) -> SessionData:
        aggregates = await self._load_history()
        aggregate = aggregates.get(summary.id)

        metadata = {}
        if aggregate and aggregate.project_path:
            metadata['project_path'] = aggregate.project_path
        session_path = await self._find_session_path(aggregate)
        if session_path:
            metadata['session_file'] = session_path

        if not aggregate or not session_path:
            return SessionData(
                id=summary.id,
                agent=self.agent,
                title=summary.title,
                started_at=summary.started_at or (aggregate.started_at if aggregate else None),
                ended_at=summary.ended_at or (aggregate.ended_at if aggregate else None),
                metadata=metadata,
                messages=self._messages_from_history(aggregate.previews) if aggregate else [],
            )

        messages: List[SessionMessage] = []
        started_at = ended_at = None
        content = await read_text_if_exists(session_path)
        if content is not None:
            messages, started_at, ended_at = self._parse_session_content(content)
        if not messages:
            logger.debug("No transcript messages for %s, using history previews", summary.id)
            messages = self._messages_from_history(aggregate.previews)

        return SessionData(
            id=summary.id,
            agent=self.agent,
            title=summary.title,
            started_at=started_at or aggregate.started_at,
            ended_at=ended_at or aggregate.ended_at,
            metadata=metadata,
            messages=messages,
        )

    async def _load_history(self) -> Dict[str, HistoryAggregate]:
        if self._history.loaded:
            return self._history.get()

        content = await read_text_if_exists(self.history_file)
        if content is None:
            return self._history.set({})
        return self._history.set(self._parse_history_content(content))

    async def _find_session_path(self, aggregate: Optional[HistoryAggregate]) -> Optional[str]:
        """Locate a session's transcript under the projects root.

        Tries the directory derived from the project path first, then any
        project directory holding a file named after the session. Returns
        None when no such file exists.
        """
        if not aggregate:
            return None

        file_name = f"{aggregate.id}{SESSION_FILE_SUFFIX}"
        if aggregate.project_dir:
            expected = self.projects_root / aggregate.project_dir / file_name
            if await anyio.Path(expected).is_file():
                return str(expected)

        try:
            project_dirs = sorted([child async for child in anyio.Path(self.projects_root).iterdir()],
                                  key=lambda p: p.name)
        except FileNotFoundError:
            project_dirs = []
        for project_dir in project_dirs:
            candidate = project_dir / file_name
            if await candidate.is_file():
                return str(candidate)

        return None

    def _parse_history_content(self, content: str) -> Dict[str, HistoryAggregate]:
        aggregates: Dict[str, HistoryAggregate] = {}
        for _, payload in iter_json_lines(content):
            session_id = payload.get('sessionId')
            if not session_id or not isinstance(session_id, str):
                continue

            aggregate = aggregates.setdefault(session_id, HistoryAggregate(id=session_id))
            aggregate.entry_count += 1

            project = payload.get('project')
            if isinstance(project, str) and project and not aggregate.project_path:
                aggregate.project_path = project
                aggregate.project_dir = sanitize_project_path(project)

            display = payload.get('display')
            if isinstance(display, str) and display and display not in aggregate.previews:
                aggregate.previews.append(display)

            timestamp = parse_timestamp(payload.get('timestamp'))
            if timestamp:
                if not aggregate.started_at or timestamp < aggregate.started_at:
                    aggregate.started_at = timestamp
                if not aggregate.ended_at or timestamp > aggregate.ended_at:
                    aggregate.ended_at = timestamp
        return aggregates

    def _build_summaries(self, aggregates: Dict[str, HistoryAggregate],
                         source_path: Optional[str]) -> List[SessionSummary]:
        summaries = []
        for aggregate in aggregates.values():
            summaries.append(SessionSummary(
                id=aggregate.id,
                title=aggregate.previews[0] if aggregate.previews else aggregate.id,
                description=' '.join(aggregate.previews[:CLAUDE_DESCRIPTION_PREVIEWS]),
                started_at=aggregate.started_at,
                ended_at=aggregate.ended_at,
                message_count=aggregate.entry_count,
                source_path=source_path,
            ))
        return sort_summaries(summaries)

    def _messages_from_history(self, previews: List[str]) -> List[SessionMessage]:
        messages: List[SessionMessage] = []
        for text in previews:
            append_message(messages, SessionMessage(role=ROLE_USER, content=text, type=TYPE_TEXT))
        return messages

    def _parse_session_content(
        self, content: str
    ) -> Tuple[List[SessionMessage], Optional[datetime], Optional[datetime]]:
        messages: List[SessionMessage] = []
        started_at: Optional[datetime] = None
        ended_at: Optional[datetime] = None

        for _, raw in iter_json_lines(content):
            # Every timestamped line extends the session span, whatever its type
            timestamp = parse_timestamp(raw.get('timestamp'))
            if timestamp:
                if not started_at:
                    started_at = timestamp
                ended_at = timestamp

            record = decode_conversation_record(raw)
            if record is None:
                continue
            self._convert_record(record, messages)

        return messages, started_at, ended_at

    def _convert_record(self, record: ConversationRecord, messages: List[SessionMessage]) -> None:
        buffer = TextBuffer(record.role, record.timestamp)

        for entry in record.entries:
            entry_type = entry.get('type')

            if entry_type == 'text' and isinstance(entry.get('text'), str):
                buffer.add(entry['text'])
                continue

            if entry_type == 'thinking':
                buffer.flush(messages)
                thinking = entry.get('thinking')
                if isinstance(thinking, str):
                    append_message(messages, SessionMessage(
                        role=ROLE_ASSISTANT,
                        content=thinking,
                        timestamp=record.timestamp,
                        type=TYPE_THINKING,
                    ))
                continue

            if entry_type == 'tool_use':
                buffer.flush(messages)
                text, message_type, plan = format_tool_use(entry)
                tool_name = entry.get('name') if isinstance(entry.get('name'), str) else 'tool'
                append_message(messages, SessionMessage(
                    role=ROLE_ASSISTANT,
                    content=text,
                    timestamp=record.timestamp,
                    type=message_type,
                    tool_name=tool_name,
                    plan=plan,
                ))
                continue

            if entry_type == 'tool_result':
                buffer.flush(messages)
                output = unwrap_tool_result(entry.get('content'))
                if output:
                    messages.append(SessionMessage(
                        role=ROLE_TOOL,
                        content=output,
                        timestamp=record.timestamp,
                        type=TYPE_TOOL_OUTPUT,
                    ))

        buffer.flush(messages)
