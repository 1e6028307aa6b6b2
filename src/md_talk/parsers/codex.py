"""Parser for Codex history and rollout session files."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import anyio

from ..config import HISTORY_FILE_NAME, SESSION_FILE_SUFFIX, get_codex_home
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
    sort_summaries,
)
from ..utils import (
    clean_snippet,
    extract_command,
    extract_primary_text,
    normalize_role,
    parse_epoch_seconds,
    parse_iso_timestamp,
    parse_json,
    text_from_content_array,
    to_json,
)
from .base import (
    AgentParser,
    HistoryCache,
    append_message,
    derive_session_id,
    iter_json_lines,
    read_text_if_exists,
)

logger = logging.getLogger(__name__)

MESSAGE_TEXT_KINDS = ('input_text', 'output_text', 'text')
PRIMARY_TEXT_KEYS = ('prompt', 'input', 'text', 'query', 'message')
PLAN_TOOL_NAME = 'update_plan'
SHELL_TOOL_NAME = 'shell'
MCP_MARKER = 'mcp__'
DEFAULT_PLAN_EXPLANATION = 'Plan update.'


@dataclass
class HistoryEntry:
    """One line of the Codex history index."""
    session_id: str
    text: str
    line: int
    timestamp: Optional[datetime] = None


@dataclass
class SessionAggregate:
    """History entries grouped under one session id."""
    id: str
    entries: List[HistoryEntry] = field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    first_text: Optional[str] = None

    def add(self, entry: HistoryEntry) -> None:
        self.entries.append(entry)
        if entry.timestamp:
            if not self.started_at or entry.timestamp < self.started_at:
                self.started_at = entry.timestamp
            if not self.ended_at or entry.timestamp > self.ended_at:
                self.ended_at = entry.timestamp
        if not self.first_text:
            self.first_text = entry.text


@dataclass
class SessionMetaRecord:
    """A ``session_meta`` line: session-wide facts recorded by the CLI."""
    timestamp: Optional[datetime]
    cwd: Optional[str] = None
    cli_version: Optional[str] = None
    originator: Optional[str] = None


@dataclass
class ResponseItemRecord:
    """A ``response_item`` line wrapping one model input or output item."""
    timestamp: Optional[datetime]
    payload: Dict[str, Any]

    @property
    def item_type(self) -> Optional[str]:
        return self.payload.get('type')


TranscriptRecord = Union[SessionMetaRecord, ResponseItemRecord]


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def decode_record(raw: Dict[str, Any]) -> Optional[TranscriptRecord]:
    """Decode a raw rollout line into a typed record.

    Returns None for record types that carry nothing to render
    (``event_msg``, ``turn_context``, ...) and for malformed envelopes.
    """
    record_type = raw.get('type')
    payload = raw.get('payload')
    if not isinstance(payload, dict):
        return None

    if record_type == 'session_meta':
        return SessionMetaRecord(
            timestamp=parse_iso_timestamp(_optional_str(payload.get('timestamp'))),
            cwd=_optional_str(payload.get('cwd')),
            cli_version=_optional_str(payload.get('cli_version')),
            originator=_optional_str(payload.get('originator')),
        )
    if record_type == 'response_item':
        return ResponseItemRecord(
            timestamp=parse_iso_timestamp(_optional_str(raw.get('timestamp'))),
            payload=payload,
        )
    return None


def parse_plan_arguments(value: Any) -> Optional[Plan]:
    """Read an ``update_plan`` call's arguments into a Plan.

    Steps without text are dropped. Returns None when neither an
    explanation nor any step is present.
    """
    if not isinstance(value, dict):
        return None
    explanation = _optional_str(value.get('explanation'))
    entries = value.get('plan') if isinstance(value.get('plan'), list) else []

    steps = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        text = _optional_str(entry.get('step'))
        if not text:
            continue
        steps.append(PlanStep(text=text, status=_optional_str(entry.get('status'))))

    if not explanation and not steps:
        return None
    return Plan(explanation=explanation, steps=steps)


def format_tool_call(name: str, args_value: Any, raw_arguments: str) -> Tuple[str, str]:
    """Choose the content and message type for a function call.

    Returns:
        Tuple of (content, message type)
    """
    record = args_value if isinstance(args_value, dict) else None

    if MCP_MARKER in name:
        return raw_arguments or to_json(args_value if args_value is not None else {}), TYPE_TOOL_CALL
    if name == SHELL_TOOL_NAME and record is not None:
        return extract_command(record) or '', TYPE_BASH
    if record is not None:
        text = extract_primary_text(record, PRIMARY_TEXT_KEYS)
        if text:
            return text, TYPE_TOOL_CALL
    return raw_arguments, TYPE_TOOL_CALL


def _string_output(record: Dict[str, Any]) -> Optional[str]:
    return _optional_str(record.get('output'))


def _list_output(record: Dict[str, Any]) -> Optional[str]:
    output = record.get('output')
    if not isinstance(output, list):
        return None
    return '\n'.join(part if isinstance(part, str) else to_json(part) for part in output)


def _object_output(record: Dict[str, Any]) -> Optional[str]:
    output = record.get('output')
    if not isinstance(output, dict):
        return None
    return to_json(output)


def _stdout_output(record: Dict[str, Any]) -> Optional[str]:
    return _optional_str(record.get('stdout'))


def _result_output(record: Dict[str, Any]) -> Optional[str]:
    return _optional_str(record.get('result'))


# Tried in order; the first extractor returning a string wins.
TOOL_OUTPUT_EXTRACTORS: Tuple[Callable[[Dict[str, Any]], Optional[str]], ...] = (
    _string_output,
    _list_output,
    _object_output,
    _stdout_output,
    _result_output,
)


def extract_tool_output(source: Any) -> str:
    """Extract the text of a function call output.

    ``source`` is the item's ``output`` value. Objects go through
    ``TOOL_OUTPUT_EXTRACTORS``; strings holding a JSON object do too and
    fall back to the raw string; other strings are used verbatim.
    """
    raw_text = ''
    if isinstance(source, str):
        parsed = parse_json(source)
        if not isinstance(parsed, dict):
            return source
        record, raw_text = parsed, source
    elif isinstance(source, dict):
        record = source
    else:
        return ''

    for extractor in TOOL_OUTPUT_EXTRACTORS:
        value = extractor(record)
        if value is not None:
            return value
    return raw_text


class CodexParser(AgentParser):
    """Parser for Codex logs.

    Reads ``history.jsonl`` (one line per prompt) for listings and the
    rollout files under ``sessions/`` for full transcripts.
    """

    agent = 'codex'

    def __init__(self, history_file: Optional[Union[str, Path]] = None,
                 sessions_root: Optional[Union[str, Path]] = None):
        codex_home = get_codex_home()
        self.history_file = Path(history_file) if history_file else codex_home / HISTORY_FILE_NAME
        self.sessions_root = Path(sessions_root) if sessions_root else codex_home / 'sessions'
        self._history: HistoryCache[Dict[str, SessionAggregate]] = HistoryCache()
        self._session_paths: Dict[str, Optional[str]] = {}

    @classmethod
    def from_data_dir(cls, data_dir: Union[str, Path]) -> 'CodexParser':
        """Create a parser reading a Codex home directory other than the default."""
        data_dir = Path(data_dir).expanduser()
        return cls(history_file=data_dir / HISTORY_FILE_NAME, sessions_root=data_dir / 'sessions')

    def parse_history(self, content: str, source_path: Optional[str] = None) -> List[SessionSummary]:
        aggregates = self._parse_history_content(content)
        return self._build_summaries(aggregates, source_path or str(self.history_file))

    def parse_session(self, content: str, source_path: Optional[str] = None) -> SessionData:
        session_id = derive_session_id(source_path)
        summary = SessionSummary(id=session_id, title=session_id)
        metadata = {}
        if source_path:
            metadata['session_file'] = source_path
        return self._parse_session_content(summary, content, metadata)

    async def list_sessions(self) -> List[SessionSummary]:
        aggregates = await self._load_history()
        return self._build_summaries(aggregates, str(self.history_file))

    async def load_session(self, summary: SessionSummary) -> SessionData:
        aggregates = await self._load_history()
        aggregate = aggregates.get(summary.id)

        metadata = {'history_file': str(self.history_file)}
        if aggregate and aggregate.entries:
            metadata['history_lines'] = str(len(aggregate.entries))
        snippet = clean_snippet(aggregate.first_text) if aggregate else None
        if snippet:
            metadata['summary'] = snippet

        session_path = await self._find_session_path(summary.id)
        if session_path:
            metadata['session_file'] = session_path
            content = await read_text_if_exists(session_path)
            if content is not None:
                session = self._parse_session_content(summary, content, metadata)
                if session.messages:
                    return session
            logger.debug("No transcript messages for %s, using history previews", summary.id)

        return SessionData(
            id=summary.id,
            agent=self.agent,
            title=summary.title,
            started_at=summary.started_at or (aggregate.started_at if aggregate else None),
            ended_at=summary.ended_at or (aggregate.ended_at if aggregate else None),
            metadata=metadata,
            messages=self._messages_from_history(aggregate.entries) if aggregate else [],
        )

    async def _load_history(self) -> Dict[str, SessionAggregate]:
        if self._history.loaded:
            return self._history.get()

        content = await read_text_if_exists(self.history_file)
        if content is None:
            return self._history.set({})
        return self._history.set(self._parse_history_content(content))

    async def _find_session_path(self, session_id: str) -> Optional[str]:
        """Breadth-first search of the sessions tree for the session's rollout file."""
        if session_id in self._session_paths:
            return self._session_paths[session_id]

        queue = deque([anyio.Path(self.sessions_root)])
        while queue:
            current = queue.popleft()
            try:
                children = sorted([child async for child in current.iterdir()], key=lambda p: p.name)
            except FileNotFoundError:
                continue

            for child in children:
                if await child.is_dir():
                    queue.append(child)
                    continue
                if (child.name.endswith(SESSION_FILE_SUFFIX) and session_id in child.name
                        and await child.is_file()):
                    self._session_paths[session_id] = str(child)
                    return str(child)

        self._session_paths[session_id] = None
        return None

    def _parse_history_content(self, content: str) -> Dict[str, SessionAggregate]:
        aggregates: Dict[str, SessionAggregate] = {}
        for line_num, payload in iter_json_lines(content):
            session_id = payload.get('session_id')
            text = payload.get('text')
            if not session_id or not isinstance(session_id, str) or not isinstance(text, str):
                continue

            aggregate = aggregates.setdefault(session_id, SessionAggregate(id=session_id))
            aggregate.add(HistoryEntry(
                session_id=session_id,
                text=text,
                line=line_num,
                timestamp=parse_epoch_seconds(payload.get('ts')),
            ))
        return aggregates

    def _build_summaries(self, aggregates: Dict[str, SessionAggregate],
                         source_path: Optional[str]) -> List[SessionSummary]:
        summaries = []
        for aggregate in aggregates.values():
            snippet = clean_snippet(aggregate.first_text)
            first_entry = aggregate.entries[0] if aggregate.entries else None
            summaries.append(SessionSummary(
                id=aggregate.id,
                title=snippet or aggregate.id,
                description=snippet,
                started_at=aggregate.started_at,
                ended_at=aggregate.ended_at,
                message_count=len(aggregate.entries),
                source_path=f"{source_path or ''}#{first_entry.line}" if first_entry else source_path,
            ))
        return sort_summaries(summaries)

    def _messages_from_history(self, entries: List[HistoryEntry]) -> List[SessionMessage]:
        messages: List[SessionMessage] = []
        for entry in entries:
            append_message(messages, SessionMessage(
                role=ROLE_USER,
                content=entry.text,
                type=TYPE_TEXT,
                timestamp=entry.timestamp,
            ))
        return messages

    def _parse_session_content(self, summary: SessionSummary, content: str,
                               metadata: Dict[str, str]) -> SessionData:
        messages: List[SessionMessage] = []
        started_at = summary.started_at
        ended_at = summary.ended_at

        for _, raw in iter_json_lines(content):
            record = decode_record(raw)
            if record is None:
                continue

            if isinstance(record, SessionMetaRecord):
                if not started_at and record.timestamp:
                    started_at = record.timestamp
                # First occurrence wins
                if record.cwd is not None:
                    metadata.setdefault('cwd', record.cwd)
                if record.cli_version is not None:
                    metadata.setdefault('cli_version', record.cli_version)
                if record.originator is not None:
                    metadata.setdefault('originator', record.originator)
                continue

            if record.timestamp:
                if not started_at:
                    started_at = record.timestamp
                ended_at = record.timestamp

            message = self._convert_item(record)
            if message is not None:
                append_message(messages, message)

        return SessionData(
            id=summary.id,
            agent=self.agent,
            title=summary.title,
            started_at=started_at,
            ended_at=ended_at,
            metadata=metadata,
            messages=messages,
        )

    # response_item payload type -> converter method; other types are ignored
    ITEM_HANDLERS = {
        'message': '_convert_message',
        'function_call': '_convert_function_call',
        'function_call_output': '_convert_function_output',
        'reasoning': '_convert_reasoning',
        'local_shell_call': '_convert_local_shell_call',
        'custom_tool_call': '_convert_custom_tool_call',
        'custom_tool_call_output': '_convert_function_output',
    }

    def _convert_item(self, record: ResponseItemRecord) -> Optional[SessionMessage]:
        handler_name = self.ITEM_HANDLERS.get(record.item_type)
        if handler_name is None:
            return None
        return getattr(self, handler_name)(record.payload, record.timestamp)

    def _convert_message(self, payload: Dict[str, Any], timestamp: Optional[datetime]) -> Optional[SessionMessage]:
        text = text_from_content_array(payload.get('content'), MESSAGE_TEXT_KINDS)
        if not text:
            return None
        return SessionMessage(
            role=normalize_role(_optional_str(payload.get('role'))),
            name=_optional_str(payload.get('name')),
            content=text,
            timestamp=timestamp,
            type=TYPE_TEXT,
        )

    def _convert_function_call(self, payload: Dict[str, Any],
                               timestamp: Optional[datetime]) -> Optional[SessionMessage]:
        name = _optional_str(payload.get('name')) or 'function_call'
        arguments = payload.get('arguments')
        if isinstance(arguments, str):
            raw_arguments = arguments
        else:
            raw_arguments = to_json(arguments if arguments is not None else {})
        args_value = parse_json(raw_arguments)

        if name == PLAN_TOOL_NAME:
            plan = parse_plan_arguments(args_value)
            explanation = plan.explanation if plan and plan.explanation else DEFAULT_PLAN_EXPLANATION
            return SessionMessage(
                role=ROLE_ASSISTANT,
                name=name,
                content=explanation,
                timestamp=timestamp,
                type=TYPE_PLAN,
                plan=plan or Plan(explanation=explanation, steps=[]),
            )

        text, message_type = format_tool_call(name, args_value, raw_arguments)
        return SessionMessage(
            role=ROLE_ASSISTANT,
            name=name,
            content=text,
            timestamp=timestamp,
            type=message_type,
            tool_name=name,
        )

    def _convert_function_output(self, payload: Dict[str, Any],
                                 timestamp: Optional[datetime]) -> Optional[SessionMessage]:
        output = extract_tool_output(payload.get('output'))
        if not output:
            return None
        return SessionMessage(
            role=ROLE_TOOL,
            content=output,
            timestamp=timestamp,
            type=TYPE_TOOL_OUTPUT,
        )

    def _convert_reasoning(self, payload: Dict[str, Any], timestamp: Optional[datetime]) -> Optional[SessionMessage]:
        text = text_from_content_array(payload.get('summary'), ('summary_text',))
        if not text:
            text = text_from_content_array(payload.get('content'), ('reasoning_text', 'text'))
        if not text:
            return None
        return SessionMessage(
            role=ROLE_ASSISTANT,
            content=text,
            timestamp=timestamp,
            type=TYPE_THINKING,
        )

    def _convert_local_shell_call(self, payload: Dict[str, Any],
                                  timestamp: Optional[datetime]) -> Optional[SessionMessage]:
        action = payload.get('action')
        if not isinstance(action, dict):
            return None
        command = extract_command(action) or extract_command(action.get('content'))
        if not command:
            return None
        return SessionMessage(
            role=ROLE_ASSISTANT,
            content=command,
            timestamp=timestamp,
            type=TYPE_BASH,
            tool_name=SHELL_TOOL_NAME,
        )

    def _convert_custom_tool_call(self, payload: Dict[str, Any],
                                  timestamp: Optional[datetime]) -> Optional[SessionMessage]:
        name = _optional_str(payload.get('name')) or 'custom_tool_call'
        tool_input = payload.get('input')
        if not isinstance(tool_input, str):
            tool_input = to_json(tool_input) if tool_input is not None else ''
        return SessionMessage(
            role=ROLE_ASSISTANT,
            name=name,
            content=tool_input,
            timestamp=timestamp,
            type=TYPE_TOOL_CALL,
            tool_name=name,
        )
