"""Base parser interface shared by the per-agent log parsers."""

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar, Union

import anyio

from ..models import SessionData, SessionMessage, SessionSummary

logger = logging.getLogger(__name__)

T = TypeVar('T')

_LINE_SPLIT_RE = re.compile(r'\r?\n')
_JSONL_SUFFIX_RE = re.compile(r'\.jsonl$', re.IGNORECASE)


class HistoryCache(Generic[T]):
    """Holds a parser's parsed history index for the lifetime of the parser.

    Populated lazily on first read and never invalidated: log files are
    assumed not to change while one invocation runs. Create a new parser
    to read changed files.
    """

    def __init__(self):
        self._value: Optional[T] = None
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self) -> Optional[T]:
        return self._value

    def set(self, value: T) -> T:
        self._value = value
        self._loaded = True
        return value


class AgentParser(ABC):
    """Abstract base class for the per-agent log parsers.

    Every parser turns one agent's history index into session summaries
    and one session's transcript into canonical ``SessionData``. The
    ``parse_*`` methods are pure and operate on raw text; the async
    methods read the agent's files.
    """

    agent: str = ''

    @classmethod
    @abstractmethod
    def from_data_dir(cls, data_dir: Union[str, Path]) -> 'AgentParser':
        """Create a parser reading the given agent data directory."""
        pass

    @abstractmethod
    async def list_sessions(self) -> List[SessionSummary]:
        """Read the history index and return summaries, newest first.

        A missing index yields an empty list.
        """
        pass

    @abstractmethod
    async def load_session(self, summary: SessionSummary) -> SessionData:
        """Load the full session behind a summary.

        Falls back to the history previews when no transcript is found.
        """
        pass

    @abstractmethod
    def parse_history(self, content: str, source_path: Optional[str] = None) -> List[SessionSummary]:
        """Build summaries from raw history index text."""
        pass

    @abstractmethod
    def parse_session(self, content: str, source_path: Optional[str] = None) -> SessionData:
        """Build session data from raw transcript text."""
        pass


def iter_json_lines(content: str) -> Iterator[Tuple[int, Dict[str, Any]]]:
    """Yield ``(line_number, record)`` for each JSON object line.

    Blank lines are ignored. Malformed lines and lines holding anything
    other than a JSON object are skipped without stopping the parse.
    """
    for line_num, line in enumerate(_LINE_SPLIT_RE.split(content), 1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            logger.debug("Skipping invalid JSON on line %d: %s", line_num, e)
            continue
        if not isinstance(record, dict):
            logger.debug("Skipping non-object record on line %d", line_num)
            continue
        yield line_num, record


async def read_text_if_exists(path: Union[str, Path]) -> Optional[str]:
    """Read a UTF-8 file, returning None when it does not exist.

    Other OS errors (permissions, I/O failures) propagate.
    """
    try:
        return await anyio.Path(path).read_text(encoding='utf-8')
    except FileNotFoundError:
        logger.debug("File not found: %s", path)
        return None


def derive_session_id(source_path: Optional[str]) -> str:
    """Derive a session id from a transcript file name.

    Strips a '.jsonl' extension; falls back to 'session' without a path.
    """
    if not source_path:
        return 'session'
    file_name = Path(source_path).name
    trimmed = _JSONL_SUFFIX_RE.sub('', file_name)
    return trimmed or file_name or 'session'


def append_message(messages: List[SessionMessage], message: SessionMessage) -> None:
    """Append a message unless it carries neither content nor a plan."""
    if message.is_empty:
        return
    messages.append(message)
