"""Content extraction utilities."""

import json
import re
from typing import Any, Dict, Iterable, List, Optional

from ..config import SNIPPET_MAX_LENGTH, SNIPPET_ELLIPSIS
from ..models import ROLE_ASSISTANT, ROLE_TOOL, ROLE_USER

_NEWLINE_RE = re.compile(r'\r\n|\r|\n')


def to_json(value: Any) -> str:
    """Serialize a value as compact JSON, keeping non-ASCII text readable."""
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'))


def parse_json(text: Any) -> Any:
    """Parse JSON text, returning None when it is not valid JSON."""
    if not isinstance(text, str):
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def split_lines(text: str) -> List[str]:
    """Split text on any newline style."""
    return _NEWLINE_RE.split(text)


def truncate_content(content: str, max_length: int, suffix: str = "...") -> str:
    """Truncate content to maximum length with suffix.

    Args:
        content: Content to truncate
        max_length: Maximum length before truncation
        suffix: Suffix to append when truncated

    Returns:
        Truncated content with suffix if needed
    """
    if len(content) <= max_length:
        return content
    return content[:max_length - len(suffix)] + suffix


def clean_snippet(value: Optional[str]) -> Optional[str]:
    """Collapse a preview text into a single short line.

    Returns None when nothing but whitespace remains. Snippets longer than
    the limit keep their first characters followed by an ellipsis.
    """
    if not value:
        return None
    compact = ' '.join(value.split())
    if not compact:
        return None
    if len(compact) > SNIPPET_MAX_LENGTH:
        return compact[:SNIPPET_MAX_LENGTH - 3] + SNIPPET_ELLIPSIS
    return compact


def normalize_role(value: Optional[str]) -> str:
    """Map a raw role onto user/assistant/tool; unknown roles become user."""
    if value == ROLE_ASSISTANT:
        return ROLE_ASSISTANT
    if value == ROLE_TOOL:
        return ROLE_TOOL
    return ROLE_USER


def text_from_content_array(content: Any, kinds: Iterable[str]) -> str:
    """Join the text of content entries whose type is one of ``kinds``."""
    if not isinstance(content, list):
        return ""
    kinds = set(kinds)
    parts = []
    for entry in content:
        if isinstance(entry, dict) and entry.get('type') in kinds:
            text = entry.get('text')
            if isinstance(text, str):
                parts.append(text)
    return '\n'.join(parts).strip()


def extract_command(record: Optional[Dict[str, Any]]) -> Optional[str]:
    """Extract a shell command given as a string or a list of tokens."""
    if not isinstance(record, dict):
        return None
    command = record.get('command')
    if isinstance(command, list):
        return ' '.join(str(part) for part in command)
    if isinstance(command, str):
        return command
    return None


def extract_primary_text(record: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    """Return the first non-blank string value among ``keys``."""
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def unwrap_tool_result(content: Any) -> str:
    """Extract readable text from a tool result's content.

    Handles the shapes tool results come in:
    - Plain strings (returned unchanged)
    - Lists of strings and typed blocks: thinking blocks are dropped,
      text blocks contribute their text, blocks with a nested ``content``
      are unwrapped one level, anything else is dumped as JSON
    - Objects with a ``text`` field, or any other object (dumped as JSON)

    Args:
        content: The ``content`` value of a tool_result entry

    Returns:
        Text content, or empty string when there is nothing to show
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts = []
        for part in content:
            if not part:
                continue
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict):
                text = _unwrap_block(part)
                if text is not None:
                    parts.append(text)
            else:
                parts.append(to_json(part))
        return '\n'.join(parts)

    if isinstance(content, dict):
        text = content.get('text')
        if isinstance(text, str):
            return text
        return to_json(content)

    return ""


def _unwrap_block(block: Dict[str, Any]) -> Optional[str]:
    """Text for one typed block of a tool result, None to drop it."""
    block_type = block.get('type')
    if block_type == 'thinking':
        return None
    if block_type == 'text' and isinstance(block.get('text'), str):
        return block['text']
    if 'content' in block:
        nested = block['content']
        if isinstance(nested, str):
            return nested
        if isinstance(nested, list):
            return '\n'.join(
                value if isinstance(value, str) else to_json(value)
                for value in nested
            )
    return to_json(block)
