"""Shared utilities for md-talk."""

from .content import (
    clean_snippet,
    extract_command,
    extract_primary_text,
    normalize_role,
    parse_json,
    split_lines,
    text_from_content_array,
    to_json,
    truncate_content,
    unwrap_tool_result,
)
from .timestamp import (
    parse_iso_timestamp,
    parse_epoch_milliseconds,
    parse_epoch_seconds,
    parse_timestamp,
    format_timestamp_iso,
    format_timestamp_date,
)

__all__ = [
    'clean_snippet',
    'extract_command',
    'extract_primary_text',
    'normalize_role',
    'parse_json',
    'split_lines',
    'text_from_content_array',
    'to_json',
    'truncate_content',
    'unwrap_tool_result',
    'parse_iso_timestamp',
    'parse_epoch_milliseconds',
    'parse_epoch_seconds',
    'parse_timestamp',
    'format_timestamp_iso',
    'format_timestamp_date',
]
