"""CLI input validation utilities."""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from ..config import DEFAULT_METADATA_FIELDS


def parse_metadata_fields(raw: Optional[str]) -> List[str]:
    """Split a comma-separated --include-metadata value.

    Items are trimmed and lower-cased; empty items are dropped. None
    yields the default field list.

    Args:
        raw: The option value, e.g. 'agent, session-id,cwd'

    Returns:
        Ordered list of field keys
    """
    source = raw if raw is not None else ','.join(DEFAULT_METADATA_FIELDS)
    return [entry.strip().lower() for entry in source.split(',') if entry.strip()]


def validate_output_writable(output_path: str) -> Tuple[bool, Optional[str]]:
    """Validate output file is writable.

    Args:
        output_path: Path to the output file

    Returns:
        Tuple of (is_valid, error_message)
    """
    path = Path(output_path).resolve()

    if path.is_dir():
        return False, f"Output path is a directory: {path}"

    # Check if parent directory exists
    if not path.parent.exists():
        return False, f"Parent directory does not exist: {path.parent}"

    # Check if parent directory is writable
    if not os.access(path.parent, os.W_OK):
        return False, f"Cannot write to directory: {path.parent}"

    # Check if file exists and is writable
    if path.exists() and not os.access(path, os.W_OK):
        return False, f"File is not writable: {path}"

    return True, None
