"""Configuration constants for md-talk."""

import os
from pathlib import Path

# Data directories (overridable through the environment or a .env file)
CODEX_HOME_ENV = 'CODEX_HOME'
CLAUDE_DATA_DIR_ENV = 'CLAUDE_DATA_DIR'

HISTORY_FILE_NAME = 'history.jsonl'
SESSION_FILE_SUFFIX = '.jsonl'

# Rendering defaults
DEFAULT_METADATA_FIELDS = ['agent', 'session-id', 'started-time', 'cwd']

# History preview snippets
SNIPPET_MAX_LENGTH = 90
SNIPPET_ELLIPSIS = '…'

# Claude Code history keeps every distinct preview; only a few go in the listing
CLAUDE_DESCRIPTION_PREVIEWS = 3

# Epoch values above this are milliseconds, not seconds
EPOCH_MILLISECONDS_THRESHOLD = 1_000_000_000_000

# Listing display
SESSION_ID_DISPLAY_LENGTH = 13
TITLE_DISPLAY_LENGTH = 60


def get_codex_home() -> Path:
    """Return the Codex data dir. Honors CODEX_HOME, defaults to ~/.codex/."""
    env = os.environ.get(CODEX_HOME_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / '.codex'


def get_claude_dir() -> Path:
    """Return the Claude data dir. Honors CLAUDE_DATA_DIR, defaults to ~/.claude/."""
    env = os.environ.get(CLAUDE_DATA_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / '.claude'
