"""Output formatters for different display modes."""

from .base import BaseFormatter
from .terminal import TerminalFormatter
from .plain import PlainFormatter, should_use_plain_output
from .markdown import MarkdownFormatter, RenderOptions, render_session_markdown

__all__ = [
    'BaseFormatter',
    'TerminalFormatter',
    'PlainFormatter',
    'MarkdownFormatter',
    'RenderOptions',
    'render_session_markdown',
    'should_use_plain_output',
]
