"""
md-talk command line

Lists Codex and Claude Code sessions and exports one to Markdown.
"""

import logging
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

import anyio
import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from ..config import DEFAULT_METADATA_FIELDS
from ..formatters import (
    MarkdownFormatter,
    PlainFormatter,
    RenderOptions,
    TerminalFormatter,
    should_use_plain_output,
)
from ..models import SessionSummary
from ..parsers import AgentParser, get_parser
from ..session_finder import require_session, require_sessions
from .selection import prompt_for_session
from .validation import parse_metadata_fields, validate_output_writable

LIST_COMMANDS = ('ls', 'list')

logger = logging.getLogger(__name__)

# Console for rich output
console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Send md_talk log records to stderr through rich."""
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    package_logger = logging.getLogger('md_talk')
    package_logger.handlers = [handler]
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.argument('agent')
@click.argument('session_id', required=False)
@click.option('--session', '-s', 'session_option', help='Session ID or prefix (falls back to interactive selection)')
@click.option('--out', '--output', '-o', 'output_path', type=click.Path(dir_okay=False),
              help='Target markdown path (required for export)')
@click.option('--include-metadata', 'include_metadata', default=','.join(DEFAULT_METADATA_FIELDS),
              show_default=True, help='Comma-separated list of metadata fields for the report')
@click.option('--display-tool-output', is_flag=True, help='Include tool outputs in the conversation log')
@click.option('--title', help='Title for the exported document (default: session title)')
@click.option('--list', 'list_only', is_flag=True, help='List available sessions for the agent')
@click.option('--format', 'output_format', type=click.Choice(['auto', 'terminal', 'plain', 'markdown']),
              default='auto', help='Listing format (auto detects plain when piping)')
@click.option('--data-dir', type=click.Path(file_okay=False),
              help='Agent data directory (default: $CODEX_HOME or ~/.codex, $CLAUDE_DATA_DIR or ~/.claude)')
@click.option('--verbose', '-v', is_flag=True, help='Show full session IDs and debug logging')
@click.version_option(version=__version__)
def main(agent, session_id, session_option, output_path, include_metadata, display_tool_output, title,
         list_only, output_format, data_dir, verbose):
    """Export coding-agent sessions to Markdown.

    \b
    Examples:
      md-talk ls codex
      md-talk codex --list --format plain
      md-talk codex 019a5895-7e77-7073-94e7-6a483d20ec60 -o main.md
      md-talk claude -s 5c1d -o notes.md --display-tool-output
    """
    # Load environment variables from .env file
    load_dotenv()
    configure_logging(verbose)

    if agent.lower() in LIST_COMMANDS:
        if not session_id:
            raise click.UsageError("Please provide an agent name to list sessions.")
        agent, session_id, list_only = session_id, None, True

    try:
        parser = get_parser(agent, data_dir)

        if list_only:
            anyio.run(partial(handle_list_sessions, parser, output_format, verbose))
            return

        if not output_path:
            raise click.UsageError("Please provide an output path using -o <file>.")

        is_valid, error = validate_output_writable(output_path)
        if not is_valid:
            raise click.UsageError(error)

        options = RenderOptions(
            include_metadata_fields=parse_metadata_fields(include_metadata),
            display_tool_output=display_tool_output,
            title=title,
        )
        output_file = anyio.run(partial(
            handle_export, parser, session_option or session_id, output_path, options
        ))
        click.echo(f"Session exported to {output_file}")

    except (click.ClickException, click.Abort):
        raise
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user.", err=True)
        sys.exit(1)
    except Exception as e:
        logger.debug("Export failed", exc_info=True)
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)


async def handle_list_sessions(parser: AgentParser, output_format: str, verbose: bool = False) -> None:
    """Handle session listing operations."""
    sessions = await parser.list_sessions()

    if output_format == 'auto':
        output_format = 'plain' if should_use_plain_output() else 'terminal'

    if output_format == 'terminal':
        formatter = TerminalFormatter(console)
        formatter.format_session_list(parser.agent, sessions, verbose=verbose)

    elif output_format == 'plain':
        formatter = PlainFormatter()
        formatter.format_session_list(parser.agent, sessions, sys.stdout, verbose)

    elif output_format == 'markdown':
        formatter = MarkdownFormatter()
        formatter.format_session_list(parser.agent, sessions, sys.stdout, verbose)


async def handle_export(parser: AgentParser, session_id: Optional[str], output_path: str,
                        options: RenderOptions) -> Path:
    """Load one session, render it and write the Markdown file.

    Returns:
        The absolute path written
    """
    sessions: List[SessionSummary] = require_sessions(parser.agent, await parser.list_sessions())

    if session_id:
        summary = require_session(parser.agent, sessions, session_id)
    else:
        summary = prompt_for_session(sessions)

    logger.debug("Loading session %s from %s", summary.id, summary.source_path)
    session = await parser.load_session(summary)
    markdown = MarkdownFormatter().format_session(session, options)

    output_file = Path(output_path).resolve()
    await anyio.Path(output_file).write_text(markdown, encoding='utf-8')
    return output_file


if __name__ == '__main__':
    main()
