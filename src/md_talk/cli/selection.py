"""Interactive session selection."""

import sys
from typing import List

import click

from ..models import SessionSummary
from ..utils import format_timestamp_iso


def can_prompt() -> bool:
    """True when both stdin and stdout are attached to a terminal."""
    return sys.stdin.isatty() and sys.stdout.isatty()


def prompt_for_session(sessions: List[SessionSummary]) -> SessionSummary:
    """Ask the user to pick one of the listed sessions by number.

    Raises:
        click.UsageError: If there is nothing to pick or no terminal to ask on
    """
    if not sessions:
        raise click.UsageError("No sessions available to select.")
    if not can_prompt():
        raise click.UsageError("Interactive selection is unavailable. Pass --session <id> instead.")

    click.echo("Available sessions:\n")
    for index, session in enumerate(sessions):
        started = format_timestamp_iso(session.started_at) or 'unknown time'
        click.echo(f"[{index}] {session.title} | {started} | {session.message_count} messages")
    click.echo("")

    index = click.prompt("Select a session number", type=click.IntRange(0, len(sessions) - 1))
    return sessions[index]
