"""Per-agent session log parsers."""

from pathlib import Path
from typing import Dict, List, Optional, Type, Union

from .base import AgentParser, HistoryCache
from .claude_code import ClaudeCodeParser
from .codex import CodexParser


class UnknownAgentError(ValueError):
    """Raised when an agent name does not match any supported parser."""

    def __init__(self, agent: str, supported: List[str]):
        self.agent = agent
        self.supported = supported
        super().__init__(f"Unknown agent '{agent}'. Supported agents: {', '.join(supported)}")


# Accepted names per parser, matched case-insensitively
AGENT_ALIASES: Dict[str, Type[AgentParser]] = {
    'codex': CodexParser,
    'claude': ClaudeCodeParser,
    'claude-code': ClaudeCodeParser,
}


def supported_agents() -> List[str]:
    return list(AGENT_ALIASES)


def get_parser(agent: str, data_dir: Optional[Union[str, Path]] = None) -> AgentParser:
    """Create the parser registered for an agent name.

    Args:
        agent: Agent name, case-insensitive ('codex', 'claude', 'claude-code')
        data_dir: Optional override for the agent's data directory

    Raises:
        UnknownAgentError: If no parser is registered under that name
    """
    parser_class = AGENT_ALIASES.get(agent.strip().lower())
    if parser_class is None:
        raise UnknownAgentError(agent, supported_agents())
    if data_dir:
        return parser_class.from_data_dir(data_dir)
    return parser_class()


__all__ = [
    'AgentParser',
    'HistoryCache',
    'CodexParser',
    'ClaudeCodeParser',
    'UnknownAgentError',
    'AGENT_ALIASES',
    'supported_agents',
    'get_parser',
]
