"""Canonical session model shared by the parsers and the renderer."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

# Message roles
ROLE_USER = 'user'
ROLE_ASSISTANT = 'assistant'
ROLE_TOOL = 'tool'

# Message types
TYPE_TEXT = 'text'
TYPE_PLAN = 'plan'
TYPE_THINKING = 'thinking'
TYPE_BASH = 'bash'
TYPE_WRITE_FILE = 'write-file'
TYPE_TOOL_CALL = 'tool-call'
TYPE_TOOL_OUTPUT = 'tool-output'


@dataclass
class PlanStep:
    """One checklist entry of a plan."""
    text: str
    status: Optional[str] = None  # 'completed', 'in_progress', anything else is pending


@dataclass
class Plan:
    """A structured task breakdown stated by the agent."""
    explanation: Optional[str] = None
    steps: List[PlanStep] = field(default_factory=list)


@dataclass
class SessionSummary:
    """Lightweight listing entry built from a history index."""
    id: str
    title: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    message_count: int = 0
    description: Optional[str] = None
    source_path: Optional[str] = None  # file path, possibly with a '#line' suffix

    @property
    def sort_key(self) -> float:
        """Start time as epoch seconds; undated sessions sort as the epoch."""
        return self.started_at.timestamp() if self.started_at else 0.0


@dataclass
class SessionMessage:
    """One renderable unit of conversation or tool activity."""
    role: str
    content: str
    type: str = TYPE_TEXT
    timestamp: Optional[datetime] = None
    tool_name: Optional[str] = None
    name: Optional[str] = None
    plan: Optional[Plan] = None

    @property
    def is_empty(self) -> bool:
        """True when the message carries neither content nor a plan."""
        return not self.content and self.plan is None


@dataclass
class SessionData:
    """A fully loaded session."""
    id: str
    agent: str
    title: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    messages: List[SessionMessage] = field(default_factory=list)


def sort_summaries(summaries: List[SessionSummary]) -> List[SessionSummary]:
    """Sort summaries newest first, undated sessions last, ties kept in order."""
    return sorted(summaries, key=lambda s: s.sort_key, reverse=True)
