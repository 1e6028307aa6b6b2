"""Tests for the Codex log parser."""

import json
from datetime import datetime, timezone

import pytest

from md_talk.models import Plan, PlanStep
from md_talk.parsers.codex import (
    CodexParser,
    extract_tool_output,
    format_tool_call,
    parse_plan_arguments,
)


def _item(timestamp, payload):
    return {"type": "response_item", "timestamp": timestamp, "payload": payload}


def _call(timestamp, name, arguments):
    return _item(timestamp, {"type": "function_call", "name": name, "arguments": arguments})


HISTORY_LINES = [
    json.dumps({"session_id": "a", "ts": 1700000000, "text": "first prompt"}),
    json.dumps({"session_id": "b", "ts": 1700000100, "text": "other session"}),
    json.dumps({"session_id": "a", "ts": 1700000200, "text": "second prompt"}),
    "{not json",
    json.dumps({"session_id": "c", "text": "undated"}),
    json.dumps({"ts": 1700000300, "text": "no session id"}),
]

TRANSCRIPT_RECORDS = [
    {"type": "session_meta", "payload": {
        "timestamp": "2025-01-01T10:00:00Z",
        "cwd": "/work",
        "cli_version": "0.1.0",
        "originator": "codex_cli_rs",
    }},
    {"type": "session_meta", "payload": {"cwd": "/somewhere-else"}},
    _item("2025-01-01T10:00:01Z", {
        "type": "message", "role": "user",
        "content": [{"type": "input_text", "text": "Run the tests"}],
    }),
    _call("2025-01-01T10:00:02Z", "shell", json.dumps({"command": ["bash", "-lc", "pytest"]})),
    _item("2025-01-01T10:00:03Z", {
        "type": "function_call_output",
        "output": json.dumps({"output": "2 passed", "metadata": {"exit_code": 0}}),
    }),
    {"type": "event_msg", "timestamp": "2025-01-01T10:00:03Z", "payload": {"type": "token_count"}},
    _call("2025-01-01T10:00:04Z", "update_plan", json.dumps({
        "explanation": "Next",
        "plan": [{"step": "a", "status": "completed"}, {"step": ""}, {"step": "b"}],
    })),
    _item("2025-01-01T10:00:05Z", {
        "type": "message", "role": "assistant",
        "content": [{"type": "output_text", "text": "All green"}],
    }),
]


def _transcript(records=TRANSCRIPT_RECORDS):
    return '\n'.join(json.dumps(record) for record in records) + '\n'


@pytest.fixture
def parser(tmp_path):
    return CodexParser.from_data_dir(tmp_path)


class TestParseHistory:
    """Tests for CodexParser.parse_history."""

    def test_groups_and_sorts(self, parser):
        """Should group lines per session and sort newest first, undated last."""
        summaries = parser.parse_history('\n'.join(HISTORY_LINES), "/logs/history.jsonl")
        assert [s.id for s in summaries] == ["b", "a", "c"]

    def test_aggregates_entries(self, parser):
        """Should count entries and take the span of their timestamps."""
        summaries = parser.parse_history('\n'.join(HISTORY_LINES), "/logs/history.jsonl")
        summary = next(s for s in summaries if s.id == "a")
        assert summary.message_count == 2
        assert summary.title == "first prompt"
        assert summary.description == "first prompt"
        assert summary.started_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert summary.ended_at == datetime.fromtimestamp(1700000200, tz=timezone.utc)

    def test_source_path_points_at_first_line(self, parser):
        """Should reference the first history line of each session."""
        summaries = {s.id: s for s in parser.parse_history('\n'.join(HISTORY_LINES), "/logs/history.jsonl")}
        assert summaries["a"].source_path == "/logs/history.jsonl#1"
        assert summaries["c"].source_path == "/logs/history.jsonl#5"

    def test_no_duplicate_ids(self, parser):
        """Should emit one summary per session id."""
        summaries = parser.parse_history('\n'.join(HISTORY_LINES))
        ids = [s.id for s in summaries]
        assert len(ids) == len(set(ids))

    def test_long_prompt_title_is_shortened(self, parser):
        """Should collapse and shorten long prompts used as titles."""
        line = json.dumps({"session_id": "x", "ts": 1, "text": "word " * 40})
        summary = parser.parse_history(line)[0]
        assert len(summary.title) == 88
        assert summary.title.endswith("…")

    def test_empty(self, parser):
        """Should return no summaries for empty content."""
        assert parser.parse_history("") == []


class TestParseSession:
    """Tests for CodexParser.parse_session."""

    def test_identity_from_file_name(self, parser):
        """Should use the file name without extension as id and title."""
        session = parser.parse_session(_transcript(), "/x/rollout-abc.jsonl")
        assert session.id == "rollout-abc"
        assert session.title == "rollout-abc"
        assert session.agent == "codex"
        assert session.metadata["session_file"] == "/x/rollout-abc.jsonl"

    def test_session_meta_first_occurrence_wins(self, parser):
        """Should keep metadata from the first session_meta record."""
        session = parser.parse_session(_transcript())
        assert session.metadata["cwd"] == "/work"
        assert session.metadata["cli_version"] == "0.1.0"
        assert session.metadata["originator"] == "codex_cli_rs"

    def test_time_span(self, parser):
        """Should start at session_meta and end at the last response item."""
        session = parser.parse_session(_transcript())
        assert session.started_at == datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        assert session.ended_at == datetime(2025, 1, 1, 10, 0, 5, tzinfo=timezone.utc)

    def test_messages(self, parser):
        """Should convert response items into canonical messages in order."""
        session = parser.parse_session(_transcript())
        assert [(m.role, m.type) for m in session.messages] == [
            ("user", "text"),
            ("assistant", "bash"),
            ("tool", "tool-output"),
            ("assistant", "plan"),
            ("assistant", "text"),
        ]
        user, bash, output, plan, reply = session.messages
        assert user.content == "Run the tests"
        assert bash.content == "bash -lc pytest"
        assert bash.tool_name == "shell"
        assert output.content == "2 passed"
        assert plan.content == "Next"
        assert plan.plan == Plan(explanation="Next", steps=[
            PlanStep(text="a", status="completed"),
            PlanStep(text="b", status=None),
        ])
        assert reply.content == "All green"

    def test_only_malformed_lines(self, parser):
        """Should yield zero messages, not an error, for garbage input."""
        session = parser.parse_session("{oops\nnot json either\n[1, 2]\n")
        assert session.messages == []
        assert session.id == "session"

    def test_skips_empty_messages(self, parser):
        """Should never emit a message without content or plan."""
        records = [
            _item("2025-01-01T10:00:00Z", {"type": "message", "role": "user", "content": []}),
            _item("2025-01-01T10:00:01Z", {"type": "function_call_output", "output": ""}),
            _item("2025-01-01T10:00:02Z", {"type": "reasoning", "summary": []}),
        ]
        session = parser.parse_session(_transcript(records))
        assert session.messages == []

    def test_unknown_role_becomes_user(self, parser):
        """Should map unexpected roles to user."""
        records = [_item("2025-01-01T10:00:00Z", {
            "type": "message", "role": "developer",
            "content": [{"type": "input_text", "text": "instructions"}],
        })]
        session = parser.parse_session(_transcript(records))
        assert session.messages[0].role == "user"

    def test_reasoning_summary(self, parser):
        """Should render reasoning summaries as thinking."""
        records = [_item("2025-01-01T10:00:00Z", {
            "type": "reasoning",
            "summary": [{"type": "summary_text", "text": "Considering options"}],
        })]
        message = parser.parse_session(_transcript(records)).messages[0]
        assert message.type == "thinking"
        assert message.content == "Considering options"

    def test_local_shell_call(self, parser):
        """Should render local shell calls as bash."""
        records = [_item("2025-01-01T10:00:00Z", {
            "type": "local_shell_call",
            "action": {"type": "exec", "command": ["ls", "-la"]},
        })]
        message = parser.parse_session(_transcript(records)).messages[0]
        assert message.type == "bash"
        assert message.content == "ls -la"

    def test_custom_tool_call(self, parser):
        """Should render custom tool calls with their raw input."""
        records = [
            _item("2025-01-01T10:00:00Z", {
                "type": "custom_tool_call", "name": "apply_patch", "input": "*** Begin Patch",
            }),
            _item("2025-01-01T10:00:01Z", {"type": "custom_tool_call_output", "output": "Done!"}),
        ]
        call, output = parser.parse_session(_transcript(records)).messages
        assert (call.type, call.tool_name, call.content) == ("tool-call", "apply_patch", "*** Begin Patch")
        assert (output.type, output.content) == ("tool-output", "Done!")

    def test_empty_plan_gets_default_explanation(self, parser):
        """Should still emit a plan message for an update_plan call without steps."""
        records = [_call("2025-01-01T10:00:00Z", "update_plan", "{}")]
        message = parser.parse_session(_transcript(records)).messages[0]
        assert message.type == "plan"
        assert message.content == "Plan update."
        assert message.plan == Plan(explanation="Plan update.", steps=[])


class TestFormatToolCall:
    """Tests for format_tool_call function."""

    def test_mcp_keeps_raw_arguments(self):
        """Should keep the raw argument string of MCP tools."""
        raw = '{"path": "README.md"}'
        assert format_tool_call("mcp__fs__read", json.loads(raw), raw) == (raw, "tool-call")

    def test_shell_command(self):
        """Should extract the command of shell calls."""
        raw = '{"command": ["git", "status"]}'
        assert format_tool_call("shell", json.loads(raw), raw) == ("git status", "bash")

    def test_primary_text(self):
        """Should prefer a primary text field of other tools."""
        raw = '{"query": "weather in Paris", "limit": 3}'
        assert format_tool_call("web_search", json.loads(raw), raw) == ("weather in Paris", "tool-call")

    def test_fallback_to_raw(self):
        """Should use the raw arguments when nothing better is found."""
        assert format_tool_call("web_search", None, "not json") == ("not json", "tool-call")


class TestParsePlanArguments:
    """Tests for parse_plan_arguments function."""

    def test_nothing_to_plan(self):
        """Should return None without explanation or steps."""
        assert parse_plan_arguments({"plan": [{"status": "completed"}]}) is None
        assert parse_plan_arguments(None) is None

    def test_steps_only(self):
        """Should accept plans without an explanation."""
        plan = parse_plan_arguments({"plan": [{"step": "write tests", "status": "in_progress"}]})
        assert plan.explanation is None
        assert plan.steps == [PlanStep(text="write tests", status="in_progress")]


class TestExtractToolOutput:
    """Tests for extract_tool_output function."""

    @pytest.mark.parametrize("source,expected", [
        ("plain text", "plain text"),
        ('{"output": "from json"}', "from json"),
        ('{"stdout": "out"}', "out"),
        ('{"result": "res"}', "res"),
        ('{"other": 1}', '{"other": 1}'),
        ('[1, 2]', '[1, 2]'),
        ({"output": ["a", {"b": 1}]}, 'a\n{"b":1}'),
        ({"output": {"k": 1}}, '{"k":1}'),
        ({"output": "first", "stdout": "second"}, "first"),
        ({"nothing": True}, ""),
        (None, ""),
    ])
    def test_extraction_order(self, source, expected):
        """Should try output, stdout and result in that order."""
        assert extract_tool_output(source) == expected


class TestCodexFiles:
    """Tests for CodexParser reading a Codex home directory."""

    SESSION_ID = "019a5895-7e77-7073-94e7-6a483d20ec60"

    def _write_history(self, tmp_path, jsonl_writer):
        jsonl_writer(tmp_path / "history.jsonl", [
            {"session_id": self.SESSION_ID, "ts": 1735725600, "text": "Run the tests"},
            {"session_id": self.SESSION_ID, "ts": 1735725700, "text": "Thanks"},
        ])

    @pytest.mark.anyio
    async def test_missing_history(self, parser):
        """Should list nothing when history.jsonl does not exist."""
        assert await parser.list_sessions() == []

    @pytest.mark.anyio
    async def test_load_session_from_rollout(self, tmp_path, parser, jsonl_writer):
        """Should find the rollout file and merge history metadata."""
        self._write_history(tmp_path, jsonl_writer)
        rollout = tmp_path / "sessions" / "2025" / "01" / "01" / f"rollout-2025-01-01T10-00-00-{self.SESSION_ID}.jsonl"
        jsonl_writer(rollout, TRANSCRIPT_RECORDS)

        summaries = await parser.list_sessions()
        assert len(summaries) == 1
        session = await parser.load_session(summaries[0])

        assert session.id == self.SESSION_ID
        assert session.title == "Run the tests"
        assert session.metadata["history_file"] == str(tmp_path / "history.jsonl")
        assert session.metadata["history_lines"] == "2"
        assert session.metadata["summary"] == "Run the tests"
        assert session.metadata["session_file"] == str(rollout)
        assert session.metadata["cwd"] == "/work"
        assert len(session.messages) == 5

    @pytest.mark.anyio
    async def test_load_session_without_rollout(self, tmp_path, parser, jsonl_writer):
        """Should fall back to history prompts when no transcript exists."""
        self._write_history(tmp_path, jsonl_writer)

        summary = (await parser.list_sessions())[0]
        session = await parser.load_session(summary)

        assert "session_file" not in session.metadata
        assert [(m.role, m.content) for m in session.messages] == [
            ("user", "Run the tests"),
            ("user", "Thanks"),
        ]
        assert session.started_at == summary.started_at

    @pytest.mark.anyio
    async def test_history_is_cached(self, tmp_path, parser, jsonl_writer):
        """Should read the history index once per parser instance."""
        self._write_history(tmp_path, jsonl_writer)
        first = await parser.list_sessions()
        (tmp_path / "history.jsonl").unlink()
        second = await parser.list_sessions()
        assert [s.id for s in first] == [s.id for s in second]
