"""Shared test fixtures for convo-lens."""

import json
import os
from datetime import datetime, timezone

import pytest

from convo_lens.config import MIN_FILE_SIZE

BASE_MTIME = datetime(2025, 1, 20, 10, 0, 0, tzinfo=timezone.utc).timestamp()

MYAPP_CWD = "/Users/testuser/dev/myapp"
MYAPP_KEY = "-Users-testuser-dev-myapp"


def _write_jsonl(path, lines, mtime=None, pad=True):
    """Write JSONL lines, padding with blank lines up to MIN_FILE_SIZE.

    Blank lines carry no records, so padding never changes what parses.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    text = "\n".join(line if isinstance(line, str) else json.dumps(line) for line in lines)
    if pad and len(text.encode("utf-8")) < MIN_FILE_SIZE:
        text += "\n" * (MIN_FILE_SIZE - len(text.encode("utf-8")))
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def write_jsonl():
    return _write_jsonl


@pytest.fixture
def claude_session_lines():
    """A native session with every kind of line the validator handles.

    Includes:
    - A command envelope (meta, skipped by previews)
    - User text, assistant text + tool_use, user tool_result
    - A legacy progress record and a stop-hook system record
    - A summary and a line that is not JSON
    """
    common = {"sessionId": "session-001", "cwd": MYAPP_CWD, "isSidechain": False}
    return [
        {
            **common,
            "type": "user",
            "uuid": "uuid-000",
            "parentUuid": None,
            "timestamp": "2025-01-20T09:59:00Z",
            "message": {"role": "user", "content": "<command-name>/clear</command-name>"},
        },
        {
            **common,
            "type": "user",
            "uuid": "uuid-001",
            "parentUuid": "uuid-000",
            "timestamp": "2025-01-20T10:00:00Z",
            "message": {"role": "user", "content": [
                {"type": "text", "text": "Help me refactor   the auth\nmodule"},
            ]},
        },
        {
            **common,
            "type": "assistant",
            "uuid": "uuid-002",
            "parentUuid": "uuid-001",
            "timestamp": "2025-01-20T10:00:30Z",
            "message": {"role": "assistant", "model": "claude-sonnet-4-5", "content": [
                {"type": "text", "text": "Let me read the current code."},
                {"type": "tool_use", "id": "toolu_001", "name": "Read", "input": {"file_path": "/src/auth.ts"}},
            ]},
        },
        {
            **common,
            "type": "user",
            "uuid": "uuid-003",
            "parentUuid": "uuid-002",
            "timestamp": "2025-01-20T10:00:31Z",
            "message": {"role": "user", "content": [
                {"type": "tool_result", "tool_use_id": "toolu_001", "content": "export function authenticate() {}", "is_error": False},
            ]},
        },
        {
            "type": "progress",
            "uuid": "uuid-004",
            "parentUuid": "uuid-003",
            "toolUseID": "toolu_001",
            "data": {"type": "bash_progress", "elapsedTimeSeconds": 3, "totalLines": 10},
        },
        {
            **common,
            "type": "system",
            "uuid": "uuid-005",
            "subtype": "stop_hook_summary",
            "timestamp": "2025-01-20T10:01:00Z",
            "hookCount": 2,
            "hookInfos": [{"command": "lint"}, {"command": "fmt"}],
            "preventedContinuation": False,
        },
        {"type": "summary", "summary": "Refactored auth module", "leafUuid": "uuid-003"},
        "not json at all",
    ]


@pytest.fixture
def codex_rollout_lines():
    """A Codex rollout with metadata, meta text, a tool call and duplicated events."""
    return [
        {"timestamp": "2025-01-20T11:00:00Z", "type": "session_meta", "payload": {
            "id": "codex-session-1", "cwd": MYAPP_CWD, "cli_version": "0.46.0",
        }},
        {"timestamp": "2025-01-20T11:00:01Z", "type": "turn_context", "payload": {
            "cwd": MYAPP_CWD, "model": "gpt-5-codex",
        }},
        {"timestamp": "2025-01-20T11:00:02Z", "type": "response_item", "payload": {
            "type": "message", "role": "user",
            "content": [{"type": "input_text", "text": "<environment_context>\n  <cwd>/Users/testuser/dev/myapp</cwd>\n</environment_context>"}],
        }},
        {"timestamp": "2025-01-20T11:00:03Z", "type": "response_item", "payload": {
            "type": "message", "role": "user",
            "content": [{"type": "input_text", "text": "fix the bug in the parser"}],
        }},
        {"timestamp": "2025-01-20T11:00:03Z", "type": "event_msg", "payload": {
            "type": "user_message", "message": "fix the bug in the parser",
        }},
        {"timestamp": "2025-01-20T11:00:04Z", "type": "response_item", "payload": {
            "type": "reasoning", "summary": [{"type": "summary_text", "text": "Looking at the parser"}],
        }},
        {"timestamp": "2025-01-20T11:00:05Z", "type": "response_item", "payload": {
            "type": "function_call", "name": "shell", "call_id": "call_1",
            "arguments": json.dumps({"command": ["ls"]}),
        }},
        {"timestamp": "2025-01-20T11:00:06Z", "type": "response_item", "payload": {
            "type": "function_call_output", "call_id": "call_1",
            "output": json.dumps({"output": "README.md\n", "metadata": {"exit_code": 0}}),
        }},
        {"timestamp": "2025-01-20T11:00:07Z", "type": "response_item", "payload": {
            "type": "message", "role": "assistant",
            "content": [{"type": "output_text", "text": "Fixed the off-by-one."}],
        }},
        {"timestamp": "2025-01-20T11:00:07Z", "type": "event_msg", "payload": {
            "type": "agent_message", "message": "Fixed the off-by-one.",
        }},
    ]


@pytest.fixture
def tmp_claude_projects(tmp_path, claude_session_lines):
    """Create a Claude Code projects directory.

    Layout:
    - -Users-testuser-dev-myapp/session-001.jsonl (oldest in the group)
    - -Users-testuser-dev-myapp/agent-abc.jsonl (sub-agent, newer)
    - -Users-testuser-dev-myapp/tiny.jsonl (below MIN_FILE_SIZE)
    - -Users-testuser-dev-myapp/notes.txt (not a session file)
    - -Users-testuser-dev-other/session-002.jsonl (newest overall)
    """
    projects = tmp_path / "claude" / "projects"
    myapp = projects / MYAPP_KEY

    _write_jsonl(myapp / "session-001.jsonl", claude_session_lines, mtime=BASE_MTIME)
    _write_jsonl(myapp / "agent-abc.jsonl", [
        {
            "type": "user", "uuid": "a-1", "sessionId": "session-001", "agentId": "abc",
            "isSidechain": True, "cwd": MYAPP_CWD, "timestamp": "2025-01-20T10:02:00Z",
            "message": {"role": "user", "content": "Search for auth usages"},
        },
    ], mtime=BASE_MTIME + 60)
    _write_jsonl(myapp / "tiny.jsonl", ['{"type":"summary","summary":"x"}'], mtime=BASE_MTIME, pad=False)
    (myapp / "notes.txt").write_text("x" * MIN_FILE_SIZE, encoding="utf-8")

    _write_jsonl(projects / "-Users-testuser-dev-other" / "session-002.jsonl", [
        {
            "type": "user", "uuid": "o-1", "sessionId": "session-002", "cwd": "/Users/testuser/dev/other",
            "timestamp": "2025-01-21T09:00:00Z",
            "message": {"role": "user", "content": "Write tests for the API"},
        },
    ], mtime=BASE_MTIME + 86400)

    return projects


@pytest.fixture
def tmp_codex_sessions(tmp_path, codex_rollout_lines):
    """Create a Codex sessions directory partitioned by date.

    One rollout records a cwd; the other has no metadata at all.
    """
    sessions = tmp_path / "codex" / "sessions"
    day = sessions / "2025" / "01" / "20"

    _write_jsonl(
        day / "rollout-2025-01-20T11-00-00-codex-session-1.jsonl",
        codex_rollout_lines,
        mtime=BASE_MTIME + 3600,
    )
    _write_jsonl(day / "rollout-2025-01-20T12-00-00-orphan.jsonl", [
        {"timestamp": "2025-01-20T12:00:00Z", "type": "response_item", "payload": {
            "type": "message", "role": "user", "content": [{"type": "input_text", "text": "hello there"}],
        }},
    ], mtime=BASE_MTIME + 7200)

    return sessions


@pytest.fixture
def tmp_claude_profiles(tmp_path):
    """Create a Claude Code profiles directory with a "work" profile."""
    profiles = tmp_path / "claude-profiles"
    _write_jsonl(profiles / "work" / "projects" / "-Users-testuser-dev-work" / "session-w1.jsonl", [
        {
            "type": "user", "uuid": "w-1", "sessionId": "session-w1", "cwd": "/Users/testuser/dev/work",
            "timestamp": "2025-01-19T09:00:00Z",
            "message": {"role": "user", "content": "Review the quarterly report script"},
        },
    ], mtime=BASE_MTIME - 86400)
    return profiles


@pytest.fixture
def store_env(monkeypatch, tmp_path, tmp_claude_projects, tmp_codex_sessions, tmp_claude_profiles):
    """Point every store root at the synthetic directories."""
    monkeypatch.setenv("CONVO_LENS_CLAUDE_PATH", str(tmp_claude_projects))
    monkeypatch.setenv("CONVO_LENS_CLAUDE_PROFILES", str(tmp_claude_profiles))
    monkeypatch.setenv("CONVO_LENS_CODEX_PATH", str(tmp_codex_sessions))
    monkeypatch.setenv("CONVO_LENS_CODEX_PROFILES", str(tmp_path / "no-codex-profiles"))
    monkeypatch.delenv("CONVO_LENS_WORKSPACE", raising=False)
    return tmp_path
