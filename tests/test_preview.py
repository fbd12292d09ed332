"""Tests for preview extraction."""

import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from convo_lens.config import CODEX_PREVIEW_CHUNK_SIZE, PREVIEW_CHUNK_SIZE, PREVIEW_LENGTH
from convo_lens.core import ConversationFile, FolderNode
from convo_lens.preview import (
    extract_preview,
    is_meta_text,
    load_file_preview,
    load_file_preview_async,
    load_folder_previews,
    preview_budget,
)


def _file(path, source="claude") -> ConversationFile:
    return ConversationFile(
        name=str(path).rsplit("/", 1)[-1],
        path=str(path),
        folder="-p",
        size=2048,
        last_modified=datetime(2025, 1, 20, tzinfo=timezone.utc),
        source=source,
    )


def _lines(*records) -> str:
    return "\n".join(json.dumps(r) for r in records)


class TestIsMetaText:
    @pytest.mark.parametrize("text", [
        "<command-name>/clear</command-name>",
        "  <ide_opened_file>The user opened a.py</ide_opened_file>",
        "<local-command-stdout></local-command-stdout>",
        "[Tool Result] ok",
        "Caveat: The messages below were generated by the user",
        "<environment_context><cwd>/r</cwd></environment_context>",
        "# AGENTS.md instructions for /r",
        'Result for {"tool_use_id": "x"}',
    ])
    def test_meta(self, text):
        assert is_meta_text(text) is True

    def test_user_text(self):
        assert is_meta_text("Why does <command> fail?") is False


class TestExtractPreview:
    def test_native_string_content(self):
        content = _lines({"type": "user", "message": {"role": "user", "content": "hello   world\n"}})
        assert extract_preview(content) == "hello world"

    def test_native_first_text_block(self):
        content = _lines({"type": "user", "message": {"role": "user", "content": [
            {"type": "tool_result", "tool_use_id": "t", "content": "x"},
            {"type": "text", "text": "the real ask"},
        ]}})
        assert extract_preview(content) == "the real ask"

    def test_skips_meta_and_assistant(self):
        content = _lines(
            {"type": "assistant", "message": {"content": [{"type": "text", "text": "assistant talk"}]}},
            {"type": "user", "message": {"content": "<command-name>/init</command-name>"}},
            {"type": "user", "message": {"content": "   "}},
            {"type": "user", "message": {"content": "second prompt"}},
        )
        assert extract_preview(content) == "second prompt"

    def test_truncated(self):
        content = _lines({"type": "user", "message": {"content": "x" * 500}})
        assert extract_preview(content) == "x" * PREVIEW_LENGTH

    def test_codex_rollout(self, codex_rollout_lines):
        assert extract_preview(_lines(*codex_rollout_lines)) == "fix the bug in the parser"

    def test_codex_event_only(self):
        content = _lines({"type": "event_msg", "payload": {"type": "user_message", "message": "from event"}})
        assert extract_preview(content) == "from event"

    def test_codex_agent_event_ignored(self):
        content = _lines({"type": "event_msg", "payload": {"type": "agent_message", "message": "nope"}})
        assert extract_preview(content) == ""

    def test_cut_off_line_skipped(self):
        whole = _lines({"type": "user", "message": {"content": "complete"}})
        assert extract_preview('{"type": "user", "mess\n' + whole) == "complete"

    def test_deeply_nested_line_skipped(self):
        content = "[" * 100000 + "\n" + _lines({"type": "user", "message": {"content": "survived"}})
        assert extract_preview(content) == "survived"

    def test_nothing_usable(self):
        assert extract_preview("garbage\n\n[]") == ""


class TestLoadPreview:
    def test_budget_by_source(self, tmp_path):
        assert preview_budget(_file(tmp_path / "a.jsonl")) == PREVIEW_CHUNK_SIZE
        assert preview_budget(_file(tmp_path / "r.jsonl", source="codex")) == CODEX_PREVIEW_CHUNK_SIZE
        assert CODEX_PREVIEW_CHUNK_SIZE == 4 * PREVIEW_CHUNK_SIZE

    def test_codex_budget_reaches_late_prompt(self, tmp_path, write_jsonl):
        banner = {"type": "response_item", "payload": {
            "type": "message", "role": "user",
            "content": [{"type": "input_text", "text": "<user_instructions>" + "x" * (PREVIEW_CHUNK_SIZE + 10)}],
        }}
        prompt = {"type": "response_item", "payload": {
            "type": "message", "role": "user", "content": [{"type": "input_text", "text": "late prompt"}],
        }}
        path = write_jsonl(tmp_path / "r.jsonl", [banner, prompt])

        assert load_file_preview(_file(path, source="codex")) == "late prompt"
        assert load_file_preview(_file(path, source="claude")) == ""

    def test_loaded_once(self, tmp_claude_projects):
        file = _file(tmp_claude_projects / "-Users-testuser-dev-myapp" / "session-001.jsonl")
        assert load_file_preview(file) == "Help me refactor the auth module"
        assert file.preview_loaded is True

        with patch("convo_lens.preview.read_file_chunk") as read:
            assert load_file_preview(file) == "Help me refactor the auth module"
        read.assert_not_called()

    def test_read_failure_gives_empty(self, tmp_path):
        file = _file(tmp_path / "vanished.jsonl")
        assert load_file_preview(file) == ""
        assert file.preview == ""
        assert file.preview_loaded is True

    @pytest.mark.asyncio
    async def test_async_matches_sync(self, tmp_claude_projects):
        path = tmp_claude_projects / "-Users-testuser-dev-myapp" / "session-001.jsonl"
        assert await load_file_preview_async(_file(path)) == load_file_preview(_file(path))

    @pytest.mark.asyncio
    async def test_folder_previews(self, tmp_claude_projects, tmp_path):
        myapp = tmp_claude_projects / "-Users-testuser-dev-myapp"
        folder = FolderNode(name="-p", path=str(myapp), files=[
            _file(myapp / "session-001.jsonl"),
            _file(myapp / "agent-abc.jsonl"),
            _file(tmp_path / "vanished.jsonl"),
        ])
        await load_folder_previews(folder)

        assert [f.preview for f in folder.files] == [
            "Help me refactor the auth module",
            "Search for auth usages",
            "",
        ]
        assert all(f.preview_loaded for f in folder.files)
