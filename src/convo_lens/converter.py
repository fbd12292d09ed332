"""Convert Codex rollout files into canonical session JSONL.

A rollout is line-delimited JSON where every line is a
``{"timestamp", "type", "payload"}`` record:

- "session_meta": session id, cwd, CLI version, and for sub-agents the
  thread that spawned them. Updates the conversion context.
- "turn_context": per-turn cwd and model. Updates the conversion context.
- "response_item": the model-facing transcript. ``payload.type`` is one of
  message, reasoning, function_call, function_call_output,
  custom_tool_call, custom_tool_call_output or web_search_call.
- "event_msg": UI events. user_message / agent_message duplicate the
  response_item messages in newer rollouts, so they are only used for a
  role when the file has no response_item messages for it.

Each emitted entry gets a fresh uuid, a null parent link and the context
as it stands at that line. Entries before the session_meta record keep
whatever context was known then.
"""

import json
import logging
import re
import uuid
from typing import Any, Optional

from pydantic import BaseModel

from .core import SessionContext
from .preview import is_meta_text
from .schema import (
    AssistantEntry,
    AssistantMessage,
    SystemEntry,
    TextContent,
    ThinkingContent,
    ToolResultContent,
    ToolUseContent,
    UserEntry,
    UserMessage,
    entry_to_json,
)

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = "web_search"

_EXIT_CODE_RE = re.compile(r"Process exited with code (\d+)")
_MESSAGE_TEXT_TYPES = ("input_text", "output_text", "text")


def convert_codex_to_canonical(content: str) -> str:
    """Convert rollout text to canonical JSONL text.

    Returns ``content`` unchanged when no line yields an entry.
    """
    records = []
    for line_num, line in enumerate(content.split("\n"), 1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except (ValueError, RecursionError) as e:
            logger.debug("Bad JSON at rollout line %d: %s", line_num, e)
            continue
        if isinstance(record, dict):
            records.append(record)

    entries = _RolloutConverter(records).convert()
    if not entries:
        return content
    return "\n".join(entry_to_json(entry) for entry in entries)


class _RolloutConverter:
    """One ordered pass over the records of a single rollout file."""

    def __init__(self, records: list[dict]):
        self.records = records
        self.context = SessionContext()
        self.use_user_events = not any(_is_message(r, "user") for r in records)
        self.use_agent_events = not any(_is_message(r, "assistant") for r in records)

    def convert(self) -> list[BaseModel]:
        entries: list[BaseModel] = []
        for record in self.records:
            entries.extend(self._convert_record(record))
        return entries

    def _convert_record(self, record: dict) -> list[BaseModel]:
        record_type = record.get("type")
        payload = record.get("payload")
        if not isinstance(payload, dict):
            return []
        timestamp = record.get("timestamp") if isinstance(record.get("timestamp"), str) else ""

        if record_type == "session_meta":
            self._update_from_session_meta(payload)
            return []
        if record_type == "turn_context":
            self._update_from_turn_context(payload)
            return []
        if record_type == "response_item":
            return self._convert_response_item(payload, timestamp)
        if record_type == "event_msg":
            return self._convert_event(payload, timestamp)
        return []

    # ── Context ──────────────────────────────────────────────────

    def _update_from_session_meta(self, payload: dict) -> None:
        ctx = self.context
        ctx.session_id = _str(payload.get("id")) or ctx.session_id
        ctx.cwd = _str(payload.get("cwd")) or ctx.cwd
        ctx.version = _str(payload.get("cli_version")) or ctx.version
        ctx.model = _str(payload.get("model")) or ctx.model

        parent = _parent_thread_id(payload.get("source"))
        if parent and not ctx.parent_agent_id:
            ctx.parent_agent_id = parent

    def _update_from_turn_context(self, payload: dict) -> None:
        ctx = self.context
        ctx.cwd = _str(payload.get("cwd")) or ctx.cwd
        ctx.model = _str(payload.get("model")) or ctx.model

    def _common(self, timestamp: str) -> dict:
        ctx = self.context
        return {
            "uuid": str(uuid.uuid4()),
            "session_id": ctx.session_id,
            "cwd": ctx.cwd,
            "parent_uuid": None,
            "is_sidechain": ctx.parent_agent_id is not None,
            "timestamp": timestamp,
            "agent_id": ctx.parent_agent_id,
            "version": ctx.version or None,
        }

    # ── Records ──────────────────────────────────────────────────

    def _convert_response_item(self, payload: dict, timestamp: str) -> list[BaseModel]:
        item_type = payload.get("type")

        if item_type == "message":
            return self._convert_message(payload, timestamp)
        if item_type == "reasoning":
            return self._convert_reasoning(payload, timestamp)
        if item_type in ("function_call", "custom_tool_call"):
            return [self._tool_use(
                timestamp,
                call_id=_str(payload.get("call_id")),
                name=_str(payload.get("name")) or "unknown",
                tool_input=_tool_input(payload, item_type),
            )]
        if item_type in ("function_call_output", "custom_tool_call_output"):
            text, is_error = _tool_output(payload.get("output"))
            return [self._tool_result(timestamp, _str(payload.get("call_id")), text, is_error)]
        if item_type == "web_search_call":
            return self._convert_web_search(payload, timestamp)
        return []

    def _convert_message(self, payload: dict, timestamp: str) -> list[BaseModel]:
        role = payload.get("role")
        text = _message_text(payload.get("content"))
        if not text.strip():
            return []

        if role == "user":
            return [self._user_text(text, timestamp)]
        if role == "assistant":
            return [self._assistant_text(text, timestamp)]
        if role == "developer":
            return [SystemEntry(
                **self._common(timestamp),
                content=text,
                tool_use_id="system",
                level="info",
                subtype="developer_message",
            )]
        return []

    def _convert_reasoning(self, payload: dict, timestamp: str) -> list[BaseModel]:
        summary = payload.get("summary")
        parts = []
        if isinstance(summary, list):
            for item in summary:
                if isinstance(item, dict) and item.get("type") == "summary_text":
                    text = _str(item.get("text"))
                    if text:
                        parts.append(text)
        thinking = "\n\n".join(parts).strip()
        if not thinking:
            return []

        return [AssistantEntry(
            **self._common(timestamp),
            message=AssistantMessage(
                content=[ThinkingContent(thinking=thinking)],
                model=self.context.model or None,
            ),
        )]

    def _convert_web_search(self, payload: dict, timestamp: str) -> list[BaseModel]:
        # Rollouts record web searches as one item; synthesize the call and its result.
        action = payload.get("action")
        status = _str(payload.get("status")) or "completed"
        call_id = _str(payload.get("id")) or f"ws_{uuid.uuid4().hex}"

        return [
            self._tool_use(
                timestamp,
                call_id=call_id,
                name=WEB_SEARCH_TOOL,
                tool_input=dict(action) if isinstance(action, dict) else {},
            ),
            self._tool_result(timestamp, call_id, status, status == "failed"),
        ]

    def _convert_event(self, payload: dict, timestamp: str) -> list[BaseModel]:
        event_type = payload.get("type")
        message = _str(payload.get("message"))
        if not message or not message.strip():
            return []

        if event_type == "user_message" and self.use_user_events:
            return [self._user_text(message, timestamp)]
        if event_type == "agent_message" and self.use_agent_events:
            return [self._assistant_text(message, timestamp)]
        return []

    # ── Entry builders ───────────────────────────────────────────

    def _user_text(self, text: str, timestamp: str) -> UserEntry:
        return UserEntry(
            **self._common(timestamp),
            message=UserMessage(content=[TextContent(text=text)]),
            is_meta=True if is_meta_text(text) else None,
        )

    def _assistant_text(self, text: str, timestamp: str) -> AssistantEntry:
        return AssistantEntry(
            **self._common(timestamp),
            message=AssistantMessage(
                content=[TextContent(text=text)],
                model=self.context.model or None,
            ),
        )

    def _tool_use(self, timestamp: str, call_id: str, name: str, tool_input: dict) -> AssistantEntry:
        return AssistantEntry(
            **self._common(timestamp),
            message=AssistantMessage(
                content=[ToolUseContent(
                    id=call_id or f"call_{uuid.uuid4().hex}",
                    name=name,
                    input=tool_input,
                )],
                model=self.context.model or None,
            ),
        )

    def _tool_result(self, timestamp: str, call_id: str, text: str, is_error: bool) -> UserEntry:
        return UserEntry(
            **self._common(timestamp),
            message=UserMessage(content=[ToolResultContent(
                tool_use_id=call_id or f"call_{uuid.uuid4().hex}",
                content=text,
                is_error=is_error,
            )]),
        )


# ── Helpers ──────────────────────────────────────────────────────


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _is_message(record: dict, role: str) -> bool:
    payload = record.get("payload")
    return (
        record.get("type") == "response_item"
        and isinstance(payload, dict)
        and payload.get("type") == "message"
        and payload.get("role") == role
    )


def _parent_thread_id(source: Any) -> Optional[str]:
    """Read source.subagent.thread_spawn.parent_thread_id, if present."""
    if not isinstance(source, dict):
        return None
    subagent = source.get("subagent")
    if not isinstance(subagent, dict):
        return None
    spawn = subagent.get("thread_spawn")
    if not isinstance(spawn, dict):
        return None
    return _str(spawn.get("parent_thread_id")) or None


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts = [
        item["text"] for item in content
        if isinstance(item, dict)
        and item.get("type") in _MESSAGE_TEXT_TYPES
        and isinstance(item.get("text"), str)
    ]
    return "\n".join(parts)


def _tool_input(payload: dict, item_type: str) -> dict:
    """Structured input for a tool call.

    function_call arguments are a JSON string; custom tools send free text.
    """
    raw = payload.get("arguments") if item_type == "function_call" else payload.get("input")
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError):
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        key = "raw_arguments" if item_type == "function_call" else "input"
        return {key: raw}
    return {}


def _tool_output(output: Any) -> tuple[str, bool]:
    """Return (text, is_error) for a tool call's output.

    Shell tools wrap their output as ``{"output": ..., "metadata":
    {"exit_code": N}}``, sometimes JSON-encoded inside a string.
    """
    if isinstance(output, str):
        try:
            decoded = json.loads(output)
        except (ValueError, RecursionError):
            decoded = None
        if isinstance(decoded, dict) and "output" in decoded:
            output = decoded

    exit_code = None
    if isinstance(output, dict):
        metadata = output.get("metadata")
        if isinstance(metadata, dict) and isinstance(metadata.get("exit_code"), int):
            exit_code = metadata["exit_code"]
        text = output.get("output", output.get("content", ""))
        if not isinstance(text, str):
            text = json.dumps(text, ensure_ascii=False)
    elif isinstance(output, str):
        text = output
    elif output is None:
        text = ""
    else:
        text = json.dumps(output, ensure_ascii=False)

    if exit_code is None:
        match = _EXIT_CODE_RE.search(text)
        if match:
            exit_code = int(match.group(1))

    return text, bool(exit_code)
