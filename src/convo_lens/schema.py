"""Canonical conversation entry model and tolerant line validation.

Every line of a canonical session file is one JSON object whose ``type``
field selects the variant:

- "user" / "assistant": a message with content blocks.
- "system": an informational event with a severity ``level``.
- "summary": a compacted-history summary.
- "file-history-snapshot": file backup bookkeeping.
- "queue-operation": queued prompt bookkeeping.

Lines that do not decode or do not fit any variant become an ``ErrorEntry``
holding the raw line. Validation never raises.

Claude Code has changed its record shapes over time, so a normalization
pass runs before variant matching: legacy "progress" records become system
entries, system entries get a level and content when they lack one, and a
missing ``parentUuid`` becomes null.
"""

import json
import logging
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

SYSTEM_LEVELS = ("info", "suggestion", "warning", "error")
ERROR_TYPE = "x-error"


class CanonicalModel(BaseModel):
    # Unknown fields are kept so a second validation pass loses nothing.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ── Content blocks ───────────────────────────────────────────────


class TextContent(CanonicalModel):
    type: Literal["text"] = "text"
    text: str


class ThinkingContent(CanonicalModel):
    type: Literal["thinking"] = "thinking"
    thinking: str
    signature: Optional[str] = None


class ToolUseContent(CanonicalModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class MediaSource(CanonicalModel):
    type: str
    media_type: Optional[str] = None
    data: Optional[str] = None


class ImageContent(CanonicalModel):
    type: Literal["image"] = "image"
    source: MediaSource


class DocumentContent(CanonicalModel):
    type: Literal["document"] = "document"
    source: MediaSource


class ToolResultContent(CanonicalModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Union[str, list[Union[TextContent, ImageContent, dict[str, Any]]]] = ""
    is_error: Optional[bool] = None


UserContentItem = Union[TextContent, ToolResultContent, ImageContent, DocumentContent]
AssistantContentItem = Union[TextContent, ThinkingContent, ToolUseContent, ToolResultContent]


class UserMessage(CanonicalModel):
    role: Literal["user"] = "user"
    content: Union[str, list[Union[str, UserContentItem]]]


class AssistantMessage(CanonicalModel):
    role: Literal["assistant"] = "assistant"
    content: list[AssistantContentItem]
    id: Optional[str] = None
    model: Optional[str] = None


# ── Entries ──────────────────────────────────────────────────────


class BaseEntry(CanonicalModel):
    """Fields shared by user, assistant and system entries."""

    uuid: str = ""
    session_id: str = Field("", alias="sessionId")
    cwd: str = ""
    parent_uuid: Optional[str] = Field(None, alias="parentUuid")
    is_sidechain: bool = Field(False, alias="isSidechain")
    timestamp: str = ""
    agent_id: Optional[str] = Field(None, alias="agentId")
    version: Optional[str] = None


class UserEntry(BaseEntry):
    type: Literal["user"] = "user"
    message: UserMessage
    is_meta: Optional[bool] = Field(None, alias="isMeta")


class AssistantEntry(BaseEntry):
    type: Literal["assistant"] = "assistant"
    message: AssistantMessage
    request_id: Optional[str] = Field(None, alias="requestId")


class SystemEntry(BaseEntry):
    type: Literal["system"] = "system"
    content: str
    tool_use_id: str = Field(alias="toolUseID")
    level: Literal["info", "suggestion", "warning", "error"]
    subtype: Optional[str] = None


class SummaryEntry(CanonicalModel):
    type: Literal["summary"] = "summary"
    summary: str
    leaf_uuid: Optional[str] = Field(None, alias="leafUuid")


class FileBackup(CanonicalModel):
    backup_file_name: Optional[str] = Field(alias="backupFileName")
    version: int
    backup_time: str = Field(alias="backupTime")


class Snapshot(CanonicalModel):
    message_id: str = Field(alias="messageId")
    tracked_file_backups: dict[str, FileBackup] = Field(alias="trackedFileBackups")
    timestamp: str


class FileHistorySnapshotEntry(CanonicalModel):
    type: Literal["file-history-snapshot"] = "file-history-snapshot"
    message_id: str = Field(alias="messageId")
    snapshot: Snapshot
    is_snapshot_update: bool = Field(alias="isSnapshotUpdate")


class QueueOperationEntry(CanonicalModel):
    type: Literal["queue-operation"] = "queue-operation"
    operation: str
    session_id: str = Field(alias="sessionId")
    timestamp: str
    content: Optional[str] = None


class ErrorEntry(CanonicalModel):
    """A line that could not be decoded or matched to any variant."""

    type: Literal["x-error"] = ERROR_TYPE
    line: str


Entry = Annotated[
    Union[
        UserEntry,
        AssistantEntry,
        SummaryEntry,
        SystemEntry,
        FileHistorySnapshotEntry,
        QueueOperationEntry,
    ],
    Field(discriminator="type"),
]

ParsedLine = Union[UserEntry, AssistantEntry, SummaryEntry, SystemEntry,
                   FileHistorySnapshotEntry, QueueOperationEntry, ErrorEntry]

_entry_adapter: TypeAdapter = TypeAdapter(Entry)


# ── Normalization ────────────────────────────────────────────────


def _get_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _get_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _get_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _hook_commands(entry: dict) -> list[str]:
    hook_infos = entry.get("hookInfos")
    if not isinstance(hook_infos, list):
        return []
    return [
        info["command"] for info in hook_infos
        if isinstance(info, dict) and isinstance(info.get("command"), str)
    ]


def build_stop_hook_summary(entry: dict) -> str:
    """Compose one sentence describing a stop-hook run."""
    hook_count = _get_number(entry.get("hookCount"))
    prevented = _get_bool(entry.get("preventedContinuation"))
    stop_reason = _get_str(entry.get("stopReason"))
    commands = _hook_commands(entry)

    parts = ["Stop hook summary"]
    if hook_count is not None:
        parts.append(f"{_format_number(hook_count)} hook(s) executed")
    if commands:
        parts.append(f"Commands: {', '.join(commands)}")
    if prevented is not None:
        parts.append(f"Prevented continuation: {'yes' if prevented else 'no'}")
    if stop_reason and stop_reason.strip():
        parts.append(f"Reason: {stop_reason}")
    return ". ".join(parts)


def _hook_progress_content(data: dict) -> str:
    parts = ["Hook progress"]
    hook_event = _get_str(data.get("hookEvent"))
    hook_name = _get_str(data.get("hookName"))
    command = _get_str(data.get("command"))
    if hook_event:
        parts.append(f"Event: {hook_event}")
    if hook_name:
        parts.append(f"Hook: {hook_name}")
    if command:
        parts.append(f"Command: {command}")
    return ". ".join(parts)


def _bash_progress_content(data: dict) -> str:
    parts = ["Bash progress"]
    elapsed = _get_number(data.get("elapsedTimeSeconds"))
    total_lines = _get_number(data.get("totalLines"))
    output = _get_str(data.get("output"))
    if elapsed is not None:
        parts.append(f"Elapsed: {_format_number(elapsed)}s")
    if total_lines is not None:
        parts.append(f"Lines: {_format_number(total_lines)}")
    if output and output.strip():
        parts.append(f"Output: {output}")
    return ". ".join(parts)


def _normalize_progress(entry: dict) -> dict:
    if entry.get("type") != "progress":
        return entry

    data = entry.get("data") if isinstance(entry.get("data"), dict) else {}
    data_type = _get_str(data.get("type"))

    if data_type == "hook_progress":
        content = _hook_progress_content(data)
    elif data_type == "bash_progress":
        content = _bash_progress_content(data)
    else:
        content = "Progress update"

    return {
        **entry,
        "type": "system",
        "content": content,
        "toolUseID": (
            _get_str(entry.get("toolUseID"))
            or _get_str(entry.get("parentToolUseID"))
            or "progress-update"
        ),
        "level": "info",
        "parentUuid": entry.get("parentUuid"),
    }


def _normalize_system(entry: dict) -> dict:
    if entry.get("type") != "system":
        return entry

    normalized = dict(entry)
    level = _get_str(normalized.get("level"))
    normalized["level"] = level if level in SYSTEM_LEVELS else "info"

    if not _get_str(normalized.get("toolUseID")):
        normalized["toolUseID"] = _get_str(normalized.get("parentToolUseID")) or "system"

    if not _get_str(normalized.get("content")):
        subtype = _get_str(normalized.get("subtype"))
        if subtype == "stop_hook_summary":
            normalized["content"] = build_stop_hook_summary(normalized)
        elif subtype:
            normalized["content"] = f"System event: {subtype}"
        else:
            normalized["content"] = "System event"

    return normalized


def normalize_entry(value: Any) -> Any:
    """Absorb known schema drift before variant matching."""
    if not isinstance(value, dict):
        return value
    normalized = _normalize_system(_normalize_progress(value))
    if normalized.get("type") in ("user", "assistant", "system") and "parentUuid" not in normalized:
        normalized = {**normalized, "parentUuid": None}
    return normalized


# ── Validation ───────────────────────────────────────────────────


def validate_entry(value: Any, line: Optional[str] = None) -> ParsedLine:
    """Validate one decoded JSON value against the canonical variants.

    ``line`` is the raw text the value came from; it is what an
    ``ErrorEntry`` carries when validation fails.
    """
    if line is None:
        line = json.dumps(value, ensure_ascii=False, default=str)

    if not isinstance(value, dict):
        return ErrorEntry(line=line)

    try:
        return _entry_adapter.validate_python(normalize_entry(value))
    except ValidationError as e:
        logger.debug("Entry failed validation (%d errors): %.80s", e.error_count(), line)
        return ErrorEntry(line=line)


def parse_line(line: str) -> ParsedLine:
    """Decode and validate a single JSONL line."""
    try:
        value = json.loads(line)
    except (ValueError, RecursionError):
        return ErrorEntry(line=line)
    return validate_entry(value, line)


def parse_jsonl(content: str) -> list[ParsedLine]:
    """Parse canonical JSONL text; one outcome per non-blank line."""
    return [parse_line(line) for line in content.split("\n") if line.strip()]


def dump_entry(entry: BaseModel) -> dict:
    """Serialize an entry back to its canonical JSON shape."""
    return entry.model_dump(mode="json", by_alias=True)


def entry_to_json(entry: BaseModel) -> str:
    return json.dumps(dump_entry(entry), ensure_ascii=False)
