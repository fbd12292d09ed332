"""Short previews of the first meaningful user message in a session file."""

import asyncio
import json
import logging

from .classifier import FOREIGN, SOURCE_FORMATS, is_foreign_path
from .config import (
    CODEX_PREVIEW_CHUNK_SIZE,
    META_PREFIXES,
    META_SUBSTRINGS,
    PREVIEW_CHUNK_SIZE,
    PREVIEW_LENGTH,
)
from .core import ConversationFile, FolderNode
from .files import read_file_chunk, read_file_chunk_async

logger = logging.getLogger(__name__)


def is_meta_text(text: str) -> bool:
    """True for tool-generated boilerplate sent in the user role.

    Command envelopes, IDE notices, environment banners and tool-result
    echoes all arrive as user messages but were not typed by the user.
    """
    stripped = text.lstrip()
    if stripped.startswith(META_PREFIXES):
        return True
    return any(marker in stripped for marker in META_SUBSTRINGS)


def _claude_candidates(entry: dict) -> list[str]:
    if entry.get("type") != "user":
        return []
    message = entry.get("message")
    if not isinstance(message, dict):
        return []

    content = message.get("content")
    if isinstance(content, str):
        return [content]
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                return [block["text"]]
    return []


def _codex_candidates(record: dict) -> list[str]:
    payload = record.get("payload")
    if not isinstance(payload, dict):
        return []

    if record.get("type") == "response_item":
        if payload.get("type") != "message" or payload.get("role") != "user":
            return []
        content = payload.get("content")
        if isinstance(content, str):
            return [content]
        if not isinstance(content, list):
            return []
        return [
            item["text"] for item in content
            if isinstance(item, dict)
            and item.get("type") in ("input_text", "text")
            and isinstance(item.get("text"), str)
        ]

    if record.get("type") == "event_msg" and payload.get("type") == "user_message":
        message = payload.get("message")
        return [message] if isinstance(message, str) else []

    return []


def extract_preview(content: str) -> str:
    """Return the first usable user-authored snippet, or "".

    ``content`` may be a prefix of the file; a line cut off at the end
    simply fails to parse and is skipped.
    """
    for line in content.split("\n"):
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if not isinstance(entry, dict):
            continue

        candidates = _claude_candidates(entry) or _codex_candidates(entry)
        for text in candidates:
            if is_meta_text(text):
                continue
            cleaned = " ".join(text.split())
            if cleaned:
                return cleaned[:PREVIEW_LENGTH]

    return ""


def preview_budget(file: ConversationFile) -> int:
    """Bytes to sample for a file's preview."""
    if SOURCE_FORMATS.get(file.source or "") == FOREIGN or is_foreign_path(file.path):
        return CODEX_PREVIEW_CHUNK_SIZE
    return PREVIEW_CHUNK_SIZE


def load_file_preview(file: ConversationFile) -> str:
    """Compute and store a file's preview once."""
    if file.preview_loaded:
        return file.preview or ""

    try:
        preview = extract_preview(read_file_chunk(file.path, preview_budget(file)))
    except OSError as e:
        logger.warning("Error loading preview for %s: %s", file.path, e)
        preview = ""

    file.preview = preview
    file.preview_loaded = True
    return preview


async def load_file_preview_async(file: ConversationFile) -> str:
    if file.preview_loaded:
        return file.preview or ""

    try:
        chunk = await read_file_chunk_async(file.path, preview_budget(file))
        preview = extract_preview(chunk)
    except OSError as e:
        logger.warning("Error loading preview for %s: %s", file.path, e)
        preview = ""

    file.preview = preview
    file.preview_loaded = True
    return preview


async def load_folder_previews(folder: FolderNode) -> None:
    """Load previews for every file in a folder concurrently."""
    await asyncio.gather(*(load_file_preview_async(f) for f in folder.files))
