"""Codex CLI session store.

Rollouts live under ~/.codex/sessions/ (and ~/.codex-profiles/<name>/sessions/),
partitioned by date rather than by project:

    sessions/2025/01/20/rollout-2025-01-20T10-00-00-<uuid>.jsonl

The workspace is only recorded inside the file, in the cwd of the
session_meta (or first turn_context) record. It is re-encoded with the
Claude Code folder convention so both tools share group keys; files with
no cwd land in CODEX_UNKNOWN_GROUP.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from ..config import (
    CODEX_HEAD_SIZE,
    CODEX_UNKNOWN_GROUP,
    get_codex_path,
    get_codex_profiles_path,
)
from ..core import ConversationFile, StoreRoot
from ..files import encode_workspace_path, read_file_chunk
from ..provider import ConversationSource

logger = logging.getLogger(__name__)


class CodexSource(ConversationSource):
    """Store for Codex CLI rollout files."""

    name = "codex"
    profile_store_dir = "sessions"

    def get_base_path(self) -> Path:
        return get_codex_path()

    def get_profiles_path(self) -> Path:
        return get_codex_profiles_path()

    def folder_path(self, file: ConversationFile, root: StoreRoot) -> str:
        return str(root.path)

    def scan_root(self, root: StoreRoot) -> list[ConversationFile]:
        if not root.path.is_dir():
            logger.debug("Codex root %s does not exist", root.path)
            return []

        files = []
        for dirpath, _dirnames, filenames in os.walk(root.path, onerror=_log_walk_error):
            for filename in filenames:
                if not filename.endswith(".jsonl"):
                    continue
                path = Path(dirpath) / filename
                if not path.is_file():
                    continue
                conversation = self._make_file(path, CODEX_UNKNOWN_GROUP, root)
                if conversation:
                    conversation.folder = self._group_key(path)
                    files.append(conversation)
        return files

    def _group_key(self, path: Path) -> str:
        try:
            head = read_file_chunk(path, CODEX_HEAD_SIZE)
        except OSError as e:
            logger.warning("Failed to read rollout header %s: %s", path, e)
            return CODEX_UNKNOWN_GROUP

        cwd = read_rollout_cwd(head)
        return encode_workspace_path(cwd) if cwd else CODEX_UNKNOWN_GROUP


def read_rollout_cwd(content: str) -> Optional[str]:
    """Return the working directory recorded in a rollout's metadata."""
    for line in content.split("\n"):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if not isinstance(record, dict):
            continue
        if record.get("type") not in ("session_meta", "turn_context"):
            continue

        payload = record.get("payload")
        if isinstance(payload, dict):
            cwd = payload.get("cwd")
            if isinstance(cwd, str) and cwd:
                return cwd
    return None


def _log_walk_error(error: OSError) -> None:
    logger.warning("Error reading folder %s: %s", error.filename, error)
