"""Decide whether a session file is native (Claude Code) or foreign (Codex)."""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from .config import CLASSIFY_SAMPLE_SIZE
from .files import read_file_chunk

logger = logging.getLogger(__name__)

NATIVE = "native"
FOREIGN = "foreign"

SOURCE_FORMATS = {"claude": NATIVE, "codex": FOREIGN}

CODEX_RECORD_TYPES = frozenset({
    "session_meta", "response_item", "event_msg", "turn_context", "compacted",
})
NATIVE_RECORD_TYPES = frozenset({
    "user", "assistant", "system", "summary",
    "file-history-snapshot", "queue-operation", "progress",
})

_CODEX_DIR_NAMES = (".codex", ".codex-profiles")


def is_foreign_path(path: str | Path, foreign_roots: Optional[Iterable[Path]] = None) -> bool:
    """True when the path lives in a store only Codex writes to."""
    parts = str(path).replace("\\", "/").split("/")
    if any(name in parts for name in _CODEX_DIR_NAMES):
        return True

    resolved = Path(path)
    for root in foreign_roots or ():
        if resolved.is_relative_to(root):
            return True
    return False


def classify_content(content: str) -> str:
    """Classify by the record type of the first JSON object that has a known one.

    Objects with an unrecognized type carry no signal and are skipped.
    """
    for line in content.split("\n"):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if not isinstance(record, dict):
            continue

        record_type = record.get("type")
        if record_type in CODEX_RECORD_TYPES:
            return FOREIGN
        if record_type in NATIVE_RECORD_TYPES:
            return NATIVE
    return NATIVE


def classify_file(
    path: str | Path,
    content: Optional[str] = None,
    foreign_roots: Optional[Iterable[Path]] = None,
) -> str:
    """Return NATIVE or FOREIGN for a session file.

    The path is checked first since it needs no read; content is sniffed
    only for files outside a Codex store.
    """
    if is_foreign_path(path, foreign_roots):
        return FOREIGN

    if content is None:
        try:
            content = read_file_chunk(path, CLASSIFY_SAMPLE_SIZE)
        except OSError as e:
            logger.warning("Failed to sample %s for classification: %s", path, e)
            return NATIVE

    return classify_content(content)
