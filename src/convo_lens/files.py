"""Size-gated reads of session files."""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Optional

from .config import MAX_FILE_SIZE_FOR_FULL_READ, PREVIEW_CHUNK_SIZE

logger = logging.getLogger(__name__)


def encode_workspace_path(workspace_path: str) -> str:
    """Encode a workspace path the way Claude Code names project folders.

    /Users/alice/dev/app -> -Users-alice-dev-app
    """
    return re.sub(r"[\\/]", "-", workspace_path)


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def read_jsonl_file(path: str | Path) -> Optional[str]:
    """Read a whole session file.

    Returns None when the file exceeds MAX_FILE_SIZE_FOR_FULL_READ. Other
    OS errors (file vanished, permission revoked) propagate to the caller.
    """
    size = os.stat(path).st_size
    if size > MAX_FILE_SIZE_FOR_FULL_READ:
        logger.warning("File too large to read: %s (%s)", path, format_file_size(size))
        return None
    return Path(path).read_text(encoding="utf-8", errors="replace")


async def read_jsonl_file_async(path: str | Path) -> Optional[str]:
    return await asyncio.to_thread(read_jsonl_file, path)


def read_file_chunk(path: str | Path, max_bytes: int = PREVIEW_CHUNK_SIZE) -> str:
    """Read at most ``max_bytes`` from the start of a file.

    A multi-byte character cut at the boundary is dropped.
    """
    with open(path, "rb") as f:
        data = f.read(max_bytes)
    return data.decode("utf-8", errors="ignore")


async def read_file_chunk_async(path: str | Path, max_bytes: int = PREVIEW_CHUNK_SIZE) -> str:
    return await asyncio.to_thread(read_file_chunk, path, max_bytes)
