"""In-memory index of session files across every configured store.

The index owns a single ``group key -> FolderNode`` mapping. A scan builds
a fresh mapping from all roots and swaps it in when complete; previews are
filled in lazily afterwards. Reading a file's content goes through
classification and, for Codex rollouts, conversion to canonical JSONL.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Optional

from .backends import get_sources
from .classifier import FOREIGN, classify_file
from .converter import convert_codex_to_canonical
from .core import ConversationFile, FolderNode, StoreRoot
from .files import encode_workspace_path, read_jsonl_file, read_jsonl_file_async
from .preview import load_file_preview, load_file_preview_async, load_folder_previews
from .provider import ConversationSource
from .schema import ParsedLine, parse_jsonl

logger = logging.getLogger(__name__)

SCOPE_CURRENT = "current"
SCOPE_ALL = "all"

RootScan = tuple[ConversationSource, StoreRoot, list[ConversationFile]]


def _epoch() -> datetime:
    """Return a datetime at epoch for sorting fallback."""
    return datetime(1970, 1, 1, tzinfo=timezone.utc)


def merge_scans(scans: Iterable[RootScan]) -> dict[str, FolderNode]:
    """Merge per-root results into one mapping, de-duplicated by path."""
    folders: dict[str, FolderNode] = {}
    seen: set[str] = set()

    for source, root, files in scans:
        for file in files:
            if file.path in seen:
                continue
            seen.add(file.path)

            folder = folders.get(file.folder)
            if folder is None:
                folder = FolderNode(name=file.folder, path=source.folder_path(file, root))
                folders[file.folder] = folder
            folder.files.append(file)

    for folder in folders.values():
        folder.sort_files()
    return folders


def _carry_over_previews(previous: dict[str, FolderNode], folders: dict[str, FolderNode]) -> None:
    """Keep previews already computed for files that have not changed."""
    known = {f.path: f for folder in previous.values() for f in folder.files}
    for folder in folders.values():
        for file in folder.files:
            old = known.get(file.path)
            if (
                old is not None
                and old.preview_loaded
                and old.size == file.size
                and old.last_modified == file.last_modified
            ):
                file.preview = old.preview
                file.preview_loaded = True


class ConversationIndex:
    """Group listing, previews and content access for session files."""

    def __init__(
        self,
        sources: Optional[list[ConversationSource]] = None,
        workspace_path: Optional[str] = None,
    ):
        self.sources = sources if sources is not None else get_sources()
        self.folders: dict[str, FolderNode] = {}
        self._is_loading = False
        self.current_folder_name: Optional[str] = None
        self.set_workspace_path(workspace_path)

    # ── Scanning ─────────────────────────────────────────────────

    def roots(self) -> list[tuple[ConversationSource, StoreRoot]]:
        return [(source, root) for source in self.sources for root in source.get_roots()]

    def scan(self) -> dict[str, FolderNode]:
        """Scan every root, one after another."""
        return merge_scans(
            (source, root, source.scan_root(root)) for source, root in self.roots()
        )

    async def scan_async(self) -> dict[str, FolderNode]:
        """Scan every root concurrently; same result as scan()."""
        pairs = self.roots()
        results = await asyncio.gather(
            *(asyncio.to_thread(source.scan_root, root) for source, root in pairs)
        )
        return merge_scans(
            (source, root, files) for (source, root), files in zip(pairs, results)
        )

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    async def refresh(self) -> None:
        """Rescan all roots and load previews.

        A call made while a refresh is already running does nothing.
        """
        if self._is_loading:
            logger.debug("Refresh already in progress, skipping")
            return

        self._is_loading = True
        try:
            folders = await self.scan_async()
            _carry_over_previews(self.folders, folders)
            self.folders = folders
            logger.info(
                "Indexed %d files in %d groups",
                sum(len(f.files) for f in folders.values()),
                len(folders),
            )

            for folder in list(folders.values()):
                await load_folder_previews(folder)
        finally:
            self._is_loading = False

    def clear_cache(self) -> None:
        """Drop the mapping; the next refresh rebuilds it from scratch."""
        self.folders = {}

    def dispose(self) -> None:
        self.clear_cache()

    def stores_exist(self) -> bool:
        return any(source.is_available() for source in self.sources)

    # ── Listing ──────────────────────────────────────────────────

    def set_workspace_path(self, workspace_path: Optional[str]) -> None:
        self.current_folder_name = encode_workspace_path(workspace_path) if workspace_path else None

    def has_current_project_conversations(self) -> bool:
        return self.current_folder_name is not None and self.current_folder_name in self.folders

    def list_groups(self, scope: str = SCOPE_ALL) -> list[FolderNode]:
        """Return groups for a scope.

        "current" yields at most the group of the workspace path; "all"
        yields every group, most recently active first.
        """
        if scope == SCOPE_CURRENT and self.current_folder_name:
            folder = self.folders.get(self.current_folder_name)
            return [folder] if folder else []

        return sorted(self.folders.values(), key=lambda f: f.latest or _epoch(), reverse=True)

    def find_file(self, path: str) -> Optional[ConversationFile]:
        for folder in self.folders.values():
            for file in folder.files:
                if file.path == path:
                    return file
        return None

    # ── Previews ─────────────────────────────────────────────────

    def get_preview(self, file: ConversationFile) -> str:
        return load_file_preview(file)

    async def get_preview_async(self, file: ConversationFile) -> str:
        return await load_file_preview_async(file)

    async def load_folder_previews(self, name: str) -> None:
        folder = self.folders.get(name)
        if folder is not None:
            await load_folder_previews(folder)

    # ── Content ──────────────────────────────────────────────────

    def _foreign_roots(self):
        return [root.path for source, root in self.roots() if source.name == "codex"]

    def _to_canonical(self, file: ConversationFile, content: str) -> str:
        if classify_file(file.path, content, self._foreign_roots()) == FOREIGN:
            return convert_codex_to_canonical(content)
        return content

    def read_conversation(self, file: ConversationFile) -> Optional[str]:
        """Return a file's content as canonical JSONL.

        None means the file is too large to read. Other read failures raise
        OSError and leave the index untouched.
        """
        content = read_jsonl_file(file.path)
        if content is None:
            return None
        return self._to_canonical(file, content)

    async def read_conversation_async(self, file: ConversationFile) -> Optional[str]:
        content = await read_jsonl_file_async(file.path)
        if content is None:
            return None
        return self._to_canonical(file, content)

    def load_entries(self, file: ConversationFile) -> Optional[list[ParsedLine]]:
        """Read, convert and validate a file; None if it is too large."""
        content = self.read_conversation(file)
        if content is None:
            return None
        return parse_jsonl(content)
