"""Core data models for convo-lens."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class StoreRoot:
    """A directory configured as a source of session files."""

    path: Path
    source: str  # "claude" | "codex"
    profile: Optional[str] = None  # e.g. "work", "personal"; None for the default root


@dataclass
class ConversationFile:
    """One session file on disk."""

    name: str
    path: str  # absolute
    folder: str  # group key
    size: int
    last_modified: datetime
    source: Optional[str] = None
    profile: Optional[str] = None
    preview: Optional[str] = None  # None until loaded
    preview_loaded: bool = False


@dataclass
class FolderNode:
    """A group of session files sharing one project/workspace identity."""

    name: str
    path: str
    files: list[ConversationFile] = field(default_factory=list)

    def sort_files(self) -> None:
        """Order files newest first."""
        self.files.sort(key=lambda f: (f.last_modified, f.path), reverse=True)

    @property
    def latest(self) -> Optional[datetime]:
        return self.files[0].last_modified if self.files else None


@dataclass
class SessionContext:
    """State accumulated while converting one Codex rollout file."""

    session_id: str = ""
    cwd: str = ""
    version: str = ""
    model: str = ""
    parent_agent_id: Optional[str] = None
