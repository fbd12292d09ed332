"""Abstract base class for session-file stores."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import MIN_FILE_SIZE
from .core import ConversationFile, StoreRoot

logger = logging.getLogger(__name__)


class ConversationSource(ABC):
    """Base class for coding-assistant session stores.

    Each backend (Claude Code, Codex) knows where its roots live and how
    to group the files it finds under one root.
    """

    name: str  # "claude", "codex"
    profile_store_dir: str  # store directory inside each profile

    @abstractmethod
    def get_base_path(self) -> Path:
        """Return the default root where this tool stores sessions."""
        ...

    @abstractmethod
    def get_profiles_path(self) -> Path:
        """Return the directory holding named profiles, one store each."""
        ...

    @abstractmethod
    def scan_root(self, root: StoreRoot) -> list[ConversationFile]:
        """Return every eligible session file under one root."""
        ...

    def folder_path(self, file: ConversationFile, root: StoreRoot) -> str:
        """Return the directory shown for the group a file belongs to."""
        return str(Path(file.path).parent)

    def get_roots(self) -> list[StoreRoot]:
        """Return the default root plus one root per named profile."""
        roots = [StoreRoot(path=self.get_base_path(), source=self.name)]

        profiles = self.get_profiles_path()
        try:
            profile_dirs = sorted(d for d in profiles.iterdir() if d.is_dir())
        except FileNotFoundError:
            profile_dirs = []
        except OSError as e:
            logger.warning("Error reading profiles directory %s: %s", profiles, e)
            profile_dirs = []

        for profile_dir in profile_dirs:
            roots.append(StoreRoot(
                path=profile_dir / self.profile_store_dir,
                source=self.name,
                profile=profile_dir.name,
            ))
        return roots

    def is_available(self) -> bool:
        """Return True if any root exists on this machine."""
        return any(root.path.is_dir() for root in self.get_roots())

    def _make_file(self, path: Path, folder: str, root: StoreRoot) -> Optional[ConversationFile]:
        """Stat a candidate file; None if it is too small or vanished."""
        try:
            stats = path.stat()
        except OSError as e:
            logger.warning("Failed to stat %s: %s", path, e)
            return None

        if stats.st_size < MIN_FILE_SIZE:
            return None

        return ConversationFile(
            name=path.name,
            path=str(path.absolute()),
            folder=folder,
            size=stats.st_size,
            last_modified=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
            source=self.name,
            profile=root.profile,
        )
