"""Claude Code session store.

Sessions live under ~/.claude/projects/ (and ~/.claude-profiles/<name>/projects/):

    projects/
      -Users-alice-dev-myapp/      <- group key, the encoded workspace path
        <session-uuid>.jsonl
        agent-<id>.jsonl

The group key is the directory name as Claude Code wrote it, so listing a
root never opens a session file.
"""

import logging
from pathlib import Path

from ..config import get_claude_code_path, get_claude_profiles_path
from ..core import ConversationFile, StoreRoot
from ..provider import ConversationSource

logger = logging.getLogger(__name__)


class ClaudeCodeSource(ConversationSource):
    """Store for Claude Code session files."""

    name = "claude"
    profile_store_dir = "projects"

    def get_base_path(self) -> Path:
        return get_claude_code_path()

    def get_profiles_path(self) -> Path:
        return get_claude_profiles_path()

    def scan_root(self, root: StoreRoot) -> list[ConversationFile]:
        try:
            project_dirs = [d for d in root.path.iterdir() if d.is_dir()]
        except FileNotFoundError:
            logger.debug("Claude Code root %s does not exist", root.path)
            return []
        except OSError as e:
            logger.warning("Error reading root %s: %s", root.path, e)
            return []

        files = []
        for project_dir in project_dirs:
            files.extend(self._scan_project_dir(project_dir, root))
        return files

    def _scan_project_dir(self, project_dir: Path, root: StoreRoot) -> list[ConversationFile]:
        try:
            candidates = [p for p in project_dir.iterdir() if p.suffix == ".jsonl" and p.is_file()]
        except OSError as e:
            # Skip folders we can't read
            logger.warning("Error reading folder %s: %s", project_dir, e)
            return []

        files = []
        for path in candidates:
            conversation = self._make_file(path, project_dir.name, root)
            if conversation:
                files.append(conversation)
        return files
