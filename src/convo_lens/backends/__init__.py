"""Registry of session-file stores."""

from ..provider import ConversationSource
from .claude_code import ClaudeCodeSource
from .codex import CodexSource


def get_sources() -> list[ConversationSource]:
    """Return a source for every supported tool, installed or not.

    Missing roots are skipped at scan time, so a tool installed later is
    picked up by the next refresh.
    """
    return [ClaudeCodeSource(), CodexSource()]
