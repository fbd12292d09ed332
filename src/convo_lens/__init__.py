"""Browse Claude Code and Codex session logs as one conversation model."""

__version__ = "0.1.0"
