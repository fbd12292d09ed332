"""Platform-aware path resolution and ingestion limits."""

import os
from pathlib import Path

MIN_FILE_SIZE = 1 * 1024  # near-empty sessions are not listed
MAX_FILE_SIZE_FOR_FULL_READ = 50 * 1024 * 1024
PREVIEW_CHUNK_SIZE = 50 * 1024
# Codex rollouts open with large embedded instructions
CODEX_PREVIEW_CHUNK_SIZE = 4 * PREVIEW_CHUNK_SIZE
CLASSIFY_SAMPLE_SIZE = 64 * 1024
CODEX_HEAD_SIZE = 64 * 1024
PREVIEW_LENGTH = 100

CODEX_UNKNOWN_GROUP = "__codex_unknown__"

# User text starting with one of these is boilerplate, not something the user typed.
META_PREFIXES = (
    "<command",
    "<ide_opened_file>",
    "<local-",
    "[Tool Result]",
    "Caveat:",
    "<environment_context>",
    "<user_instructions>",
    "<user_shell_command>",
    "<turn_aborted>",
    "<INSTRUCTIONS>",
    "# AGENTS.md instructions",
)
META_SUBSTRINGS = ("tool_use_id",)


def get_claude_code_path() -> Path:
    """Return the path to Claude Code's default projects directory."""
    env = os.environ.get("CONVO_LENS_CLAUDE_PATH")
    if env:
        return Path(env)

    return Path.home() / ".claude" / "projects"


def get_claude_profiles_path() -> Path:
    """Return the directory holding named Claude Code profiles.

    Each profile keeps its own store at <profiles>/<name>/projects.
    """
    env = os.environ.get("CONVO_LENS_CLAUDE_PROFILES")
    if env:
        return Path(env)

    return Path.home() / ".claude-profiles"


def get_codex_path() -> Path:
    """Return the path to Codex's default sessions directory."""
    env = os.environ.get("CONVO_LENS_CODEX_PATH")
    if env:
        return Path(env)

    codex_home = os.environ.get("CODEX_HOME")
    if codex_home:
        return Path(codex_home) / "sessions"

    return Path.home() / ".codex" / "sessions"


def get_codex_profiles_path() -> Path:
    """Return the directory holding named Codex profiles (<name>/sessions)."""
    env = os.environ.get("CONVO_LENS_CODEX_PROFILES")
    if env:
        return Path(env)

    return Path.home() / ".codex-profiles"


def get_workspace_path() -> str | None:
    """Return the workspace whose group backs the "current" scope, if set."""
    return os.environ.get("CONVO_LENS_WORKSPACE") or None
