"""Correlate tool invocations with their results."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from .schema import (
    AssistantEntry,
    BaseEntry,
    ToolResultContent,
    ToolUseContent,
    UserEntry,
)

UNKNOWN_TOOL = "unknown"


@dataclass
class ToolCorrelation:
    name: str
    result: ToolResultContent


def build_tool_map(entries: Iterable) -> dict[str, ToolCorrelation]:
    """Map each tool_use id to its tool name and result.

    Results whose id was never seen as an invocation are kept under the
    name "unknown". Sub-agent files do not guarantee that an invocation
    precedes its result, so names are indexed in a separate first pass.
    """
    entries = list(entries)

    tool_names: dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, AssistantEntry):
            continue
        for item in entry.message.content:
            if isinstance(item, ToolUseContent):
                tool_names[item.id] = item.name

    tool_map: dict[str, ToolCorrelation] = {}
    for entry in entries:
        if not isinstance(entry, UserEntry):
            continue
        content = entry.message.content
        if isinstance(content, str):
            continue
        for item in content:
            if isinstance(item, ToolResultContent):
                tool_map[item.tool_use_id] = ToolCorrelation(
                    name=tool_names.get(item.tool_use_id, UNKNOWN_TOOL),
                    result=item,
                )

    return tool_map


def find_agent_id(entries: Iterable) -> Optional[str]:
    """Return the first agent id in a sub-agent session, if any."""
    for entry in entries:
        if isinstance(entry, BaseEntry) and entry.agent_id:
            return entry.agent_id
    return None
