"""FastAPI app exposing the session index to a viewer."""

import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse

from . import __version__
from .config import get_workspace_path
from .core import ConversationFile, FolderNode
from .files import format_file_size
from .index import SCOPE_ALL, SCOPE_CURRENT, ConversationIndex
from .schema import dump_entry, parse_jsonl
from .tools import build_tool_map, find_agent_id

logger = logging.getLogger(__name__)

app = FastAPI(title="convo-lens", version=__version__)

# Index cache (populated on first request)
_index: ConversationIndex | None = None


def _get_index() -> ConversationIndex:
    """Lazily create and cache the index."""
    global _index
    if _index is None:
        _index = ConversationIndex(workspace_path=get_workspace_path())
        logger.info("Watching %d store roots", len(_index.roots()))
    return _index


def _file_to_dict(file: ConversationFile) -> dict:
    return {
        "name": file.name,
        "path": file.path,
        "folder": file.folder,
        "size": file.size,
        "size_label": format_file_size(file.size),
        "last_modified": file.last_modified.isoformat(),
        "source": file.source,
        "profile": file.profile,
        "preview": file.preview,
    }


def _folder_to_dict(folder: FolderNode) -> dict:
    return {
        "name": folder.name,
        "path": folder.path,
        "files": [_file_to_dict(f) for f in folder.files],
    }


def _require_file(index: ConversationIndex, path: str) -> ConversationFile:
    file = index.find_file(path)
    if file is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return file


async def _read_canonical(index: ConversationIndex, file: ConversationFile) -> str:
    try:
        content = await index.read_conversation_async(file)
    except OSError as e:
        logger.error("Failed to read %s: %s", file.path, e)
        raise HTTPException(status_code=500, detail="Failed to read conversation")

    if content is None:
        raise HTTPException(status_code=413, detail="File is too large to read")
    return content


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/groups")
async def get_groups(
    scope: str = Query(SCOPE_ALL, pattern=f"^({SCOPE_ALL}|{SCOPE_CURRENT})$"),
):
    """Return groups and their files, scanning on first use."""
    index = _get_index()
    if not index.folders and not index.is_loading:
        await index.refresh()

    return {
        "scope": scope,
        "has_stores": index.stores_exist(),
        "current_folder": index.current_folder_name,
        "groups": [_folder_to_dict(f) for f in index.list_groups(scope)],
    }


@app.get("/api/file/preview")
async def get_preview(path: str = Query(..., description="Absolute path of a listed file")):
    index = _get_index()
    file = _require_file(index, path)
    return {"path": file.path, "preview": await index.get_preview_async(file)}


@app.get("/api/file/content", response_class=PlainTextResponse)
async def get_content(path: str = Query(..., description="Absolute path of a listed file")):
    """Return the file as canonical JSONL, converting Codex rollouts."""
    index = _get_index()
    file = _require_file(index, path)
    return PlainTextResponse(await _read_canonical(index, file), media_type="application/x-ndjson")


@app.get("/api/file/entries")
async def get_entries(path: str = Query(..., description="Absolute path of a listed file")):
    """Return validated entries plus the tool-use/result lookup."""
    index = _get_index()
    file = _require_file(index, path)
    entries = parse_jsonl(await _read_canonical(index, file))
    tool_map = build_tool_map(entries)

    return {
        "path": file.path,
        "agent_id": find_agent_id(entries),
        "entries": [dump_entry(e) for e in entries],
        "tools": {
            tool_id: {"name": t.name, "result": dump_entry(t.result)}
            for tool_id, t in tool_map.items()
        },
    }


@app.post("/api/refresh")
async def refresh():
    index = _get_index()
    await index.refresh()
    return {"groups": len(index.folders), "loading": index.is_loading}


@app.post("/api/cache/clear")
async def clear_cache():
    _get_index().clear_cache()
    return {"cleared": True}
