"""Workspace tools: read_file, write_file, list_files.

Every call also reports a status snapshot (a listing of the workspace),
which the runner records as the conversation's current status. All
handlers return MCP-format responses for ToolDispatcher.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from promptloop.api.tools import ToolDispatcher

logger = logging.getLogger(__name__)

_MAX_FILE_SIZE = 1 * 1024 * 1024  # 1MB
_MAX_LISTING = 200  # entries in a status snapshot


def _mcp_response(text: str, status: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if status is not None:
        response["status"] = status
    return response


def _validate_path(path_str: str, workspace: Path) -> Path:
    """Resolve path_str inside workspace. Raises ValueError if it escapes."""
    target = (workspace / path_str).resolve()
    if not target.is_relative_to(workspace):
        raise ValueError(f"Path '{path_str}' is outside the workspace.")
    return target


def workspace_status(workspace: Path) -> str:
    """Render the workspace listing used as the status snapshot."""
    if not workspace.exists():
        return "Workspace is empty."
    entries = sorted(
        str(p.relative_to(workspace)) + ("/" if p.is_dir() else "")
        for p in workspace.rglob("*")
    )
    if not entries:
        return "Workspace is empty."
    lines = entries[:_MAX_LISTING]
    if len(entries) > _MAX_LISTING:
        lines.append(f"... ({len(entries) - _MAX_LISTING} more)")
    return "Workspace files:\n" + "\n".join(lines)


class WorkspaceTools:
    """File tools confined to a single workspace directory."""

    def __init__(self, workspace_dir: str) -> None:
        self.workspace = Path(workspace_dir).resolve()

    async def _status(self) -> str:
        return await asyncio.to_thread(workspace_status, self.workspace)

    async def read_file(self, path: str) -> dict[str, Any]:
        try:
            target = _validate_path(path, self.workspace)
        except ValueError as e:
            return _mcp_response(str(e), await self._status())

        if not target.is_file():
            return _mcp_response(f"File not found: {path}", await self._status())
        size = target.stat().st_size
        if size > _MAX_FILE_SIZE:
            return _mcp_response(
                f"File too large: {size:,} bytes (limit: {_MAX_FILE_SIZE:,} bytes)",
                await self._status(),
            )

        content = await asyncio.to_thread(target.read_text, encoding="utf-8", errors="replace")
        return _mcp_response(content or "(empty file)", await self._status())

    async def write_file(self, path: str, content: str) -> dict[str, Any]:
        try:
            target = _validate_path(path, self.workspace)
        except ValueError as e:
            return _mcp_response(str(e), await self._status())

        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_text, content, encoding="utf-8")
        logger.info("Wrote %d chars to %s", len(content), target)
        return _mcp_response(
            f"Wrote {len(content):,} chars to {path}", await self._status()
        )

    async def list_files(self) -> dict[str, Any]:
        status = await self._status()
        return _mcp_response(status, status)


_READ_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Read a text file from the workspace",
    "properties": {
        "path": {"type": "string", "description": "Path relative to the workspace"},
    },
    "required": ["path"],
}

_WRITE_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Create or overwrite a text file in the workspace",
    "properties": {
        "path": {"type": "string", "description": "Path relative to the workspace"},
        "content": {"type": "string", "description": "Full file content"},
    },
    "required": ["path", "content"],
}

_LIST_FILES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "List every file in the workspace",
    "properties": {},
}


def register_workspace_tools(dispatcher: ToolDispatcher, workspace_dir: str) -> WorkspaceTools:
    """Register read_file, write_file and list_files bound to workspace_dir."""
    tools = WorkspaceTools(workspace_dir)
    dispatcher.register("read_file", tools.read_file, _READ_FILE_SCHEMA)
    dispatcher.register("write_file", tools.write_file, _WRITE_FILE_SCHEMA)
    dispatcher.register("list_files", tools.list_files, _LIST_FILES_SCHEMA)
    return tools
