"""
File tools

read_file accepts any absolute or ~/ path; write_file and list_files are
confined to the reporter workspace directory.
"""

import asyncio
from pathlib import Path
from typing import Any

from reporter.config import REPORTER_DIR
from reporter.core.tools import ToolCallContext

WORKSPACE_DIR = REPORTER_DIR
DEFAULT_LINE_LIMIT = 2000
BINARY_SNIFF_BYTES = 512


def resolve_path(path: str) -> Path:
    """Expand ~/ and make the path absolute"""
    return Path(path).expanduser().resolve()


def workspace_path(path: str) -> Path:
    """Resolve `path` inside the workspace, rejecting anything that escapes it"""
    root = Path(WORKSPACE_DIR).expanduser().resolve()
    cleaned = path or ""
    for prefix in ("~/reporter/", "~/reporter"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
            break
    resolved = (root / cleaned).resolve()
    if resolved != root and root not in resolved.parents:
        raise PermissionError(f"Access denied: path must be within {root}")
    return resolved


def _read_numbered(path: Path, offset: int, limit: int) -> str:
    with open(path, "rb") as f:
        if b"\0" in f.read(BINARY_SNIFF_BYTES):
            raise ValueError("binary")
    lines = path.read_text(encoding="utf-8", errors="replace").split("\n")
    window = lines[offset - 1 : offset - 1 + limit]
    output = "\n".join(f"{offset + i}\t{line}" for i, line in enumerate(window))
    if len(lines) > offset - 1 + limit:
        output += f"\n\n... ({len(lines)} total lines)"
    return output


async def read_file_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """Read a text file as numbered lines"""
    raw = arguments.get("path", "")
    if not raw:
        return "Error: No path provided", False
    path = resolve_path(raw)
    if not path.exists():
        return f"Error: file not found: {raw}", False
    if path.is_dir():
        return f"Error: path is a directory, not a file: {raw}", False

    offset = max(1, int(arguments.get("offset") or 1))
    limit = min(DEFAULT_LINE_LIMIT, max(1, int(arguments.get("limit") or DEFAULT_LINE_LIMIT)))
    try:
        return await asyncio.to_thread(_read_numbered, path, offset, limit), True
    except ValueError:
        return f"Error: binary file, cannot display: {raw}", False
    except OSError as e:
        return f"Error reading file: {str(e)}", False


async def write_file_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """Write to a file in the workspace"""
    raw = arguments.get("path", "")
    if not raw:
        return "Error: No path provided", False
    try:
        path = workspace_path(raw)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(arguments.get("content", ""))
    except (PermissionError, OSError) as e:
        return f"Error writing file: {str(e)}", False
    return f"Written to {raw}", True


async def list_files_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """List a workspace directory, directories suffixed with /"""
    raw = arguments.get("path") or ""
    try:
        path = workspace_path(raw)
    except PermissionError as e:
        return f"Error: {str(e)}", False
    if not path.is_dir():
        return f"Error: directory not found: {raw or '/'}", False

    entries = sorted(path.iterdir(), key=lambda p: p.name)
    if not entries:
        return "(empty directory)", True
    return "\n".join(f"{p.name}/" if p.is_dir() else p.name for p in entries), True


READ_FILE_TOOL_SPEC = {
    "name": "read_file",
    "description": (
        "Read a file from the filesystem. Supports absolute paths and ~/. "
        "Returns numbered lines. Use offset/limit for large files."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Absolute file path or ~/relative path"},
            "offset": {
                "type": "integer",
                "description": "Line number to start reading from (1-based, default: 1)",
            },
            "limit": {
                "type": "integer",
                "description": "Maximum number of lines to return (default: 2000)",
            },
        },
        "required": ["path"],
    },
}

WRITE_FILE_TOOL_SPEC = {
    "name": "write_file",
    "description": (
        "Write content to a file in ~/reporter/. Creates directories as needed. "
        "Path is relative to ~/reporter/."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to ~/reporter/"},
            "content": {"type": "string", "description": "File content to write"},
        },
        "required": ["path", "content"],
    },
}

LIST_FILES_TOOL_SPEC = {
    "name": "list_files",
    "description": "List files and directories under ~/reporter/ (defaults to its root).",
    "parameters": {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory path relative to ~/reporter/ (default: root)",
            },
        },
    },
}
