"""
Filesystem search tools: glob (by name) and grep (by content)
"""

import asyncio
from pathlib import Path
from typing import Any

from reporter.core.tools import ToolCallContext
from reporter.tools.file_tools import resolve_path
from reporter.tools.process import run_process, truncate

GLOB_DEFAULT_LIMIT = 100
GLOB_MAX_LIMIT = 500
GREP_TIMEOUT_SEC = 30.0
GREP_MAX_COUNT = 100


def _glob_files(root: Path, pattern: str, limit: int) -> tuple[list[Path], int]:
    matches = []
    for path in root.glob(pattern):
        if any(part.startswith(".") for part in path.relative_to(root).parts):
            continue
        try:
            if path.is_file():
                matches.append((path.stat().st_mtime, path))
        except OSError:
            continue
        # gather extra for sorting, then trim
        if len(matches) >= limit * 2:
            break
    matches.sort(key=lambda m: m[0], reverse=True)
    return [p for _, p in matches[:limit]], len(matches)


async def glob_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """Find files by glob pattern, newest first"""
    pattern = arguments.get("pattern", "")
    if not pattern:
        return "Error: No pattern provided", False
    root = resolve_path(arguments.get("path") or "~")
    if not root.is_dir():
        return f"Error: directory not found: {root}", False
    limit = min(GLOB_MAX_LIMIT, max(1, int(arguments.get("limit") or GLOB_DEFAULT_LIMIT)))

    try:
        paths, found = await asyncio.to_thread(_glob_files, root, pattern, limit)
    except ValueError as e:
        return f"Error: invalid pattern: {str(e)}", False

    if not paths:
        return f'No files found matching "{pattern}" in {root}', True
    output = "\n".join(str(p) for p in paths)
    if found > limit:
        output += f"\n\n... ({found}+ matches, showing first {limit})"
    return output, True


async def grep_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """Search file contents with grep -rn"""
    pattern = arguments.get("pattern", "")
    if not pattern:
        return "Error: No pattern provided", False
    search_path = resolve_path(arguments.get("path") or "~")

    args = ["grep", "-rn", f"--max-count={GREP_MAX_COUNT}"]
    if arguments.get("case_insensitive"):
        args.append("-i")
    if arguments.get("glob"):
        args.append(f"--include={arguments['glob']}")
    args.extend(["--", pattern, str(search_path)])

    try:
        result = await run_process(args, GREP_TIMEOUT_SEC, context.cancel_event)
    except OSError as e:
        return f"Error: {str(e)}", False

    if result.stopped == "timeout":
        return f"Error: grep timed out after {int(GREP_TIMEOUT_SEC)}s", False
    if result.stopped == "cancelled":
        return "Aborted", False
    # grep exits 1 for "no match", 2 for real errors
    if result.returncode == 2 and not result.stdout:
        return f"Error: {result.stderr.strip()}", False
    if not result.stdout.strip():
        return f'No matches found for "{pattern}" in {search_path}', True
    return truncate(result.stdout), True


GLOB_TOOL_SPEC = {
    "name": "glob",
    "description": (
        "Find files matching a glob pattern. Returns absolute paths sorted by "
        'modification time (newest first). Supports patterns like "**/*.pdf", "*.txt", "src/**/*.py".'
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "pattern": {
                "type": "string",
                "description": 'Glob pattern to match (e.g. "**/*.pdf", "*.txt")',
            },
            "path": {
                "type": "string",
                "description": "Directory to search in (default: home directory). Supports ~/.",
            },
            "limit": {
                "type": "integer",
                "description": "Maximum number of results (default: 100, max: 500)",
            },
        },
        "required": ["pattern"],
    },
}

GREP_TOOL_SPEC = {
    "name": "grep",
    "description": (
        "Search file contents for a pattern using grep. "
        "Returns matching lines with file paths and line numbers."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Search pattern (regular expression)"},
            "path": {
                "type": "string",
                "description": "Directory or file to search in (default: home directory). Supports ~/.",
            },
            "glob": {"type": "string", "description": 'File pattern filter (e.g. "*.txt", "*.md")'},
            "case_insensitive": {
                "type": "boolean",
                "description": "Case-insensitive search (default: false)",
            },
        },
        "required": ["pattern"],
    },
}
