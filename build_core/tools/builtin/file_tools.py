"""
Workspace file tools.
Read, write, list and search files confined to a workspace root.
"""

import asyncio
import re
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple, Union

import aiofiles

from ..base_tool import BaseTool
from ..tool_schemas import ToolResult, ToolParameter, ParameterType

MAX_OUTPUT_LENGTH = 8000
MAX_FILE_READ_LINES = 500

# matched against every component of a workspace-relative path
BLOCKED_NAMES = frozenset({
    ".env",
    ".git",
    "node_modules",
})


def is_blocked(rel: str) -> bool:
    return any(part in BLOCKED_NAMES for part in PurePosixPath(rel).parts)


def truncate_output(output: str, limit: int = MAX_OUTPUT_LENGTH) -> Tuple[str, bool]:
    if len(output) <= limit:
        return output, False
    omitted = len(output) - limit
    return output[:limit] + f"\n\n... (truncated, {omitted} chars omitted)", True


def make_result(output: str, **metadata) -> ToolResult:
    text, truncated = truncate_output(output)
    result = ToolResult.success_result(text, **metadata)
    result.truncated = truncated
    return result


class WorkspaceTool(BaseTool):
    """Base for tools that operate inside a workspace root."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        super().__init__()
        self.root = Path(root or Path.cwd()).resolve()

    def resolve_path(self, path: str) -> Tuple[Optional[Path], Optional[str]]:
        """Resolve a path inside the root. Returns (path, None) or (None, reason)."""
        resolved = (self.root / path).resolve()
        try:
            rel = resolved.relative_to(self.root).as_posix()
        except ValueError:
            return None, f"Path '{path}' is outside the workspace root"

        if is_blocked(rel):
            return None, f"Path '{rel}' is blocked for agent access"

        return resolved, None

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()


class ReadFileTool(WorkspaceTool):
    """Read the contents of a file."""

    name = "read_file"
    description = "Read a file from the workspace. Returns numbered lines, optionally a line range."
    timeout_seconds = 5

    parameters = [
        ToolParameter(
            name="path",
            type=ParameterType.STRING,
            description="File path relative to the workspace root",
        ),
        ToolParameter(
            name="start_line",
            type=ParameterType.INTEGER,
            description="Start line (1-based)",
            required=False,
            min_value=1,
        ),
        ToolParameter(
            name="end_line",
            type=ParameterType.INTEGER,
            description="End line (1-based, inclusive)",
            required=False,
            min_value=1,
        ),
    ]

    async def execute(
        self,
        path: str,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
    ) -> ToolResult:
        resolved, reason = self.resolve_path(path)
        if resolved is None:
            return ToolResult.error_result(reason, "PathBlockedError")
        if not resolved.is_file():
            return ToolResult.error_result(f"File not found: {path}", "FileNotFoundError")

        async with aiofiles.open(resolved, "r", encoding="utf-8", errors="replace") as f:
            lines = (await f.read()).splitlines()

        start = (start_line or 1) - 1
        end = min(end_line or len(lines), start + MAX_FILE_READ_LINES)
        selected = lines[start:end]

        numbered = "\n".join(f"{i:5}| {line}" for i, line in enumerate(selected, start=start + 1))
        return make_result(
            numbered,
            path=self.relative(resolved),
            total_lines=len(lines),
            shown_lines=len(selected),
        )


class WriteFileTool(WorkspaceTool):
    """Write content to a file."""

    name = "write_file"
    description = "Write content to a workspace file, creating parent directories as needed."
    timeout_seconds = 5
    mutating = True

    parameters = [
        ToolParameter(
            name="path",
            type=ParameterType.STRING,
            description="File path relative to the workspace root",
        ),
        ToolParameter(
            name="content",
            type=ParameterType.STRING,
            description="Full file content",
        ),
    ]

    async def execute(self, path: str, content: str) -> ToolResult:
        resolved, reason = self.resolve_path(path)
        if resolved is None:
            return ToolResult.error_result(reason, "PathBlockedError")

        resolved.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(resolved, "w", encoding="utf-8") as f:
            await f.write(content)

        return ToolResult.success_result(
            f"Wrote {len(content)} characters to {self.relative(resolved)}",
            path=self.relative(resolved),
            bytes_written=len(content.encode("utf-8")),
        )


class ListFilesTool(WorkspaceTool):
    """List files under a directory."""

    name = "list_files"
    description = "List files under a workspace directory matching a glob pattern."
    timeout_seconds = 10

    parameters = [
        ToolParameter(
            name="path",
            type=ParameterType.STRING,
            description="Directory relative to the workspace root",
            required=False,
            default=".",
        ),
        ToolParameter(
            name="pattern",
            type=ParameterType.STRING,
            description="Glob pattern, e.g. '**/*.py'",
            required=False,
            default="**/*",
        ),
        ToolParameter(
            name="limit",
            type=ParameterType.INTEGER,
            description="Maximum number of entries",
            required=False,
            default=200,
            min_value=1,
            max_value=1000,
        ),
    ]

    async def execute(self, path: str = ".", pattern: str = "**/*", limit: int = 200) -> ToolResult:
        resolved, reason = self.resolve_path(path)
        if resolved is None:
            return ToolResult.error_result(reason, "PathBlockedError")
        if not resolved.is_dir():
            return ToolResult.error_result(f"Directory not found: {path}", "DirectoryNotFoundError")

        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(None, lambda: self._collect(resolved, pattern))
        files = files[:limit]

        return make_result(
            "\n".join(files) if files else "No files found",
            total=len(files),
        )

    def _collect(self, base: Path, pattern: str) -> List[str]:
        found = []
        for p in sorted(base.glob(pattern)):
            if not p.is_file():
                continue
            rel = self.relative(p)
            if is_blocked(rel):
                continue
            found.append(rel)
        return found


class SearchCodeTool(WorkspaceTool):
    """Search file contents with a regex."""

    name = "search_code"
    description = "Search workspace files for a regular expression. Returns path:line: text matches."
    timeout_seconds = 10

    parameters = [
        ToolParameter(
            name="pattern",
            type=ParameterType.STRING,
            description="Regular expression to search for",
        ),
        ToolParameter(
            name="glob",
            type=ParameterType.STRING,
            description="Glob filter for files",
            required=False,
            default="**/*",
        ),
        ToolParameter(
            name="case_insensitive",
            type=ParameterType.BOOLEAN,
            description="Case insensitive search",
            required=False,
            default=False,
        ),
        ToolParameter(
            name="limit",
            type=ParameterType.INTEGER,
            description="Maximum number of matches",
            required=False,
            default=100,
            min_value=1,
            max_value=500,
        ),
    ]

    async def execute(
        self,
        pattern: str,
        glob: str = "**/*",
        case_insensitive: bool = False,
        limit: int = 100,
    ) -> ToolResult:
        try:
            regex = re.compile(pattern, re.IGNORECASE if case_insensitive else 0)
        except re.error as e:
            return ToolResult.error_result(f"Invalid regex pattern: {e}", "RegexError")

        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(
            None, lambda: ListFilesTool(self.root)._collect(self.root, glob)
        )

        matches = []
        for rel in files:
            if len(matches) >= limit:
                break
            try:
                async with aiofiles.open(self.root / rel, "r", encoding="utf-8") as f:
                    lines = (await f.read()).splitlines()
            except (UnicodeDecodeError, PermissionError):
                continue

            for i, line in enumerate(lines, start=1):
                if regex.search(line):
                    matches.append(f"{rel}:{i}: {line.strip()}")
                    if len(matches) >= limit:
                        break

        return make_result(
            "\n".join(matches) if matches else "No matches found",
            total_matches=len(matches),
            files_searched=len(files),
        )
