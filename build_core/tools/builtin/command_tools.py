"""
Command tools.
Run the workspace's type checker and test suite as subprocesses.
"""

import asyncio
import logging
import shlex
from typing import List, Optional, Sequence

from ..tool_schemas import ToolResult, ToolParameter, ParameterType
from .file_tools import WorkspaceTool, truncate_output

logger = logging.getLogger(__name__)


class CommandTool(WorkspaceTool):
    """Runs a fixed command in the workspace root."""

    command: Sequence[str] = ()

    def __init__(self, root=None, command: Optional[Sequence[str]] = None):
        super().__init__(root)
        if command is not None:
            self.command = list(command)

    async def run(self, extra_args: List[str]) -> ToolResult:
        argv = list(self.command) + extra_args
        if not argv:
            return ToolResult.error_result(f"No command configured for {self.name}", "ConfigurationError")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(self.root),
            )
        except FileNotFoundError:
            return ToolResult.error_result(f"Command not found: {argv[0]}", "CommandNotFoundError")

        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            # timeout or loop shutdown: do not leave the child running
            logger.warning(f"Killing {self.name} subprocess (pid {process.pid})")
            process.kill()
            await process.wait()
            raise

        output, truncated = truncate_output(stdout.decode("utf-8", errors="replace").strip() or "(no output)")

        if process.returncode != 0:
            return ToolResult(
                success=False,
                output=output,
                error=f"Command exited with code {process.returncode}",
                error_type="NonZeroExitCode",
                truncated=truncated,
                metadata={"exit_code": process.returncode, "command": shlex.join(argv)},
            )

        result = ToolResult.success_result(output, exit_code=0, command=shlex.join(argv))
        result.truncated = truncated
        return result


class CheckTypesTool(CommandTool):
    """Run the type checker."""

    name = "check_types"
    description = "Run the project's type checker and report diagnostics."
    timeout_seconds = 60
    command = ("mypy", ".")

    parameters = []

    async def execute(self) -> ToolResult:
        return await self.run([])


class RunTestsTool(CommandTool):
    """Run the test suite."""

    name = "run_tests"
    description = "Run the project's tests, optionally filtered by a path or keyword expression."
    timeout_seconds = 120
    command = ("pytest", "-q")

    parameters = [
        ToolParameter(
            name="target",
            type=ParameterType.STRING,
            description="Test file or directory relative to the workspace root",
            required=False,
        ),
        ToolParameter(
            name="keyword",
            type=ParameterType.STRING,
            description="Keyword expression passed to -k",
            required=False,
        ),
    ]

    async def execute(self, target: Optional[str] = None, keyword: Optional[str] = None) -> ToolResult:
        args: List[str] = []
        if target:
            resolved, reason = self.resolve_path(target)
            if resolved is None:
                return ToolResult.error_result(reason, "PathBlockedError")
            args.append(self.relative(resolved))
        if keyword:
            args.extend(["-k", keyword])
        return await self.run(args)
