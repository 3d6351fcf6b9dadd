"""
Built-in Tool Unit Tests

File tools confined to a workspace root, and subprocess command tools.
"""

import sys

import pytest

from build_core.tools import ToolRegistry
from build_core.tools.builtin import (
    ListFilesTool,
    ReadFileTool,
    RunTestsTool,
    SearchCodeTool,
    WriteFileTool,
    register_builtin_tools,
)


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("def main():\n    return 42\n", encoding="utf-8")
    (tmp_path / "src" / "util.py").write_text("VALUE = 1\n", encoding="utf-8")
    (tmp_path / ".env").write_text("SECRET=1\n", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref: main\n", encoding="utf-8")
    (tmp_path / "web" / "node_modules" / "lib").mkdir(parents=True)
    (tmp_path / "web" / "node_modules" / "lib" / "index.js").write_text("x\n", encoding="utf-8")
    (tmp_path / "web" / ".env").write_text("TOKEN=1\n", encoding="utf-8")
    return tmp_path


class TestFileTools:
    """read_file / write_file / list_files / search_code"""

    @pytest.mark.asyncio
    async def test_read_file_numbers_lines(self, workspace):
        result = await ReadFileTool(workspace).validate_and_execute(path="src/app.py")

        assert result.success
        assert result.output.splitlines() == ["    1| def main():", "    2|     return 42"]
        assert result.metadata["total_lines"] == 2

    @pytest.mark.asyncio
    async def test_read_file_range(self, workspace):
        result = await ReadFileTool(workspace).validate_and_execute(path="src/app.py", start_line=2)
        assert result.output == "    2|     return 42"

    @pytest.mark.asyncio
    async def test_read_missing_file(self, workspace):
        result = await ReadFileTool(workspace).validate_and_execute(path="nope.py")
        assert result.error_type == "FileNotFoundError"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        ".env",
        ".git/HEAD",
        "../outside.txt",
        "web/.env",
        "web/node_modules/lib/index.js",
        "src/../web/.env",
    ])
    async def test_blocked_paths(self, workspace, path):
        result = await ReadFileTool(workspace).validate_and_execute(path=path)
        assert not result.success
        assert result.error_type == "PathBlockedError"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["pkg/.git/config", "sub/.env"])
    async def test_nested_blocked_paths_cannot_be_written(self, workspace, path):
        result = await WriteFileTool(workspace).validate_and_execute(path=path, content="x")

        assert result.error_type == "PathBlockedError"
        assert not (workspace / path).exists()

    @pytest.mark.asyncio
    async def test_write_creates_parents(self, workspace):
        tool = WriteFileTool(workspace)
        result = await tool.validate_and_execute(path="pkg/new/mod.py", content="x = 1\n")

        assert result.success
        assert result.metadata["path"] == "pkg/new/mod.py"
        assert (workspace / "pkg" / "new" / "mod.py").read_text(encoding="utf-8") == "x = 1\n"
        assert tool.mutating is True

    @pytest.mark.asyncio
    async def test_list_files_skips_blocked(self, workspace):
        result = await ListFilesTool(workspace).validate_and_execute()

        assert result.output.splitlines() == ["src/app.py", "src/util.py"]

    @pytest.mark.asyncio
    async def test_list_files_pattern(self, workspace):
        result = await ListFilesTool(workspace).validate_and_execute(path="src", pattern="app*")
        assert result.output == "src/app.py"

    @pytest.mark.asyncio
    async def test_search_code(self, workspace):
        result = await SearchCodeTool(workspace).validate_and_execute(pattern=r"return \d+")

        assert result.output == "src/app.py:2: return 42"
        assert result.metadata["total_matches"] == 1

    @pytest.mark.asyncio
    async def test_search_invalid_regex(self, workspace):
        result = await SearchCodeTool(workspace).validate_and_execute(pattern="(")
        assert result.error_type == "RegexError"


class TestCommandTools:
    """run_tests with a stand-in command"""

    @pytest.mark.asyncio
    async def test_success(self, tmp_path):
        tool = RunTestsTool(tmp_path, command=[sys.executable, "-c", "print('3 passed')"])
        result = await tool.validate_and_execute()

        assert result.success
        assert result.output == "3 passed"
        assert result.metadata["exit_code"] == 0

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path):
        tool = RunTestsTool(tmp_path, command=[sys.executable, "-c", "import sys; print('1 failed'); sys.exit(1)"])
        result = await tool.validate_and_execute()

        assert not result.success
        assert result.error_type == "NonZeroExitCode"
        assert result.output == "1 failed"
        assert result.metadata["exit_code"] == 1

    @pytest.mark.asyncio
    async def test_missing_command(self, tmp_path):
        tool = RunTestsTool(tmp_path, command=["build-core-no-such-command"])
        result = await tool.validate_and_execute()
        assert result.error_type == "CommandNotFoundError"

    @pytest.mark.asyncio
    async def test_target_outside_root(self, tmp_path):
        tool = RunTestsTool(tmp_path, command=[sys.executable, "-c", "pass"])
        result = await tool.validate_and_execute(target="../elsewhere")
        assert result.error_type == "PathBlockedError"


class TestRegisterBuiltinTools:
    """register_builtin_tools"""

    def test_registers_all(self, tmp_path):
        registry = ToolRegistry()
        register_builtin_tools(registry, tmp_path)

        names = {t.name for t in registry.list_all()}
        assert names == {"read_file", "write_file", "list_files", "search_code", "check_types", "run_tests"}
        assert registry.get("read_file").root == tmp_path.resolve()

    def test_second_registration_is_logged_not_raised(self, tmp_path):
        registry = ToolRegistry()
        register_builtin_tools(registry, tmp_path)
        register_builtin_tools(registry, tmp_path)
        assert len(registry) == 6
