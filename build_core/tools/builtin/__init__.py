"""
Built-in workspace tools.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .file_tools import ReadFileTool, WriteFileTool, ListFilesTool, SearchCodeTool
from .command_tools import CheckTypesTool, RunTestsTool

__all__ = [
    "ReadFileTool",
    "WriteFileTool",
    "ListFilesTool",
    "SearchCodeTool",
    "CheckTypesTool",
    "RunTestsTool",
    "register_builtin_tools",
]

logger = logging.getLogger(__name__)


def register_builtin_tools(registry, root: Optional[Union[str, Path]] = None) -> None:
    """Register all built-in tools, rooted at ``root``."""
    builtin_tools = [
        ReadFileTool,
        WriteFileTool,
        ListFilesTool,
        SearchCodeTool,
        CheckTypesTool,
        RunTestsTool,
    ]

    for tool_class in builtin_tools:
        try:
            registry.register(tool_class(root))
        except ValueError as e:
            logger.error(f"Failed to register built-in tool {tool_class.__name__}: {e}")
