"""
Tool Registry for the tool system.
Tool registration, per-agent permissions and per-task call limits.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Type, Union

import yaml

from .base_tool import BaseTool
from .tool_schemas import parameters_to_json_schema

logger = logging.getLogger(__name__)


@dataclass
class AgentToolPermissions:
    """What one agent may do with tools."""
    agent: str
    allowed: List[str] = field(default_factory=list)
    max_calls_per_task: int = 10
    can_mutate: bool = False

    def __post_init__(self):
        self.agent = self.agent.upper()


@dataclass
class PermissionCheck:
    """Outcome of a can_call check."""
    allowed: bool
    reason: Optional[str] = None


_FULL = ["read_file", "write_file", "search_code", "check_types", "run_tests", "list_files"]
_READ_ONLY = ["read_file", "search_code", "list_files"]
_WRITER = ["read_file", "search_code", "write_file", "list_files"]
_VERIFIER = ["read_file", "search_code", "run_tests", "list_files", "check_types"]

DEFAULT_PERMISSIONS: List[AgentToolPermissions] = [
    # Core agents
    AgentToolPermissions("MARS", _FULL, 20, True),
    AgentToolPermissions("VENUS", ["read_file", "search_code", "list_files", "write_file"], 15, True),
    AgentToolPermissions("SATURN", _VERIFIER, 20, False),
    AgentToolPermissions("MERCURY", ["read_file", "search_code", "check_types", "run_tests", "list_files"], 15, False),

    # Infrastructure agents
    AgentToolPermissions("JUPITER", _READ_ONLY, 10, False),
    AgentToolPermissions("PLUTO", _WRITER, 15, True),
    AgentToolPermissions("IO", _VERIFIER, 15, False),

    # Limited agents
    AgentToolPermissions("TITAN", _WRITER, 10, True),
    AgentToolPermissions("EUROPA", _WRITER, 10, True),
    AgentToolPermissions("GANYMEDE", _WRITER, 10, True),
    AgentToolPermissions("TRITON", ["read_file", "search_code", "list_files", "check_types"], 10, False),
    AgentToolPermissions("ENCELADUS", _READ_ONLY, 10, False),
    AgentToolPermissions("MIMAS", _READ_ONLY, 8, False),
    AgentToolPermissions("CHARON", _WRITER, 8, True),

    # Read-only agents
    AgentToolPermissions("SUN", _READ_ONLY, 10, False),
    AgentToolPermissions("EARTH", _READ_ONLY, 8, False),
    AgentToolPermissions("URANUS", _READ_ONLY, 8, False),
    AgentToolPermissions("NEPTUNE", _READ_ONLY, 8, False),
    AgentToolPermissions("CALLISTO", ["read_file", "search_code", "list_files", "write_file"], 10, True),
    AgentToolPermissions("ATLAS", _READ_ONLY, 8, False),
    AgentToolPermissions("ANDROMEDA", _READ_ONLY, 5, False),
]


def load_permissions(path: Union[str, Path]) -> List[AgentToolPermissions]:
    """
    Load an agent permission table from YAML.

    Expected layout:
        agents:
          MARS:
            allowed: [read_file, write_file]
            max_calls_per_task: 20
            can_mutate: true
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    agents = data.get("agents", {})
    if not isinstance(agents, dict):
        raise ValueError(f"'agents' must be a mapping in {path}")

    permissions = []
    for agent, entry in agents.items():
        entry = entry or {}
        permissions.append(AgentToolPermissions(
            agent=str(agent),
            allowed=list(entry.get("allowed", [])),
            max_calls_per_task=int(entry.get("max_calls_per_task", 10)),
            can_mutate=bool(entry.get("can_mutate", False)),
        ))

    logger.info(f"Loaded tool permissions for {len(permissions)} agents from {path}")
    return permissions


class ToolRegistry:
    """
    Registry of tools plus the agent permission table.

    Example:
        registry = ToolRegistry()
        registry.register(ReadFileTool)

        check = registry.can_call("MARS", "read_file", task_id)
        if check.allowed:
            registry.record_call("MARS", task_id)
            tool = registry.get("read_file")
    """

    def __init__(self, permissions: Optional[Iterable[AgentToolPermissions]] = None):
        self._tools: Dict[str, BaseTool] = {}
        self._permissions: Dict[str, AgentToolPermissions] = {}
        self._call_counts: Dict[str, int] = {}

        for perm in (DEFAULT_PERMISSIONS if permissions is None else permissions):
            self.set_permissions(perm)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ToolRegistry":
        return cls(load_permissions(path))

    def register(self, tool: Union[BaseTool, Type[BaseTool]]) -> BaseTool:
        """
        Register a tool instance or class.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        instance = tool() if isinstance(tool, type) else tool

        if instance.name in self._tools:
            raise ValueError(f"Tool '{instance.name}' is already registered")

        self._tools[instance.name] = instance
        logger.info(f"Registered tool: {instance.name}")
        return instance

    def unregister(self, name: str) -> bool:
        if name not in self._tools:
            return False
        del self._tools[name]
        logger.info(f"Unregistered tool: {name}")
        return True

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def list_all(self) -> List[BaseTool]:
        return list(self._tools.values())

    def set_permissions(self, permissions: AgentToolPermissions) -> None:
        self._permissions[permissions.agent] = permissions

    def get_permissions(self, agent: str) -> Optional[AgentToolPermissions]:
        return self._permissions.get(agent.upper())

    def list_for_agent(self, agent: str) -> List[BaseTool]:
        """Tools visible to an agent. Unknown agents see only read-only tools."""
        perms = self.get_permissions(agent)
        if perms is None:
            return [t for t in self._tools.values() if not t.mutating]

        visible = []
        for t in self._tools.values():
            if t.is_blocked_for(agent) or t.is_restricted_from(agent):
                continue
            if t.name not in perms.allowed:
                continue
            if t.mutating and not perms.can_mutate:
                continue
            visible.append(t)
        return visible

    def can_call(self, agent: str, tool_name: str, task_id: str) -> PermissionCheck:
        """Check whether the agent may call the tool now, including the per-task limit."""
        t = self._tools.get(tool_name)
        if t is None:
            return PermissionCheck(False, f"Tool '{tool_name}' not found")

        perms = self.get_permissions(agent)
        if perms is None:
            return PermissionCheck(False, f"Agent '{agent}' has no permissions configured")

        if tool_name not in perms.allowed:
            return PermissionCheck(False, f"Agent '{agent}' is not allowed to use '{tool_name}'")

        if t.mutating and not perms.can_mutate:
            return PermissionCheck(False, f"Agent '{agent}' cannot use mutating tools")

        if t.is_blocked_for(agent):
            return PermissionCheck(False, f"Agent '{agent}' is explicitly blocked from '{tool_name}'")

        if self._call_counts.get(self._key(agent, task_id), 0) >= perms.max_calls_per_task:
            return PermissionCheck(
                False,
                f"Agent '{agent}' has reached max tool calls ({perms.max_calls_per_task}) for this task",
            )

        return PermissionCheck(True)

    def record_call(self, agent: str, task_id: str) -> None:
        key = self._key(agent, task_id)
        self._call_counts[key] = self._call_counts.get(key, 0) + 1

    def get_call_count(self, agent: str, task_id: str) -> int:
        return self._call_counts.get(self._key(agent, task_id), 0)

    def reset_call_counts(self, task_id: str) -> None:
        prefix = f"{task_id}:"
        for key in [k for k in self._call_counts if k.startswith(prefix)]:
            del self._call_counts[key]

    def format_tools_for_prompt(self, agent: str) -> str:
        """Describe the agent's tools for the system prompt. Empty when none are available."""
        tools = self.list_for_agent(agent)
        if not tools:
            return ""

        perms = self.get_permissions(agent)
        max_calls = perms.max_calls_per_task if perms else 10

        lines = [
            "<available_tools>",
            f"You have access to {len(tools)} tools. Max {max_calls} calls per task.",
            "",
        ]
        for t in tools:
            schema = parameters_to_json_schema(t.parameters)
            lines.append(f"## {t.name}")
            lines.append(t.description)
            lines.append(f"Parameters: {json.dumps(schema['properties'], indent=2)}")
            if schema.get("required"):
                lines.append(f"Required: {', '.join(schema['required'])}")
            lines.append("")

        lines.extend([
            "To use a tool, respond with:",
            "<tool_call>",
            '{"name": "tool_name", "arguments": {"param": "value"}}',
            "</tool_call>",
            "",
            "You may use multiple tools before giving your final answer.",
            "When done, wrap your final output in <final_output> tags.",
            "</available_tools>",
        ])
        return "\n".join(lines)

    @staticmethod
    def _key(agent: str, task_id: str) -> str:
        return f"{task_id}:{agent.upper()}"

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
