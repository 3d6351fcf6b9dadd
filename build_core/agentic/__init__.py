"""
Agentic execution: the confidence-gated agent loop and its parsing helpers.
"""

from .agent_loop import AgentExecutionLoop, AgentLoopResult, StopReason, OUTPUT_FORMAT_INSTRUCTIONS
from .conversation import ConversationLog, MessageRole, FINAL_TURN_DIRECTIVE
from .output_parser import (
    parse_tool_calls,
    has_final_output,
    extract_final_output,
    format_tool_results,
)

__all__ = [
    "AgentExecutionLoop",
    "AgentLoopResult",
    "StopReason",
    "OUTPUT_FORMAT_INSTRUCTIONS",
    "ConversationLog",
    "MessageRole",
    "FINAL_TURN_DIRECTIVE",
    "parse_tool_calls",
    "has_final_output",
    "extract_final_output",
    "format_tool_results",
]
