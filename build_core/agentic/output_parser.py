"""
Parsing of model output: tool-call blocks and the tagged final answer.
"""

import json
import logging
import re
import uuid
from typing import List, Optional, Sequence, Tuple

from ..tools.tool_schemas import ToolCall, ToolExecution

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5

_TOOL_CALL_RE = re.compile(r"<tool_call>\s*(.*?)\s*</tool_call>", re.DOTALL | re.IGNORECASE)
_FINAL_OPEN_RE = re.compile(r"<final_output\b([^>]*)>", re.IGNORECASE)
_FINAL_CLOSE_RE = re.compile(r"</final_output\s*>", re.IGNORECASE)
_CONFIDENCE_RE = re.compile(r"""confidence\s*=\s*["']?([^"'\s>]+)""", re.IGNORECASE)


def parse_tool_calls(content: str) -> List[ToolCall]:
    """
    Extract ``<tool_call>`` blocks in the order they appear.

    Each block holds JSON ``{"name": ..., "arguments": {...}}``. Blocks that
    are not valid JSON or have no name are skipped.
    """
    calls = []
    for match in _TOOL_CALL_RE.finditer(content or ""):
        body = match.group(1)
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed tool call: {e}")
            continue

        if not isinstance(data, dict) or not data.get("name"):
            logger.warning("Skipping tool call without a name")
            continue

        arguments = data.get("arguments") or data.get("args") or {}
        if not isinstance(arguments, dict):
            arguments = {}

        calls.append(ToolCall(
            id=f"call_{uuid.uuid4().hex[:8]}",
            tool_name=str(data["name"]),
            arguments=arguments,
        ))
    return calls


def has_final_output(content: str) -> bool:
    return bool(_FINAL_OPEN_RE.search(content or ""))


def parse_confidence(attributes: str, default: float = DEFAULT_CONFIDENCE) -> float:
    """Read ``confidence="x"`` from tag attributes, clamped to [0, 1]."""
    match = _CONFIDENCE_RE.search(attributes or "")
    if not match:
        return default
    try:
        value = float(match.group(1))
    except ValueError:
        return default
    if value != value:  # NaN
        return default
    return min(1.0, max(0.0, value))


def extract_final_output(content: str) -> Optional[Tuple[str, float]]:
    """
    Return ``(text, confidence)`` for the first final-output block, or None.

    A missing closing tag takes everything after the opening tag.
    """
    opening = _FINAL_OPEN_RE.search(content or "")
    if not opening:
        return None

    confidence = parse_confidence(opening.group(1))
    rest = content[opening.end():]
    closing = _FINAL_CLOSE_RE.search(rest)
    text = rest[:closing.start()] if closing else rest
    return text.strip(), confidence


def format_tool_results(executions: Sequence[ToolExecution]) -> str:
    """Render executed calls as a message for the next turn."""
    lines = ["<tool_results>"]
    for execution in executions:
        status = "success" if execution.result.success else "error"
        lines.append(f'<tool_result name="{execution.call.tool_name}" status="{status}">')
        lines.append(execution.result.to_context_string())
        lines.append("</tool_result>")
    lines.append("</tool_results>")
    return "\n".join(lines)
