"""
Conversation log for one agent loop run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

CONTINUATION_PREFIX = "Continue the task based on this conversation history:\n\n"

FINAL_TURN_DIRECTIVE = (
    "[SYSTEM: This is your final turn. You MUST now provide your final output "
    "wrapped in <final_output> tags with a confidence score between 0.0 and 1.0.]"
)


class MessageRole(str, Enum):
    """Roles in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ConversationTurn:
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_context_string(self) -> str:
        return f"[{self.role.value.upper()}]\n{self.content}"


class ConversationLog:
    """Ordered turns, rendered as role-labelled blocks."""

    def __init__(self):
        self._turns: List[ConversationTurn] = []

    def add(self, role: MessageRole, content: str, **metadata) -> ConversationTurn:
        turn = ConversationTurn(role=MessageRole(role), content=content, metadata=metadata)
        self._turns.append(turn)
        return turn

    def clear(self) -> None:
        self._turns.clear()

    @property
    def turns(self) -> List[ConversationTurn]:
        return list(self._turns)

    def last(self, role: Optional[MessageRole] = None) -> Optional[ConversationTurn]:
        for turn in reversed(self._turns):
            if role is None or turn.role == role:
                return turn
        return None

    def render(self) -> str:
        return "\n\n".join(turn.to_context_string() for turn in self._turns)

    def continuation_prompt(self, final_turn: bool = False) -> str:
        """The user prompt for turns after the first."""
        prompt = CONTINUATION_PREFIX + self.render()
        if final_turn:
            prompt += "\n\n" + FINAL_TURN_DIRECTIVE
        return prompt

    def __len__(self) -> int:
        return len(self._turns)
