"""
Conversation log entries.

Messages are append-only: the dispatch service creates them and nothing
updates or deletes them afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


def text_block(text: str) -> Dict[str, Any]:
    """Build a single text content block."""
    return {"type": "text", "text": text}


@dataclass(frozen=True)
class Message:
    id: str
    user_id: str
    role: MessageRole
    content: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def text(self) -> str:
        """Concatenate the text blocks of this message."""
        return "".join(
            block.get("text", "") for block in self.content
            if block.get("type") == "text")
