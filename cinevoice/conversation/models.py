"""
Data models for the conversation layer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..infrastructure.data import ConversationTurn


class Intent(str, Enum):
    GREETING = "greeting"
    SEARCH = "search"
    CONFIRM_WATCH = "confirm_watch"
    CHAT = "chat"


@dataclass(frozen=True)
class NavigationSignal:
    """Request to move the UI to a content watch page."""
    path: str
    content_id: str
    media_type: str
    title: str


@dataclass
class SubmitResult:
    """Everything one accepted submit produced."""
    user_turn: ConversationTurn
    intent: Intent
    assistant_turns: List[ConversationTurn] = field(default_factory=list)
    navigation: Optional[NavigationSignal] = None
    # Recoverable failures (chat backend, content API, synthesis)
    errors: List[Exception] = field(default_factory=list)

    @property
    def reply_text(self) -> str:
        return " ".join(turn.text for turn in self.assistant_turns)
