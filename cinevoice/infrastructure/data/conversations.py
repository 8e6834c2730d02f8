"""
Conversation data structures.
Handles transcripts, turn-by-turn history and the playback queue.
"""
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Iterator, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..api.client import ContentItem
    from ..audio.speech.tts import AudioHandle
    from ..avatar.lipsync import LipsyncTrack

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Transcript:
    """Text recognised from one completed capture."""
    text: str
    confidence: Optional[float] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single turn in a conversation. Never mutated after creation."""
    role: str  # "user" or "assistant"
    text: str
    audio: Optional['AudioHandle'] = None
    lipsync: Optional['LipsyncTrack'] = None
    search_result: Optional['ContentItem'] = None
    expression: Optional[str] = None  # facial expression preset shown while speaking
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def has_audio(self) -> bool:
        return self.audio is not None


class ConversationHistory:
    """Ordered, append-only record of turns (oldest first)."""

    def __init__(self):
        self._turns: List[ConversationTurn] = []

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    @property
    def turns(self) -> Tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    def last(self, role: Optional[str] = None) -> Optional[ConversationTurn]:
        """Most recent turn, optionally restricted to one role."""
        for turn in reversed(self._turns):
            if role is None or turn.role == role:
                return turn
        return None

    def clear(self) -> None:
        """Explicit user-initiated reset; the only way turns are ever removed."""
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(tuple(self._turns))


class PendingMessageQueue:
    """FIFO of assistant turns with audio that have not been played yet."""

    def __init__(self):
        self._queue: Deque[ConversationTurn] = deque()

    def enqueue(self, turn: ConversationTurn) -> None:
        if not turn.has_audio:
            raise ValueError("Only turns with audio can be queued for playback")
        self._queue.append(turn)

    @property
    def current(self) -> Optional[ConversationTurn]:
        """The turn currently driving playback and animation."""
        return self._queue[0] if self._queue else None

    def dequeue(self) -> Optional[ConversationTurn]:
        """Drop the head once its playback has ended."""
        return self._queue.popleft() if self._queue else None

    def clear(self) -> None:
        self._queue.clear()

    def __len__(self) -> int:
        return len(self._queue)
