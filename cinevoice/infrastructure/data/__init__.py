"""
Conversation data: transcripts, history and the playback queue.
"""

from .conversations import (
    Transcript, ConversationTurn, ConversationHistory, PendingMessageQueue,
    USER, ASSISTANT
)

__all__ = [
    'Transcript',
    'ConversationTurn',
    'ConversationHistory',
    'PendingMessageQueue',
    'USER',
    'ASSISTANT'
]
