"""
CineVoice: voice front end for a movie and TV browsing assistant.

Listens on the best available microphone, answers greetings, content
searches and watch confirmations, forwards everything else to a chat
backend, and speaks the replies through a lip-synced avatar.
"""

__version__ = "1.0.0"

# Main entry points
from .conversation.orchestrator import VoiceAssistant
from .conversation.controller import ConversationController
from .conversation.models import NavigationSignal, SubmitResult

__all__ = ["VoiceAssistant", "ConversationController", "NavigationSignal", "SubmitResult"]
