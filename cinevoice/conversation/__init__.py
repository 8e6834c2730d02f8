"""Conversation components.

Business logic of the assistant: intent resolution, the conversation
controller, the event system and the voice assistant orchestrator.
Fakes for tests live in `cinevoice.conversation.testing`.
"""

# Core orchestrator class
from .orchestrator import VoiceAssistant

# Controller and data models
from .controller import ConversationController
from .models import Intent, NavigationSignal, SubmitResult
from .intents import resolve_intent, extract_search_term

# Event system
from .events import (
    AssistantEventBus, EventLogger, SessionMetrics, EventType, AssistantEvent,
    TurnAppendedEvent, IntentResolvedEvent, NavigationRequestedEvent,
    SynthesisFailedEvent, CaptureErrorEvent, DeviceSelectedEvent,
    NoWorkingMicrophoneEvent, ErrorOccurredEvent, attach_default_handlers
)

__all__ = [
    # Orchestrator
    "VoiceAssistant",

    # Controller and models
    "ConversationController", "Intent", "NavigationSignal", "SubmitResult",
    "resolve_intent", "extract_search_term",

    # Events
    "AssistantEventBus", "EventLogger", "SessionMetrics", "EventType", "AssistantEvent",
    "TurnAppendedEvent", "IntentResolvedEvent", "NavigationRequestedEvent",
    "SynthesisFailedEvent", "CaptureErrorEvent", "DeviceSelectedEvent",
    "NoWorkingMicrophoneEvent", "ErrorOccurredEvent", "attach_default_handlers"
]
