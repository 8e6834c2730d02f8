"""
Event bus for the voice assistant.

Components publish what happened (turns, intents, navigation, failures);
the event logger and session metrics subscribe to everything.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of assistant events."""
    TURN_APPENDED = "turn_appended"
    INTENT_RESOLVED = "intent_resolved"
    NAVIGATION_REQUESTED = "navigation_requested"
    SYNTHESIS_FAILED = "synthesis_failed"
    CAPTURE_ERROR = "capture_error"
    DEVICE_SELECTED = "device_selected"
    NO_WORKING_MICROPHONE = "no_working_microphone"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class AssistantEvent(ABC):
    """Base class for all assistant events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class TurnAppendedEvent(AssistantEvent):
    """A user or assistant turn was added to the history."""
    def __init__(self, session_id: str, timestamp: float, role: str, text: str, has_audio: bool):
        super().__init__(
            event_type=EventType.TURN_APPENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"role": role, "text": text, "has_audio": has_audio}
        )


@dataclass
class IntentResolvedEvent(AssistantEvent):
    def __init__(self, session_id: str, timestamp: float, intent: str, text: str):
        super().__init__(
            event_type=EventType.INTENT_RESOLVED,
            session_id=session_id,
            timestamp=timestamp,
            data={"intent": intent, "text": text}
        )


@dataclass
class NavigationRequestedEvent(AssistantEvent):
    """The user confirmed a search hit and wants to watch it."""
    def __init__(self, session_id: str, timestamp: float, path: str, content_id: str, title: str):
        super().__init__(
            event_type=EventType.NAVIGATION_REQUESTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"path": path, "content_id": content_id, "title": title}
        )


@dataclass
class SynthesisFailedEvent(AssistantEvent):
    """Speech synthesis gave up; the turn stays text-only."""
    def __init__(self, session_id: str, timestamp: float, text: str, attempts: int, error: str):
        super().__init__(
            event_type=EventType.SYNTHESIS_FAILED,
            session_id=session_id,
            timestamp=timestamp,
            data={"text": text, "attempts": attempts, "error": error}
        )


@dataclass
class CaptureErrorEvent(AssistantEvent):
    def __init__(self, session_id: str, timestamp: float, error_type: str, error_message: str):
        super().__init__(
            event_type=EventType.CAPTURE_ERROR,
            session_id=session_id,
            timestamp=timestamp,
            data={"error_type": error_type, "error_message": error_message}
        )


@dataclass
class DeviceSelectedEvent(AssistantEvent):
    def __init__(self, session_id: str, timestamp: float, device_id: str, label: str):
        super().__init__(
            event_type=EventType.DEVICE_SELECTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"device_id": device_id, "label": label}
        )


@dataclass
class NoWorkingMicrophoneEvent(AssistantEvent):
    def __init__(self, session_id: str, timestamp: float, candidates: int):
        super().__init__(
            event_type=EventType.NO_WORKING_MICROPHONE,
            session_id=session_id,
            timestamp=timestamp,
            data={"candidates": candidates}
        )


@dataclass
class ErrorOccurredEvent(AssistantEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[AssistantEvent], None]


class AssistantEventBus:
    """In-process publish/subscribe for assistant events."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug(f"Unsubscribed handler from {event_type}")
        else:
            logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: AssistantEvent) -> None:
        """
        Deliver an event to its subscribers, then to global handlers.

        A failing handler is logged and does not stop delivery to the rest.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Writes every event to the log."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.log_level = log_level

    def handle_event(self, event: AssistantEvent) -> None:
        self.logger.log(self.log_level, f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Counters collected from assistant events."""

    _COUNTERS = {
        EventType.TURN_APPENDED: "turns",
        EventType.NAVIGATION_REQUESTED: "navigations",
        EventType.SYNTHESIS_FAILED: "synthesis_failures",
        EventType.CAPTURE_ERROR: "capture_errors",
        EventType.NO_WORKING_MICROPHONE: "no_microphone",
        EventType.ERROR_OCCURRED: "errors_occurred",
    }

    def __init__(self):
        self.reset()

    def handle_event(self, event: AssistantEvent) -> None:
        name = self._COUNTERS.get(event.event_type)
        if name is not None:
            self.counts[name] += 1
        if event.event_type == EventType.INTENT_RESOLVED:
            intent = event.data.get("intent", "unknown")
            self.intents[intent] = self.intents.get(intent, 0) + 1

    def get_metrics(self) -> Dict[str, Any]:
        """Snapshot of counters plus per-intent totals."""
        snapshot: Dict[str, Any] = dict(self.counts)
        snapshot["intents"] = dict(self.intents)
        return snapshot

    def reset(self) -> None:
        self.counts: Dict[str, int] = {name: 0 for name in self._COUNTERS.values()}
        self.intents: Dict[str, int] = {}


def attach_default_handlers(bus: AssistantEventBus,
                            metrics: Optional[SessionMetrics] = None) -> SessionMetrics:
    """Subscribe an EventLogger and a SessionMetrics to every event on `bus`."""
    metrics = metrics or SessionMetrics()
    bus.subscribe_all(EventLogger().handle_event)
    bus.subscribe_all(metrics.handle_event)
    return metrics
