"""
tests/test_events.py — assistant event bus, logger and metrics

Covers:
  - Typed subscriptions and global subscriptions
  - A failing handler does not stop delivery
  - Unsubscribe
  - Session metrics counters and per-intent totals
"""

from cinevoice.conversation.events import (
    AssistantEventBus, EventLogger, EventType, ErrorOccurredEvent, IntentResolvedEvent,
    NavigationRequestedEvent, SessionMetrics, TurnAppendedEvent, attach_default_handlers
)


def _turn(role="user"):
    return TurnAppendedEvent("s1", 1.0, role, "hello", False)


class TestEventBus:
    def test_typed_and_global_delivery(self):
        bus = AssistantEventBus()
        typed, everything = [], []
        bus.subscribe(EventType.TURN_APPENDED, typed.append)
        bus.subscribe_all(everything.append)

        bus.emit(_turn())
        bus.emit(IntentResolvedEvent("s1", 1.0, "chat", "hello"))

        assert [e.event_type for e in typed] == [EventType.TURN_APPENDED]
        assert len(everything) == 2

    def test_failing_handler_is_isolated(self):
        bus = AssistantEventBus()
        received = []

        def broken(event):
            raise RuntimeError("handler bug")

        bus.subscribe(EventType.TURN_APPENDED, broken)
        bus.subscribe(EventType.TURN_APPENDED, received.append)
        bus.subscribe_all(broken)
        bus.emit(_turn())

        assert len(received) == 1

    def test_unsubscribe(self):
        bus = AssistantEventBus()
        received = []
        bus.subscribe(EventType.TURN_APPENDED, received.append)
        bus.unsubscribe(EventType.TURN_APPENDED, received.append)
        bus.emit(_turn())
        assert received == []

    def test_unsubscribe_unknown_handler_is_harmless(self):
        AssistantEventBus().unsubscribe(EventType.TURN_APPENDED, print)

    def test_event_payload(self):
        event = NavigationRequestedEvent("s1", 2.0, "/watch/5", "5", "Heat")
        assert event.data == {"path": "/watch/5", "content_id": "5", "title": "Heat"}
        assert event.session_id == "s1"

    def test_event_logger_accepts_events(self):
        EventLogger().handle_event(_turn())


class TestSessionMetrics:
    def test_counts(self):
        bus = AssistantEventBus()
        metrics = attach_default_handlers(bus)

        bus.emit(_turn("user"))
        bus.emit(_turn("assistant"))
        bus.emit(IntentResolvedEvent("s1", 1.0, "search", "find heat"))
        bus.emit(IntentResolvedEvent("s1", 1.0, "search", "find dune"))
        bus.emit(NavigationRequestedEvent("s1", 2.0, "/watch/5", "5", "Heat"))
        bus.emit(ErrorOccurredEvent("s1", 3.0, "ChatBackendUnavailable", "down", "chat_backend"))

        snapshot = metrics.get_metrics()
        assert snapshot["turns"] == 2
        assert snapshot["navigations"] == 1
        assert snapshot["errors_occurred"] == 1
        assert snapshot["intents"] == {"search": 2}

    def test_reset(self):
        metrics = SessionMetrics()
        metrics.handle_event(_turn())
        metrics.reset()
        assert metrics.get_metrics()["turns"] == 0
        assert metrics.get_metrics()["intents"] == {}
