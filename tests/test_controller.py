"""
tests/test_controller.py — conversation controller

Covers:
  - Empty input and offline are rejected without side effects
  - Intent routing: greeting, search, watch confirmation, chat
  - Search falls back from movies to TV, pending result and navigation signal
  - Chat backend failure yields the apology reply
  - Synthesis failure still appends the text-only turn
  - Transcripts are consumed once; busy submits are ignored
  - Playback queue holds only turns with audio and dequeues on playback end
"""

import threading

import pytest

from cinevoice.conversation import EventType, Intent
from cinevoice.conversation.intents import ERROR_REPLY, NOT_FOUND_REPLY, extract_search_term, resolve_intent
from cinevoice.conversation.testing import (
    MockChatClient, MockContentClient, MockSpeechTransport, RecordingSubscriber, create_mock_controller
)
from cinevoice.exceptions import ChatBackendUnavailable, ContentApiError, EmptyInput, Offline, SynthesisUnavailable
from cinevoice.infrastructure.data import ASSISTANT, USER, Transcript

INCEPTION = {"id": 27205, "title": "Inception"}
BREAKING_BAD = {"id": 1396, "name": "Breaking Bad"}


@pytest.fixture
def content():
    return MockContentClient(
        movies={"inception": [INCEPTION]},
        shows={"breaking bad": [BREAKING_BAD]},
    )


# ── Input validation ──────────────────────────────────────────────────────────

class TestRejectedInput:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_input(self, text):
        controller = create_mock_controller()
        with pytest.raises(EmptyInput):
            controller.submit(text)
        assert len(controller.history) == 0
        assert len(controller.queue) == 0

    def test_offline(self):
        content = MockContentClient(online=False)
        chat = MockChatClient()
        controller = create_mock_controller(content=content, chat=chat)
        with pytest.raises(Offline):
            controller.submit("hello")
        assert len(controller.history) == 0
        assert chat.sent == []


# ── Intent resolution ─────────────────────────────────────────────────────────

class TestIntents:
    @pytest.mark.parametrize("text", ["Hello", "hi there", "Hey!", "Good morning", "good EVENING friend"])
    def test_greetings(self, text):
        assert resolve_intent(text) == Intent.GREETING

    @pytest.mark.parametrize("text", ["This is history", "Which one?", "they said"])
    def test_greetings_are_whole_words(self, text):
        assert resolve_intent(text) == Intent.CHAT

    def test_search_keywords(self):
        assert resolve_intent("Search for Inception") == Intent.SEARCH
        assert resolve_intent("can you FIND dune") == Intent.SEARCH
        assert resolve_intent("searching for dune") == Intent.SEARCH
        assert resolve_intent("findme inception") == Intent.SEARCH
        assert resolve_intent("finding nemo is good") == Intent.SEARCH
        assert resolve_intent("what should I watch") == Intent.CHAT

    def test_affirmative_needs_pending_result(self):
        assert resolve_intent("yes please", has_pending_result=True) == Intent.CONFIRM_WATCH
        assert resolve_intent("yes please", has_pending_result=False) == Intent.CHAT
        assert resolve_intent("OK", has_pending_result=True) == Intent.CONFIRM_WATCH
        assert resolve_intent("yess", has_pending_result=True) == Intent.CONFIRM_WATCH
        assert resolve_intent("Yes!!", has_pending_result=True) == Intent.CONFIRM_WATCH
        assert resolve_intent("okay then", has_pending_result=True) == Intent.CONFIRM_WATCH
        assert resolve_intent("a good book", has_pending_result=True) == Intent.CHAT

    def test_greeting_wins_over_search(self):
        assert resolve_intent("hello, find inception") == Intent.GREETING

    @pytest.mark.parametrize("text,term", [
        ("search inception", "inception"),
        ("Search for Inception", "Inception"),
        ("find me the matrix!", "me the matrix"),
        ("search for", ""),
        ("searching for dune", "dune"),
        ("findme inception", "inception"),
        ("Search for the Godfather", "the Godfather"),
    ])
    def test_extract_search_term(self, text, term):
        assert extract_search_term(text) == term


# ── Search and navigation ─────────────────────────────────────────────────────

class TestSearchFlow:
    def test_movie_hit_sets_pending_result(self, content):
        controller = create_mock_controller(content=content)
        result = controller.submit("search inception")

        assert result.intent == Intent.SEARCH
        assert "Inception" in result.reply_text
        assert result.reply_text == 'I found "Inception". Would you like to watch it?'
        assert result.assistant_turns[0].search_result.id == 27205
        assert controller.pending_result.display_title == "Inception"
        assert content.searches == [("movie", "inception")]

    def test_yes_navigates_to_watch_page(self, content):
        controller = create_mock_controller(content=content)
        controller.submit("search inception")
        result = controller.submit("yes")

        assert result.intent == Intent.CONFIRM_WATCH
        assert result.navigation.path == "/watch/27205"
        assert result.navigation.content_id == "27205"
        assert result.reply_text == "Great! Taking you to watch Inception."
        assert controller.pending_result is None

    def test_falls_back_to_tv(self, content):
        controller = create_mock_controller(content=content)
        result = controller.submit("find breaking bad")

        assert 'I found "Breaking Bad"' in result.reply_text
        assert content.searches == [("movie", "breaking bad"), ("tv", "breaking bad")]
        assert controller.pending_result.media_type == "tv"

        navigation = controller.submit("sure").navigation
        assert navigation.path == "/watch/1396"
        assert navigation.media_type == "tv"

    def test_keyword_inside_a_word(self, content):
        controller = create_mock_controller(content=content)
        result = controller.submit("searching for inception")
        assert result.intent == Intent.SEARCH
        assert content.searches == [("movie", "inception")]
        assert controller.submit("yess").navigation.path == "/watch/27205"

    def test_nothing_found(self, content):
        controller = create_mock_controller(content=content)
        result = controller.submit("search xyzzy")
        assert result.reply_text == NOT_FOUND_REPLY
        assert controller.pending_result is None

    def test_missing_term_asks_for_title(self, content):
        controller = create_mock_controller(content=content)
        result = controller.submit("search for")
        assert "search for" in result.reply_text
        assert content.searches == []

    def test_other_intent_clears_pending_result(self, content):
        chat = MockChatClient(["Sure, what else?"])
        controller = create_mock_controller(content=content, chat=chat)
        controller.submit("search inception")
        controller.submit("tell me something else")
        assert controller.pending_result is None

        result = controller.submit("yes")
        assert result.intent == Intent.CHAT
        assert result.navigation is None

    def test_content_api_failure(self):
        controller = create_mock_controller(content=MockContentClient(fail=True))
        result = controller.submit("search inception")
        assert result.reply_text == ERROR_REPLY
        assert isinstance(result.errors[0], ContentApiError)


# ── Chat fallback ─────────────────────────────────────────────────────────────

class TestChat:
    def test_relays_every_message(self):
        chat = MockChatClient(["First answer.", {"text": "Second answer.", "facialExpression": "smile"}])
        controller = create_mock_controller(chat=chat)
        result = controller.submit("what's good tonight")

        assert [t.text for t in result.assistant_turns] == ["First answer.", "Second answer."]
        assert result.assistant_turns[1].expression == "smile"
        assert chat.sent == ["what's good tonight"]

    def test_unknown_expression_is_dropped(self):
        chat = MockChatClient([{"text": "Hmm.", "facialExpression": "crazy"}])
        result = create_mock_controller(chat=chat).submit("what's good")
        assert result.assistant_turns[0].expression is None

    def test_backend_failure_apologises(self):
        controller = create_mock_controller(chat=MockChatClient(fail=True))
        result = controller.submit("recommend something")

        assert result.reply_text == "I'm sorry, I encountered an error. Please try again."
        assert isinstance(result.errors[0], ChatBackendUnavailable)
        assert controller.history.last(ASSISTANT).text == ERROR_REPLY


# ── History, synthesis and playback ───────────────────────────────────────────

class TestTurns:
    def test_history_order(self, content):
        controller = create_mock_controller(content=content)
        controller.submit("hello")
        controller.submit("search inception")

        roles = [t.role for t in controller.history]
        assert roles == [USER, ASSISTANT, USER, ASSISTANT]
        assert controller.history.turns[2].text == "search inception"

    def test_synthesis_failure_keeps_text_turn(self, content):
        transport = MockSpeechTransport(failures=None)
        controller = create_mock_controller(content=content, transport=transport)
        result = controller.submit("search inception")

        assert len(transport.calls) == 3
        turn = result.assistant_turns[0]
        assert "Inception" in turn.text
        assert turn.audio is None
        assert turn.lipsync is None
        assert controller.history.last() == turn
        assert len(controller.queue) == 0
        assert isinstance(result.errors[0], SynthesisUnavailable)

    def test_spoken_turn_is_queued_with_fitted_lipsync(self, content):
        transport = MockSpeechTransport(duration=0.5)
        controller = create_mock_controller(content=content, transport=transport)
        result = controller.submit("search inception")

        turn = result.assistant_turns[0]
        assert turn.has_audio
        assert turn.lipsync.duration <= turn.audio.duration + 1e-9
        assert controller.current_message == turn

        assert controller.on_message_played() == turn
        assert controller.current_message is None
        assert controller.on_message_played() is None

    def test_queue_plays_in_order(self):
        chat = MockChatClient(["one", "two"])
        controller = create_mock_controller(chat=chat, transport=MockSpeechTransport())
        controller.submit("talk to me")
        assert controller.on_message_played().text == "one"
        assert controller.on_message_played().text == "two"

    def test_clear(self, content):
        controller = create_mock_controller(content=content, transport=MockSpeechTransport())
        controller.submit("search inception")
        controller.clear()
        assert len(controller.history) == 0
        assert len(controller.queue) == 0
        assert controller.pending_result is None


# ── Once-only and single flight ───────────────────────────────────────────────

class TestDispatchGuards:
    def test_transcript_consumed_once(self):
        chat = MockChatClient(["ok"])
        controller = create_mock_controller(chat=chat)
        transcript = Transcript("what should I watch")

        assert controller.submit_transcript(transcript) is not None
        assert controller.submit_transcript(transcript) is None
        assert chat.sent == ["what should I watch"]

    def test_distinct_transcripts_with_same_text(self):
        chat = MockChatClient(["ok"])
        controller = create_mock_controller(chat=chat)
        controller.submit_transcript(Transcript("again"))
        controller.submit_transcript(Transcript("again"))
        assert chat.sent == ["again", "again"]

    def test_transcript_rejected_offline_can_be_resubmitted(self):
        content = MockContentClient(online=False)
        chat = MockChatClient(["ok"])
        controller = create_mock_controller(content=content, chat=chat)
        transcript = Transcript("what should I watch")

        with pytest.raises(Offline):
            controller.submit_transcript(transcript)
        assert chat.sent == []

        content.online = True
        assert controller.submit_transcript(transcript) is not None
        assert chat.sent == ["what should I watch"]
        assert controller.submit_transcript(transcript) is None

    def test_empty_transcript_is_not_consumed(self):
        controller = create_mock_controller()
        transcript = Transcript("   ")
        for _ in range(2):
            with pytest.raises(EmptyInput):
                controller.submit_transcript(transcript)

    def test_submit_while_in_flight_is_ignored(self):
        entered = threading.Event()
        release = threading.Event()

        class SlowChat(MockChatClient):
            def send(self, message):
                entered.set()
                release.wait(5)
                return super().send(message)

        chat = SlowChat(["done"])
        controller = create_mock_controller(chat=chat)
        worker = threading.Thread(target=controller.submit, args=("first message",))
        worker.start()
        try:
            assert entered.wait(5)
            assert controller.loading
            assert controller.submit("second message") is None
        finally:
            release.set()
            worker.join(5)

        assert chat.sent == ["first message"]
        assert [t.text for t in controller.history if t.role == USER] == ["first message"]
        assert not controller.loading


# ── Events ────────────────────────────────────────────────────────────────────

class TestControllerEvents:
    def test_navigation_and_turn_events(self, content):
        controller = create_mock_controller(content=content)
        recorder = RecordingSubscriber(controller.event_bus)
        controller.submit("search inception")
        controller.submit("yeah")

        assert len(recorder.of_type(EventType.TURN_APPENDED)) == 4
        intents = [e.data["intent"] for e in recorder.of_type(EventType.INTENT_RESOLVED)]
        assert intents == ["search", "confirm_watch"]
        navigation = recorder.of_type(EventType.NAVIGATION_REQUESTED)
        assert navigation[0].data["path"] == "/watch/27205"

    def test_synthesis_failed_event(self):
        controller = create_mock_controller(transport=MockSpeechTransport(failures=None))
        recorder = RecordingSubscriber(controller.event_bus)
        controller.submit("hello")
        failed = recorder.of_type(EventType.SYNTHESIS_FAILED)
        assert failed[0].data["attempts"] == 3
