"""
Conversation controller: turns user text into assistant turns.

Each accepted message is appended to the history, routed by intent to a
canned reply, the content search API or the chat backend, and every
assistant message is synthesized and paired with a lip sync track before it
is queued for playback.
"""
import time
import uuid
import logging
import threading
from typing import Callable, List, Optional, Set, Tuple

from ..exceptions import ChatBackendUnavailable, ContentApiError, EmptyInput, Offline
from ..infrastructure.api import ChatBackendClient, ContentApiClient, ContentItem
from ..infrastructure.audio.speech import AudioHandle, SynthesisClient
from ..infrastructure.avatar import FACIAL_EXPRESSIONS, LipSyncScheduler, LipsyncTrack
from ..infrastructure.data import (
    ASSISTANT, USER, ConversationHistory, ConversationTurn, PendingMessageQueue, Transcript
)
from .events import (
    AssistantEvent, AssistantEventBus, ErrorOccurredEvent, IntentResolvedEvent,
    NavigationRequestedEvent, SynthesisFailedEvent, TurnAppendedEvent
)
from .intents import (
    ERROR_REPLY, FOUND_REPLY, GREETING_REPLY, MISSING_TERM_REPLY, NAVIGATION_REPLY,
    NOT_FOUND_REPLY, extract_search_term, resolve_intent
)
from .models import Intent, NavigationSignal, SubmitResult

logger = logging.getLogger("conversation_controller")

# (text, search_result, facial expression)
Reply = Tuple[str, Optional[ContentItem], Optional[str]]


class ConversationController:
    """Owns the conversation history, the playback queue and the pending search result."""

    def __init__(self,
                 content_client: ContentApiClient,
                 chat_client: ChatBackendClient,
                 synthesis: Optional[SynthesisClient] = None,
                 lipsync: Optional[LipSyncScheduler] = None,
                 history: Optional[ConversationHistory] = None,
                 queue: Optional[PendingMessageQueue] = None,
                 event_bus: Optional[AssistantEventBus] = None,
                 is_online: Optional[Callable[[], bool]] = None,
                 session_id: Optional[str] = None,
                 clock: Callable[[], float] = time.time):
        self.content_client = content_client
        self.chat_client = chat_client
        self.synthesis = synthesis
        self.lipsync = lipsync or LipSyncScheduler()
        self.history = history or ConversationHistory()
        self.queue = queue or PendingMessageQueue()
        self.event_bus = event_bus or AssistantEventBus()
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._is_online = is_online or (lambda: True)
        self._clock = clock

        self.pending_result: Optional[ContentItem] = None
        self._consumed_transcripts: Set[str] = set()
        self._in_flight = threading.Lock()

    @property
    def loading(self) -> bool:
        return self._in_flight.locked()

    @property
    def current_message(self) -> Optional[ConversationTurn]:
        return self.queue.current

    def submit(self, text: str) -> Optional[SubmitResult]:
        """
        Handle one user message.

        Returns:
            SubmitResult, or None when another submit is still in flight

        Raises:
            EmptyInput: If the message is empty or whitespace
            Offline: If the connectivity check reports no network
        """
        self._check_input(text)
        return self._submit_checked(text)

    def submit_transcript(self, transcript: Transcript) -> Optional[SubmitResult]:
        """
        Submit a recognised transcript; a transcript already seen is ignored.

        A transcript rejected as empty or offline is not consumed and may be
        submitted again.
        """
        if transcript.id in self._consumed_transcripts:
            logger.debug(f"Transcript {transcript.id} already consumed")
            return None
        self._check_input(transcript.text)
        self._consumed_transcripts.add(transcript.id)
        return self._submit_checked(transcript.text)

    def _check_input(self, text: str) -> None:
        if text is None or not text.strip():
            raise EmptyInput("Message is empty")
        if not self._is_online():
            raise Offline("Cannot send messages while offline")

    def _submit_checked(self, text: str) -> Optional[SubmitResult]:
        if not self._in_flight.acquire(blocking=False):
            logger.warning(f"Ignoring message while another is in flight: {text!r}")
            return None
        try:
            return self._dispatch(text.strip())
        finally:
            self._in_flight.release()

    def on_message_played(self) -> Optional[ConversationTurn]:
        """Playback of the current head finished; drop it from the queue."""
        played = self.queue.dequeue()
        if played is not None:
            logger.debug(f"Finished playing: {played.text[:50]!r}")
        return played

    def clear(self) -> None:
        """User-initiated reset of the conversation."""
        self.history.clear()
        self.queue.clear()
        self.pending_result = None
        logger.info("Conversation cleared")

    def _dispatch(self, text: str) -> SubmitResult:
        user_turn = ConversationTurn(role=USER, text=text)
        self._append(user_turn)

        intent = resolve_intent(text, has_pending_result=self.pending_result is not None)
        logger.info(f"Intent for {text!r}: {intent.value}")
        self._emit(IntentResolvedEvent(self.session_id, self._clock(), intent.value, text))

        result = SubmitResult(user_turn=user_turn, intent=intent)
        if intent == Intent.CONFIRM_WATCH:
            replies = self._confirm_watch(result)
        else:
            self.pending_result = None
            if intent == Intent.GREETING:
                replies = [(GREETING_REPLY, None, "smile")]
            elif intent == Intent.SEARCH:
                replies = self._search(text, result)
            else:
                replies = self._chat(text, result)

        for reply_text, search_result, expression in replies:
            result.assistant_turns.append(self._speak(reply_text, search_result, expression, result))
        return result

    def _search(self, text: str, result: SubmitResult) -> List[Reply]:
        term = extract_search_term(text)
        if not term:
            return [(MISSING_TERM_REPLY, None, None)]

        try:
            item = self.find_content(term)
        except ContentApiError as e:
            logger.error(f"Content search failed for {term!r}: {e}")
            self._record_error(result, e, "content_api")
            return [(ERROR_REPLY, None, "sad")]

        if item is None:
            return [(NOT_FOUND_REPLY, None, None)]

        self.pending_result = item
        return [(FOUND_REPLY.format(title=item.display_title), item, "smile")]

    def find_content(self, term: str) -> Optional[ContentItem]:
        """First movie hit, else first TV hit, else None."""
        movies = self.content_client.search_movies(term)
        if movies:
            return movies[0]
        shows = self.content_client.search_tv(term)
        return shows[0] if shows else None

    def _confirm_watch(self, result: SubmitResult) -> List[Reply]:
        item = self.pending_result
        self.pending_result = None

        signal = NavigationSignal(
            path=item.watch_path,
            content_id=str(item.id),
            media_type=item.media_type,
            title=item.display_title,
        )
        result.navigation = signal
        logger.info(f"Navigating to {signal.path} ({signal.title})")
        self._emit(NavigationRequestedEvent(self.session_id, self._clock(), signal.path,
                                            signal.content_id, signal.title))
        return [(NAVIGATION_REPLY.format(title=item.display_title), None, "smile")]

    def _chat(self, text: str, result: SubmitResult) -> List[Reply]:
        try:
            messages = self.chat_client.send(text)
        except ChatBackendUnavailable as e:
            logger.error(f"Chat backend unavailable: {e}")
            self._record_error(result, e, "chat_backend")
            return [(ERROR_REPLY, None, "sad")]

        replies: List[Reply] = []
        for message in messages:
            expression = (message.model_extra or {}).get("facialExpression")
            if expression not in FACIAL_EXPRESSIONS:
                expression = None
            replies.append((message.text, None, expression))
        return replies

    def _speak(self, text: str, search_result: Optional[ContentItem],
               expression: Optional[str], result: SubmitResult) -> ConversationTurn:
        """Synthesize, pair with lip sync, append and queue one assistant message."""
        audio: Optional[AudioHandle] = None
        track: Optional[LipsyncTrack] = None

        if self.synthesis is not None:
            synthesis = self.synthesis.synthesize(text)
            if synthesis.ok:
                audio = synthesis.audio
            else:
                result.errors.append(synthesis.error)
                self._emit(SynthesisFailedEvent(self.session_id, self._clock(), text,
                                                synthesis.attempts, str(synthesis.error)))

        if audio is not None:
            track = self.lipsync.generate(text).fitted(audio.duration)

        turn = ConversationTurn(
            role=ASSISTANT,
            text=text,
            audio=audio,
            lipsync=track,
            search_result=search_result,
            expression=expression,
        )
        self._append(turn)
        if turn.has_audio:
            self.queue.enqueue(turn)
        return turn

    def _append(self, turn: ConversationTurn) -> None:
        self.history.append(turn)
        self._emit(TurnAppendedEvent(self.session_id, self._clock(), turn.role, turn.text, turn.has_audio))

    def _record_error(self, result: SubmitResult, error: Exception, component: str) -> None:
        result.errors.append(error)
        self._emit(ErrorOccurredEvent(self.session_id, self._clock(), type(error).__name__, str(error), component))

    def _emit(self, event: AssistantEvent) -> None:
        self.event_bus.emit(event)
