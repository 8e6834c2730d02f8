"""
Voice assistant orchestrator: wires devices, capture, conversation, playback
and the avatar face into one listen -> answer -> speak loop.
"""
import time
import logging
from typing import Iterable, List, Optional

from ..config import Config
from ..exceptions import (
    CaptureBusy, DeviceUnavailable, InputRejected, NoSpeechDetected, PermissionDenied,
    RecognitionFailed
)
from ..infrastructure.api import ChatBackendClient, ContentApiClient
from ..infrastructure.audio.processing import CaptureSession
from ..infrastructure.audio.hardware import AudioDevice, DeviceRegistry, PyAudioBackend
from ..infrastructure.audio.speech import (
    GoogleSpeechRecognizer, GoogleSpeechTransport, Playback, PyAudioPlayer,
    RestSpeechTransport, SpeechRecognizer, SpeechTransport, SynthesisClient, VoiceSettings
)
from ..infrastructure.avatar import LipSyncScheduler, MorphTargetRig, RenderTarget
from ..infrastructure.data import ConversationTurn
from ..utils import setup_logging
from .controller import ConversationController
from .events import (
    AssistantEventBus, CaptureErrorEvent, DeviceSelectedEvent, NoWorkingMicrophoneEvent,
    attach_default_handlers
)
from .models import SubmitResult

logger = logging.getLogger("orchestrator")


def build_transport(config: Config) -> SpeechTransport:
    if config.tts_provider == "google":
        return GoogleSpeechTransport(credentials_json=config.google_application_credentials)
    return RestSpeechTransport(config.tts_url, config.tts_api_key, timeout=config.http_timeout)


def build_voice(config: Config) -> VoiceSettings:
    return VoiceSettings(
        voice_id=config.tts_voice_id,
        model_id=config.tts_model_id,
        stability=config.tts_stability,
        similarity_boost=config.tts_similarity_boost,
        speaking_rate=config.tts_speaking_rate,
        language_code=config.language_code,
        google_voice=config.google_tts_voice,
    )


class VoiceAssistant:
    """
    Talking movie assistant.

    Every collaborator can be injected; anything left out is built from
    `config` with the real audio, speech and HTTP implementations.
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 registry: Optional[DeviceRegistry] = None,
                 recognizer: Optional[SpeechRecognizer] = None,
                 capture: Optional[CaptureSession] = None,
                 content_client: Optional[ContentApiClient] = None,
                 chat_client: Optional[ChatBackendClient] = None,
                 synthesis: Optional[SynthesisClient] = None,
                 player: Optional[Playback] = None,
                 rig: Optional[RenderTarget] = None,
                 lipsync: Optional[LipSyncScheduler] = None,
                 event_bus: Optional[AssistantEventBus] = None,
                 output=print):
        self.config = config or Config()
        self.output = output

        # Setup logging
        setup_logging(self.config.log_file, self.config.log_level)

        # Initialize event system
        self.event_bus = event_bus or AssistantEventBus()
        self.metrics = attach_default_handlers(self.event_bus)

        # Audio input
        self.registry = registry or DeviceRegistry(PyAudioBackend())
        self.registry.on_no_working_device(self._on_no_working_device)
        self.registry.on_devices_changed(self._on_devices_changed)
        if capture is None:
            recognizer = recognizer or GoogleSpeechRecognizer(
                language_code=self.config.language_code,
                credentials_json=self.config.google_application_credentials,
                listen_timeout=self.config.listen_timeout,
            )
            capture = CaptureSession(self.registry, recognizer)
        self.capture = capture

        # Speech output
        if synthesis is None and self.config.enable_tts:
            synthesis = SynthesisClient(build_transport(self.config), build_voice(self.config))
        self.synthesis = synthesis
        if player is None and self.synthesis is not None:
            player = PyAudioPlayer()
        self.player = player

        # Avatar
        self.rig = rig or MorphTargetRig.for_avatar()
        self.lipsync = lipsync or LipSyncScheduler()

        # Conversation
        content_client = content_client or ContentApiClient(self.config.content_api_url, self.config.http_timeout)
        chat_client = chat_client or ChatBackendClient(self.config.chat_backend_url, self.config.http_timeout)
        self.controller = ConversationController(
            content_client,
            chat_client,
            synthesis=self.synthesis,
            lipsync=self.lipsync,
            event_bus=self.event_bus,
            is_online=content_client.ping,
        )

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def run(self, max_turns: Optional[int] = None) -> List[SubmitResult]:
        """
        Listen and answer until `max_turns` utterances were attempted.

        No-speech and recognition failures are reported and the loop goes on.
        A lost microphone is replaced before the next turn; the loop ends when
        access is refused or no candidate verifies.
        """
        max_turns = max_turns or self.config.max_turns
        results: List[SubmitResult] = []

        self.output(f"\n🎙️  CineVoice listening - up to {max_turns} turns")
        self.output(f"📝 Detailed logs: {self.config.log_file}")
        self.output("=" * 50)

        try:
            for turn_idx in range(max_turns):
                if not self._ensure_microphone():
                    break

                self.output("🎧 Listening...")
                try:
                    transcript = self.capture.start()
                except (PermissionDenied, CaptureBusy) as e:
                    self._report_capture_error(e)
                    self.output(f"❌ {e}")
                    break
                except DeviceUnavailable as e:
                    # The session already dropped the lost device; the next turn picks another
                    self._report_capture_error(e)
                    self.output(f"🎤 Microphone lost ({e}), looking for another one...")
                    continue
                except (NoSpeechDetected, RecognitionFailed) as e:
                    self._report_capture_error(e)
                    self.output("🤔 Sorry, I didn't catch that.")
                    continue

                if transcript is None:
                    continue

                self.output(f"💬 \"{transcript.text}\"")
                try:
                    result = self.controller.submit_transcript(transcript)
                except InputRejected as e:
                    logger.warning(f"Turn {turn_idx} rejected: {e}")
                    self.output(f"⚠️  {e}")
                    continue
                if result is not None:
                    results.append(result)
                    self._present(result)
        finally:
            self.capture.stop()

        self._log_summary()
        return results

    def run_text(self, lines: Iterable[str]) -> List[SubmitResult]:
        """Drive the same pipeline from typed messages."""
        results: List[SubmitResult] = []
        for line in lines:
            try:
                result = self.controller.submit(line)
            except InputRejected as e:
                logger.info(f"Message rejected: {e}")
                self.output(f"⚠️  {e}")
                continue
            if result is not None:
                results.append(result)
                self._present(result)

        self._log_summary()
        return results

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _present(self, result: SubmitResult) -> None:
        for turn in result.assistant_turns:
            self.output(f"🤖 {turn.text}")
        if result.navigation is not None:
            self.output(f"🎬 Opening {result.navigation.title}: {result.navigation.path}")
        self.play_pending()

    def play_pending(self) -> None:
        """Play every queued assistant turn in order, animating the face."""
        while self.controller.current_message is not None:
            turn = self.controller.current_message
            try:
                self._play(turn)
            finally:
                self.controller.on_message_played()

    def _play(self, turn: ConversationTurn) -> None:
        if turn.expression and isinstance(self.rig, MorphTargetRig):
            self.rig.apply_expression(turn.expression)

        if self.player is not None:
            self.player.play(turn.audio)
            self.lipsync.drive(turn.lipsync, self.player, self.rig)

        if isinstance(self.rig, MorphTargetRig):
            self.rig.apply_expression("default")

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def list_devices(self) -> List[AudioDevice]:
        self.registry.refresh()
        return self.registry.list_input_devices() + self.registry.list_output_devices()

    def select_microphone(self) -> Optional[AudioDevice]:
        device = self.registry.select_best()
        if device is not None:
            self.event_bus.emit(DeviceSelectedEvent(self.controller.session_id, time.time(),
                                                    device.id, device.label))
        return device

    def _ensure_microphone(self) -> bool:
        """Pick up plugged or unplugged devices and reselect when the microphone is gone."""
        try:
            self.registry.poll_changes()
            if self.registry.selected is None:
                return self.select_microphone() is not None
        except DeviceUnavailable as e:
            self._report_capture_error(e)
            self.output(f"❌ {e}")
            return False
        return True

    def _on_no_working_device(self) -> None:
        candidates = len(self.registry.list_input_devices())
        self.output("🎤 No working microphone found. Check that one is connected and unmuted.")
        self.event_bus.emit(NoWorkingMicrophoneEvent(self.controller.session_id, time.time(), candidates))

    def _on_devices_changed(self, devices: List[AudioDevice]) -> None:
        logger.info(f"Input devices changed: {[d.display_name for d in devices]}")

    def _report_capture_error(self, error: Exception) -> None:
        logger.warning(f"Capture error: {type(error).__name__}: {error}")
        self.event_bus.emit(CaptureErrorEvent(self.controller.session_id, time.time(),
                                              type(error).__name__, str(error)))

    def _log_summary(self) -> None:
        logger.info(f"Session metrics: {self.metrics.get_metrics()}")

    def close(self) -> None:
        self.capture.stop()
        if self.player is not None:
            self.player.stop()
