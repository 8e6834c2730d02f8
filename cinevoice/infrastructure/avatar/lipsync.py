"""
Text-driven lip sync.

Every character of an utterance gets the same slice of time and a mouth
shape from a static table. This approximates speech rhythm only; it is not
phoneme-accurate.
"""
import time
import bisect
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from ...config import (
    LIPSYNC_CHAR_DURATION, LIPSYNC_FRAME_RATE, LIPSYNC_HOLD_SECONDS, SILENCE_VISEME
)
from ..audio.speech.playback import Playback
from .rig import RenderTarget

logger = logging.getLogger("lipsync")

VISEME_MAP: Dict[str, str] = {
    "A": "viseme_aa",
    "E": "viseme_E",
    "I": "viseme_I",
    "O": "viseme_O",
    "U": "viseme_U",
    "Y": "viseme_I",
    "W": "viseme_U",
    "B": "viseme_PP",
    "M": "viseme_PP",
    "P": "viseme_PP",
    "F": "viseme_FF",
    "V": "viseme_FF",
    "H": "viseme_TH",
    "D": "viseme_DD",
    "T": "viseme_DD",
    "N": "viseme_nn",
    "L": "viseme_nn",
    "C": "viseme_kk",
    "G": "viseme_kk",
    "K": "viseme_kk",
    "Q": "viseme_kk",
    "X": "viseme_kk",
    "J": "viseme_CH",
    "S": "viseme_SS",
    "Z": "viseme_SS",
    "R": "viseme_RR",
}


def viseme_for(char: str) -> str:
    return VISEME_MAP.get(char.upper(), SILENCE_VISEME)


@dataclass(frozen=True)
class VisemeCue:
    viseme: str
    start: float
    end: float


@dataclass(frozen=True)
class LipsyncTrack:
    """Ordered, contiguous viseme cues for one utterance."""
    cues: Tuple[VisemeCue, ...] = ()
    text: str = ""

    def __len__(self) -> int:
        return len(self.cues)

    @property
    def duration(self) -> float:
        return self.cues[-1].end if self.cues else 0.0

    def viseme_at(self, t: float) -> str:
        """Viseme active at track time `t`; silence outside the track."""
        if not self.cues or t < 0 or t >= self.duration:
            return SILENCE_VISEME
        starts = [cue.start for cue in self.cues]
        return self.cues[bisect.bisect_right(starts, t) - 1].viseme

    def fitted(self, audio_duration: float) -> "LipsyncTrack":
        """Copy compressed to fit inside `audio_duration` (unchanged if it already fits)."""
        if self.duration <= audio_duration or not self.cues:
            return self
        if audio_duration <= 0:
            return LipsyncTrack((), self.text)
        scale = audio_duration / self.duration
        cues = tuple(
            VisemeCue(cue.viseme, min(cue.start * scale, audio_duration), min(cue.end * scale, audio_duration))
            for cue in self.cues
        )
        return LipsyncTrack(cues, self.text)


def generate(text: str, char_duration: float = LIPSYNC_CHAR_DURATION) -> LipsyncTrack:
    """Deterministic track: one fixed-width cue per character."""
    cues = tuple(
        VisemeCue(viseme_for(char), i * char_duration, (i + 1) * char_duration)
        for i, char in enumerate(text)
    )
    return LipsyncTrack(cues, text)


class LipSyncScheduler:
    """Applies a LipsyncTrack to a render target while audio plays."""

    def __init__(self,
                 char_duration: float = LIPSYNC_CHAR_DURATION,
                 hold_seconds: float = LIPSYNC_HOLD_SECONDS,
                 frame_rate: int = LIPSYNC_FRAME_RATE,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.char_duration = char_duration
        self.hold_seconds = hold_seconds
        self.frame_rate = frame_rate
        self._clock = clock
        self._sleep = sleep

        self.current_viseme = SILENCE_VISEME
        self._last_viseme: Optional[str] = None
        self._hold_until: Optional[float] = None

    def generate(self, text: str) -> LipsyncTrack:
        return generate(text, self.char_duration)

    def _apply(self, target: RenderTarget, viseme: str) -> None:
        if viseme == self.current_viseme:
            return
        target.apply_viseme(viseme)
        self.current_viseme = viseme

    def reset(self, target: RenderTarget) -> None:
        """Return the mouth to silence and forget the last applied shape."""
        self._last_viseme = None
        self._hold_until = None
        target.apply_viseme(SILENCE_VISEME)
        self.current_viseme = SILENCE_VISEME

    def step(self, track: Optional[LipsyncTrack], position: float, duration: float,
             now: float, target: RenderTarget) -> str:
        """
        One animation frame.

        Picks the slice for the current playback progress and applies its
        viseme only when it differs from the last one, then falls back to
        silence once the hold time has passed.
        """
        if track is None or not track.cues or duration <= 0:
            self._apply(target, SILENCE_VISEME)
            return self.current_viseme

        progress = position / duration
        if progress >= 1.0:
            self._hold_until = None
            self._apply(target, SILENCE_VISEME)
            return self.current_viseme

        viseme = track.viseme_at(max(progress, 0.0) * track.duration)
        if viseme != self._last_viseme:
            self._apply(target, viseme)
            self._last_viseme = viseme
            self._hold_until = now + self.hold_seconds
        elif self._hold_until is not None and now >= self._hold_until:
            self._apply(target, SILENCE_VISEME)
            self._hold_until = None

        return self.current_viseme

    def drive(self, track: Optional[LipsyncTrack], playback: Optional[Playback], target: RenderTarget) -> None:
        """Animate `target` frame by frame until `playback` stops, then reset to silence."""
        self.reset(target)
        if playback is None or track is None or not track.cues:
            return

        frame_interval = 1.0 / self.frame_rate
        try:
            while playback.is_playing:
                self.step(track, playback.position, playback.duration, self._clock(), target)
                self._sleep(frame_interval)
        finally:
            self.reset(target)
