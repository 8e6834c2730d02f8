"""Avatar face animation: lip sync and morph-target render targets."""

from .rig import FACIAL_EXPRESSIONS, MorphTargetRig, RenderTarget
from .lipsync import LipSyncScheduler, LipsyncTrack, VisemeCue, VISEME_MAP, generate

__all__ = [
    "FACIAL_EXPRESSIONS", "MorphTargetRig", "RenderTarget",
    "LipSyncScheduler", "LipsyncTrack", "VisemeCue", "VISEME_MAP", "generate"
]
