"""
Render targets for the avatar face.

The renderer itself lives outside this package; it reads the morph-target
influences written here.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from ...config import SILENCE_VISEME

logger = logging.getLogger("avatar_rig")

VISEME_PREFIX = "viseme_"
VISEME_MESHES = ("Wolf3D_Head", "Wolf3D_Teeth")
EXPRESSION_MESHES = ("Wolf3D_Head", "Wolf3D_Teeth", "EyeLeft", "EyeRight")
VISEME_NAMES = (
    "viseme_sil", "viseme_PP", "viseme_FF", "viseme_TH", "viseme_DD",
    "viseme_kk", "viseme_CH", "viseme_SS", "viseme_nn", "viseme_RR",
    "viseme_aa", "viseme_E", "viseme_I", "viseme_O", "viseme_U",
)

FACIAL_EXPRESSIONS: Dict[str, Dict[str, float]] = {
    "default": {},
    "smile": {
        "browInnerUp": 0.17,
        "eyeSquintLeft": 0.4,
        "eyeSquintRight": 0.44,
        "noseSneerLeft": 0.17,
        "noseSneerRight": 0.14,
        "mouthPressLeft": 0.61,
        "mouthPressRight": 0.41,
    },
    "sad": {
        "mouthFrownLeft": 1.0,
        "mouthFrownRight": 1.0,
        "mouthShrugLower": 0.78,
        "browInnerUp": 0.45,
        "eyeSquintLeft": 0.72,
        "eyeSquintRight": 0.75,
        "eyeLookDownLeft": 0.5,
        "eyeLookDownRight": 0.5,
        "jawForward": 1.0,
    },
    "surprised": {
        "eyeWideLeft": 0.5,
        "eyeWideRight": 0.5,
        "jawOpen": 0.35,
        "mouthFunnel": 1.0,
        "browInnerUp": 1.0,
    },
    "angry": {
        "browDownLeft": 1.0,
        "browDownRight": 1.0,
        "eyeSquintLeft": 1.0,
        "eyeSquintRight": 1.0,
        "jawForward": 1.0,
        "jawLeft": 1.0,
        "mouthShrugLower": 1.0,
        "noseSneerLeft": 1.0,
        "noseSneerRight": 0.42,
        "eyeLookDownLeft": 0.16,
        "eyeLookDownRight": 0.16,
        "mouthRollLower": 0.32,
        "mouthRollUpper": 0.36,
    },
}


class RenderTarget(ABC):
    """Anything that can show a mouth shape."""

    @abstractmethod
    def apply_viseme(self, viseme: str) -> None:
        """Show `viseme` (e.g. "viseme_aa"); "viseme_sil" closes the mouth."""


class MorphTargetRig(RenderTarget):
    """Morph-target influences per mesh, in the layout the avatar renderer reads."""

    def __init__(self, morph_targets: Dict[str, Iterable[str]]):
        self.influences: Dict[str, Dict[str, float]] = {
            mesh: {name: 0.0 for name in names} for mesh, names in morph_targets.items()
        }
        self.current_viseme = SILENCE_VISEME
        self.current_expression = "default"

    @classmethod
    def for_avatar(cls) -> "MorphTargetRig":
        """Rig with the standard head, teeth and eye meshes of the avatar model."""
        expression_morphs = sorted({name for preset in FACIAL_EXPRESSIONS.values() for name in preset})
        layout: Dict[str, List[str]] = {mesh: list(expression_morphs) for mesh in EXPRESSION_MESHES}
        for mesh in VISEME_MESHES:
            layout[mesh] = layout[mesh] + list(VISEME_NAMES)
        return cls(layout)

    def influence(self, mesh: str, morph: str) -> Optional[float]:
        return self.influences.get(mesh, {}).get(morph)

    def apply_viseme(self, viseme: str) -> None:
        for mesh in VISEME_MESHES:
            slots = self.influences.get(mesh)
            if slots is None:
                continue
            for name in slots:
                if name.startswith(VISEME_PREFIX):
                    slots[name] = 0.0
            if viseme in slots:
                slots[viseme] = 1.0
        self.current_viseme = viseme

    def apply_expression(self, expression: str) -> None:
        """Reset facial (non-viseme) influences and apply a named expression preset."""
        if expression not in FACIAL_EXPRESSIONS:
            raise ValueError(f"Unknown facial expression: {expression}")

        values = FACIAL_EXPRESSIONS[expression]
        for mesh in EXPRESSION_MESHES:
            slots = self.influences.get(mesh)
            if slots is None:
                continue
            for name in slots:
                if not name.startswith(VISEME_PREFIX):
                    slots[name] = 0.0
            for name, value in values.items():
                if name in slots:
                    slots[name] = value
        self.current_expression = expression
        logger.debug(f"Applied facial expression: {expression}")
