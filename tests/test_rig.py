"""
tests/test_rig.py — avatar morph-target rig

Covers:
  - Visemes are exclusive on the head and teeth meshes
  - Facial expression presets reach every face mesh and reset between presets
  - Expressions leave viseme slots alone
  - Unknown expressions are rejected
"""

import pytest

from cinevoice.config import SILENCE_VISEME
from cinevoice.infrastructure.avatar import FACIAL_EXPRESSIONS, MorphTargetRig


@pytest.fixture
def rig():
    return MorphTargetRig.for_avatar()


class TestVisemes:
    def test_starts_silent(self, rig):
        assert rig.current_viseme == SILENCE_VISEME
        assert rig.influence("Wolf3D_Head", "viseme_aa") == 0.0

    def test_apply_viseme_is_exclusive(self, rig):
        rig.apply_viseme("viseme_aa")
        rig.apply_viseme("viseme_PP")
        for mesh in ("Wolf3D_Head", "Wolf3D_Teeth"):
            assert rig.influence(mesh, "viseme_PP") == 1.0
            assert rig.influence(mesh, "viseme_aa") == 0.0
        assert rig.current_viseme == "viseme_PP"

    def test_eyes_have_no_visemes(self, rig):
        rig.apply_viseme("viseme_O")
        assert rig.influence("EyeLeft", "viseme_O") is None

    def test_custom_layout(self):
        rig = MorphTargetRig({"Wolf3D_Head": ["viseme_sil", "viseme_E"]})
        rig.apply_viseme("viseme_E")
        assert rig.influences == {"Wolf3D_Head": {"viseme_sil": 0.0, "viseme_E": 1.0}}


class TestExpressions:
    def test_smile_sets_preset_values(self, rig):
        rig.apply_expression("smile")
        assert rig.influence("Wolf3D_Head", "browInnerUp") == pytest.approx(0.17)
        assert rig.influence("EyeRight", "eyeSquintRight") == pytest.approx(0.44)
        assert rig.current_expression == "smile"

    def test_switching_resets_previous_preset(self, rig):
        rig.apply_expression("angry")
        rig.apply_expression("default")
        for name in FACIAL_EXPRESSIONS["angry"]:
            assert rig.influence("Wolf3D_Head", name) == 0.0

    def test_expression_keeps_mouth_shape(self, rig):
        rig.apply_viseme("viseme_aa")
        rig.apply_expression("sad")
        assert rig.influence("Wolf3D_Head", "viseme_aa") == 1.0

    def test_unknown_expression_rejected(self, rig):
        with pytest.raises(ValueError):
            rig.apply_expression("confused")
        assert rig.current_expression == "default"
