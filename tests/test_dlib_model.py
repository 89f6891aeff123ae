"""Tests for the face_recognition (dlib) provider with a stubbed library."""

import sys
import types

import numpy as np
import pytest

from face_auth.core.config import ModelSettings
from face_auth.core.exceptions import ModelLoadError, ModelNotLoadedError, ModelUnavailableError
from face_auth.ml.dlib_model import DlibFaceModel
from face_auth.ml.gate import ModelGate
from face_auth.pipelines.matching import is_match


def stub_library(locations, encoding=None):
    """Module-like stand-in recording how face_recognition was called."""
    calls = {}

    def face_locations(image, number_of_times_to_upsample=1, model="hog"):
        calls["locations"] = (image.shape, number_of_times_to_upsample, model)
        return list(locations)

    def face_encodings(image, known_face_locations=None, num_jitters=1):
        calls["encodings"] = (known_face_locations, num_jitters)
        if encoding is None:
            return []
        return [np.asarray(encoding, dtype=np.float64)]

    module = types.ModuleType("face_recognition")
    module.face_locations = face_locations
    module.face_encodings = face_encodings
    module.calls = calls
    return module


def loaded_model(monkeypatch, library, **overrides):
    monkeypatch.setitem(sys.modules, "face_recognition", library)
    model = DlibFaceModel(ModelSettings(**overrides))
    model.load_models()
    return model


class TestDlibFaceModel:

    def test_missing_library(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "face_recognition", None)
        model = DlibFaceModel(ModelSettings())

        with pytest.raises(ModelLoadError) as exc_info:
            model.load_models()
        assert "face-auth[dlib]" in exc_info.value.message
        assert not model.loaded

    @pytest.mark.asyncio
    async def test_missing_library_leaves_gate_unavailable(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "face_recognition", None)
        gate = ModelGate(DlibFaceModel(ModelSettings()))

        with pytest.raises(ModelUnavailableError):
            await gate.ensure_ready()
        assert not gate.is_ready

    def test_not_loaded(self):
        model = DlibFaceModel(ModelSettings())
        with pytest.raises(ModelNotLoadedError):
            model.detect_and_describe(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_no_faces(self, monkeypatch):
        model = loaded_model(monkeypatch, stub_library([]))
        assert model.loaded
        assert model.detect_and_describe(np.zeros((48, 64, 3), dtype=np.uint8)) is None

    def test_largest_face_described(self, monkeypatch):
        small = (10, 40, 30, 20)    # 20 x 20
        large = (50, 120, 110, 60)  # 60 x 60
        library = stub_library([small, large], encoding=np.full(128, 0.05))
        model = loaded_model(monkeypatch, library, dlib_num_jitters=3)

        description = model.detect_and_describe(np.zeros((200, 200, 3), dtype=np.uint8))

        assert description.face_count == 2
        assert description.bbox == (60.0, 50.0, 60.0, 60.0)
        assert description.descriptor.dtype == np.float64
        assert description.descriptor.shape == (128,)
        assert library.calls["encodings"] == ([large], 3)

    def test_settings_passed_to_detector(self, monkeypatch):
        library = stub_library([], encoding=None)
        model = loaded_model(monkeypatch, library, dlib_detection_model="cnn", dlib_upsample=2)

        model.detect_and_describe(np.zeros((20, 30, 3), dtype=np.uint8))

        assert library.calls["locations"] == ((20, 30, 3), 2, "cnn")

    def test_encoder_returns_nothing(self, monkeypatch):
        model = loaded_model(monkeypatch, stub_library([(0, 10, 10, 0)], encoding=None))
        assert model.detect_and_describe(np.zeros((20, 20, 3), dtype=np.uint8)) is None

    def test_descriptors_use_euclidean_tolerance(self, monkeypatch):
        """face_recognition's own tolerance is the match threshold."""
        base = np.zeros(128)
        near = base.copy()
        near[0] = 0.59
        far = base.copy()
        far[0] = 0.6

        descriptors = []
        for encoding in (base, near, far):
            model = loaded_model(monkeypatch, stub_library([(0, 10, 10, 0)], encoding=encoding))
            descriptors.append(model.detect_and_describe(np.zeros((20, 20, 3), dtype=np.uint8)).descriptor)

        assert is_match(descriptors[0], descriptors[1])
        assert not is_match(descriptors[0], descriptors[2])
