"""Tests for the OpenCV YuNet + SFace provider with stubbed cv2 models."""

import os

import numpy as np
import pytest

from face_auth.core.config import ModelSettings
from face_auth.core.exceptions import ModelLoadError, ModelNotLoadedError, MultipleFacesError
import face_auth.ml.download_models as downloads
from face_auth.ml.download_models import MODEL_FILES, check_models_exist, download_model
from face_auth.ml.inference import TARGET_DISTANCE, OpenCVFaceModel, get_face_landmarks
from face_auth.pipelines.descriptor import BEST_DETECTION, extract_descriptor
from face_auth.pipelines.matching import MATCH_THRESHOLD, descriptor_distance, is_match


def face_row(x, y, w, h, score):
    landmarks = [x + 1, y + 1, x + 2, y + 1, x + 1.5, y + 2, x + 1, y + 3, x + 2, y + 3]
    return [x, y, w, h, *landmarks, score]


class StubDetector:
    def __init__(self, faces):
        self.faces = None if faces is None else np.array(faces, dtype=np.float32)
        self.input_sizes = []

    def setInputSize(self, size):
        self.input_sizes.append(size)

    def detect(self, image):
        return 1, self.faces


def stub_feature(score):
    feature = np.ones((1, 128), dtype=np.float32)
    feature[0, 0] = score * 10
    return feature


class StubRecognizer:
    """Feature encodes the detection score, so the chosen face is visible."""

    def alignCrop(self, frame, row):
        return row

    def feature(self, aligned):
        return stub_feature(aligned[14])


def make_model(faces):
    model = OpenCVFaceModel(ModelSettings())
    model.detector = StubDetector(faces)
    model.recognizer = StubRecognizer()
    return model


class TestOpenCVFaceModel:

    def test_not_loaded(self):
        model = OpenCVFaceModel(ModelSettings())
        assert not model.loaded
        with pytest.raises(ModelNotLoadedError):
            model.detect_faces(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_load_missing_files(self, tmp_path):
        model = OpenCVFaceModel(ModelSettings())
        with pytest.raises(ModelLoadError):
            model.load_models(str(tmp_path))
        assert not model.loaded

    def test_no_faces(self):
        model = make_model(None)
        assert model.detect_and_describe(np.zeros((480, 640, 3), dtype=np.uint8)) is None

    def test_coordinates_rescaled_to_frame(self):
        model = make_model([face_row(100, 200, 50, 60, 0.9)])
        frame = np.zeros((480, 1280, 3), dtype=np.uint8)

        faces = model.detect_faces(frame)

        sx, sy = 1280 / 640, 480 / 640
        assert faces[0, 0] == pytest.approx(100 * sx)
        assert faces[0, 1] == pytest.approx(200 * sy)
        assert faces[0, 2] == pytest.approx(50 * sx)
        assert faces[0, 3] == pytest.approx(60 * sy)
        assert faces[0, 4] == pytest.approx(101 * sx)
        assert faces[0, 5] == pytest.approx(201 * sy)
        assert faces[0, 14] == pytest.approx(0.9)
        assert model.detector.input_sizes == [(640, 640)]

    def test_describe_single_face(self):
        model = make_model([face_row(10, 10, 50, 50, 0.9)])
        description = model.detect_and_describe(np.zeros((640, 640, 3), dtype=np.uint8))

        assert description.face_count == 1
        assert description.confidence == pytest.approx(0.9)
        assert description.bbox == pytest.approx((10, 10, 50, 50))
        assert description.descriptor.shape == (128,)
        assert description.descriptor.dtype == np.float64
        assert description.landmarks.shape == (5, 2)

    def test_top_scored_face_described(self):
        model = make_model([
            face_row(10, 10, 50, 50, 0.75),
            face_row(300, 300, 80, 80, 0.95),
        ])
        description = model.detect_and_describe(np.zeros((640, 640, 3), dtype=np.uint8))

        assert description.face_count == 2
        assert description.confidence == pytest.approx(0.95)
        np.testing.assert_allclose(description.descriptor, model.calibrate(stub_feature(0.95)), rtol=1e-6)

    def test_multiple_faces_through_pipeline(self):
        model = make_model([
            face_row(10, 10, 50, 50, 0.75),
            face_row(300, 300, 80, 80, 0.95),
        ])
        frame = np.zeros((640, 640, 3), dtype=np.uint8)

        with pytest.raises(MultipleFacesError):
            extract_descriptor(frame, model)
        best = extract_descriptor(frame, model, BEST_DETECTION)
        np.testing.assert_allclose(best, model.calibrate(stub_feature(0.95)), rtol=1e-6)


class TestLandmarks:

    def test_landmark_layout(self):
        row = np.array(face_row(0, 0, 10, 10, 0.9), dtype=np.float32)
        landmarks = get_face_landmarks(row)
        assert landmarks.shape == (5, 2)
        assert tuple(landmarks[0]) == (1.0, 1.0)
        assert tuple(landmarks[2]) == (1.5, 2.0)

    def test_short_row(self):
        with pytest.raises(ValueError):
            get_face_landmarks(np.zeros(10))


class TestSFaceCalibration:

    def test_target_is_match_threshold(self):
        assert TARGET_DISTANCE == MATCH_THRESHOLD

    def test_calibrated_length(self):
        model = OpenCVFaceModel(ModelSettings())
        raw = np.arange(1, 129, dtype=np.float32)
        assert np.linalg.norm(model.calibrate(raw)) == pytest.approx(0.6 / 1.128)

    def test_reference_boundary_maps_to_threshold(self):
        """Unit features 1.128 apart (OpenCV's same-person bound) land 0.6 apart."""
        model = OpenCVFaceModel(ModelSettings())
        angle = 2 * np.arcsin(1.128 / 2)
        a = np.zeros(128)
        b = np.zeros(128)
        a[0] = 1.0
        b[0], b[1] = np.cos(angle), np.sin(angle)
        assert np.linalg.norm(a - b) == pytest.approx(1.128)

        distance = descriptor_distance(model.calibrate(a * 7), model.calibrate(b * 3))
        assert distance == pytest.approx(0.6)

    def test_same_direction_matches(self):
        model = OpenCVFaceModel(ModelSettings())
        raw = np.arange(1, 129, dtype=np.float64)
        assert is_match(model.calibrate(raw), model.calibrate(raw * 2.5))


class TestModelFiles:

    def test_check_models_exist(self, tmp_path):
        assert check_models_exist(str(tmp_path)) == {"yunet": False, "sface": False}
        (tmp_path / MODEL_FILES["yunet"].filename).write_bytes(b"x")
        assert check_models_exist(str(tmp_path))["yunet"] is True

    def test_existing_model_not_downloaded(self, tmp_path, monkeypatch):
        model = MODEL_FILES["yunet"]
        path = tmp_path / model.filename
        path.write_bytes(b"\0" * model.min_bytes)

        def no_network(model, target):
            raise AssertionError("should not download")

        monkeypatch.setattr(downloads, "_fetch", no_network)
        assert download_model("yunet", str(tmp_path))
        assert os.path.getsize(path) == model.min_bytes

    def test_truncated_model_replaced(self, tmp_path, monkeypatch):
        model = MODEL_FILES["yunet"]
        path = tmp_path / model.filename
        path.write_bytes(b"short")

        def fake_fetch(model, target):
            with open(target, "wb") as f:
                f.write(b"\1" * model.min_bytes)
            return "ignored"

        monkeypatch.setattr(downloads, "_fetch", fake_fetch)
        assert download_model("yunet", str(tmp_path))
        assert path.read_bytes() == b"\1" * model.min_bytes
        assert [p.name for p in tmp_path.iterdir()] == [model.filename]

    def test_failed_download_leaves_nothing(self, tmp_path, monkeypatch):
        def broken_fetch(model, target):
            with open(target, "wb") as f:
                f.write(b"partial")
            raise OSError("connection reset")

        monkeypatch.setattr(downloads, "_fetch", broken_fetch)
        assert not download_model("sface", str(tmp_path))
        assert list(tmp_path.iterdir()) == []

    def test_undersized_download_rejected(self, tmp_path, monkeypatch):
        def small_fetch(model, target):
            with open(target, "wb") as f:
                f.write(b"tiny")
            return "ignored"

        monkeypatch.setattr(downloads, "_fetch", small_fetch)
        assert downloads.download_all(str(tmp_path)) == 1
        assert list(tmp_path.iterdir()) == []

    def test_unknown_model(self, tmp_path):
        assert not download_model("resnet", str(tmp_path))
