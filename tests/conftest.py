"""Pytest configuration, fakes and fixtures for face_auth tests."""

import os

# Settings are built on import, so the environment has to be set first
os.environ["SECURITY_PBKDF2_ITERATIONS"] = "1000"
os.environ["STORE_BACKEND"] = "memory"
os.environ["FLOW_MAX_MATCH_ATTEMPTS"] = "3"
os.environ["MULTIPLE_FACES_POLICY"] = "reject"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import threading
from typing import Dict, List, Optional

import numpy as np
import pytest

from face_auth.capture.controller import CaptureController
from face_auth.capture.providers import CameraProvider
from face_auth.core.exceptions import PermissionDeniedError, DeviceUnavailableError
from face_auth.core.state import create_app_state
from face_auth.db.store import InMemoryCredentialStore
from face_auth.ml.base import FaceDescription, FaceModelProvider
from face_auth.ml.gate import ModelGate


# =============================================================================
# HELPERS
# =============================================================================

def make_descriptor(seed: int = 0) -> np.ndarray:
    """Random but reproducible 128-dim float64 descriptor."""
    rng = np.random.default_rng(seed)
    return rng.normal(0.0, 0.1, 128)


def shifted(descriptor: np.ndarray, distance: float, axis: int = 0) -> np.ndarray:
    """Copy of `descriptor` moved `distance` along one axis."""
    moved = np.array(descriptor, dtype=np.float64)
    moved[axis] += distance
    return moved


def make_frame(value: int) -> np.ndarray:
    """Tiny BGR frame; the pixel value identifies it to the fake model."""
    return np.full((8, 8, 3), value, dtype=np.uint8)


# =============================================================================
# FAKES
# =============================================================================

class FakeModelProvider(FaceModelProvider):
    """
    Model provider with a load counter and scripted results.

    Args:
        fail_loads: number of initial loads that raise
        block: if True, load_models waits until release() is called
    """

    def __init__(self, fail_loads: int = 0, block: bool = False):
        self.load_count = 0
        self.fail_loads = fail_loads
        self.loaded = False
        self.sources: List[Optional[str]] = []
        self._gate = threading.Event()
        if not block:
            self._gate.set()
        self._faces: Dict[bytes, FaceDescription] = {}

    def release(self) -> None:
        self._gate.set()

    def register(self, frame: np.ndarray, descriptor, face_count: int = 1) -> None:
        self._faces[frame.tobytes()] = FaceDescription(
            descriptor=np.asarray(descriptor, dtype=np.float64),
            face_count=face_count,
            confidence=0.9,
        )

    def load_models(self, source: Optional[str] = None) -> None:
        self.load_count += 1
        self.sources.append(source)
        if not self._gate.wait(timeout=5):
            raise TimeoutError("test never released the model load")
        if self.load_count <= self.fail_loads:
            raise OSError("model file unreadable")
        self.loaded = True

    def detect_and_describe(self, image: np.ndarray) -> Optional[FaceDescription]:
        if not self.loaded:
            raise RuntimeError("detect_and_describe called before load")
        return self._faces.get(image.tobytes())


class FakeCamera(CameraProvider):
    """Camera that serves scripted frames; the last frame repeats."""

    def __init__(self, frames=None, deny: bool = False, unavailable: bool = False):
        self.frames = list(frames or [make_frame(1)])
        self.deny = deny
        self.unavailable = unavailable
        self.open_count = 0
        self.release_count = 0
        self.grab_count = 0

    def request_access(self):
        if self.deny:
            raise PermissionDeniedError(details="fake camera")
        if self.unavailable:
            raise DeviceUnavailableError(details="fake camera")
        self.open_count += 1
        return {"index": 0}

    def grab_frame(self, stream) -> np.ndarray:
        frame = self.frames[min(stream["index"], len(self.frames) - 1)]
        stream["index"] += 1
        self.grab_count += 1
        return frame.copy()

    def release(self, stream) -> None:
        self.release_count += 1

    @property
    def held(self) -> bool:
        return self.open_count > self.release_count


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def d1() -> np.ndarray:
    return make_descriptor(1)


@pytest.fixture
def fake_model() -> FakeModelProvider:
    return FakeModelProvider()


@pytest.fixture
def fake_camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def gate(fake_model) -> ModelGate:
    return ModelGate(fake_model, source="models")


@pytest.fixture
def controller(fake_camera) -> CaptureController:
    return CaptureController(fake_camera)


@pytest.fixture
def app(fake_model, fake_camera, store):
    return create_app_state(
        model_provider=fake_model,
        camera_provider=fake_camera,
        store=store,
    )


@pytest.fixture
def successes() -> List[str]:
    """Collects identifiers passed to on_success."""
    return []
