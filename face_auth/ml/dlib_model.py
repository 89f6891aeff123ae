"""
dlib Face Descriptor Provider

Face detection and 128-dim descriptors from the face_recognition library
(dlib HOG/CNN detector + ResNet encoder). Its descriptors are trained so that
a Euclidean distance below 0.6 means the same person, which is the decision
MatchDecision makes, so this is the default provider.

The library ships its own weights (face_recognition_models); the `source`
directory given to load_models() is not used.

    pip install "face-auth[dlib]"
"""

from typing import Optional

import cv2
import numpy as np

from ..core.config import settings, ModelSettings
from ..core.exceptions import ModelLoadError, ModelNotLoadedError
from ..core.logger import get_logger
from .base import FaceDescription, FaceModelProvider

logger = get_logger(__name__)


class DlibFaceModel(FaceModelProvider):
    """
    face_recognition backed provider.

    Several faces are ranked by box area, largest first; dlib's HOG detector
    gives no per-face score.
    """

    def __init__(self, model_settings: Optional[ModelSettings] = None):
        self.config = model_settings or settings.models
        self.api = None

    @property
    def loaded(self) -> bool:
        return self.api is not None

    def load_models(self, source: Optional[str] = None) -> None:
        try:
            import face_recognition
        except ImportError as e:
            raise ModelLoadError(
                "dlib",
                "face_recognition",
                message="face_recognition is not installed (pip install \"face-auth[dlib]\")",
            ) from e

        self.api = face_recognition
        logger.info(f"dlib face model ready (detector={self.config.dlib_detection_model})")

    def detect_and_describe(self, image: np.ndarray) -> Optional[FaceDescription]:
        if self.api is None:
            raise ModelNotLoadedError("dlib")

        rgb = np.ascontiguousarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
        locations = self.api.face_locations(
            rgb,
            number_of_times_to_upsample=self.config.dlib_upsample,
            model=self.config.dlib_detection_model,
        )
        if not locations:
            return None

        # (top, right, bottom, left)
        top_face = max(locations, key=lambda box: (box[2] - box[0]) * (box[1] - box[3]))
        encodings = self.api.face_encodings(
            rgb,
            known_face_locations=[top_face],
            num_jitters=self.config.dlib_num_jitters,
        )
        if not encodings:
            return None

        top, right, bottom, left = top_face
        return FaceDescription(
            descriptor=np.asarray(encodings[0], dtype=np.float64),
            face_count=len(locations),
            bbox=(float(left), float(top), float(right - left), float(bottom - top)),
        )


__all__ = [
    "DlibFaceModel",
]
