"""
Face Detection and Descriptor Inference

Loads and configures YuNet (face detection) and SFace (128-dim descriptor)
ONNX models through OpenCV's DNN face API.

Models are not loaded at import time; the model gate calls load_models()
once, from a worker thread.

Exports:
- OpenCVFaceModel: FaceModelProvider backed by YuNet + SFace, descriptors
  rescaled to the 0.6 Euclidean decision (the dlib provider is the default)
- get_face_landmarks: Extract 5-point landmarks from a detection row
"""

import os
from typing import Optional

import cv2
import numpy as np

from ..core.config import settings, ModelSettings
from ..core.exceptions import ModelLoadError, ModelNotLoadedError
from ..core.logger import get_logger
from .base import FaceDescription, FaceModelProvider

logger = get_logger(__name__)

# Same value as pipelines.matching.MATCH_THRESHOLD
TARGET_DISTANCE = 0.6


def _verify_model_file(path: str, model_name: str) -> None:
    """Raise ModelLoadError if model file is missing."""
    if not os.path.exists(path):
        raise ModelLoadError(model_name, path, message="Model file not found")


class OpenCVFaceModel(FaceModelProvider):
    """
    YuNet detector + SFace recognizer.

    Detection rows follow YuNet's layout:
    [x, y, w, h, l0x, l0y, l1x, l1y, l2x, l2y, l3x, l3y, l4x, l4y, score]
    """

    def __init__(self, model_settings: Optional[ModelSettings] = None):
        self.config = model_settings or settings.models
        self.detector = None
        self.recognizer = None

    @property
    def loaded(self) -> bool:
        return self.detector is not None and self.recognizer is not None

    def load_models(self, source: Optional[str] = None) -> None:
        """Create the detector and recognizer from the ONNX files in `source`."""
        models_dir = source or self.config.models_path
        yunet_path = os.path.join(models_dir, self.config.yunet_filename)
        sface_path = os.path.join(models_dir, self.config.sface_filename)

        _verify_model_file(yunet_path, "YuNet")
        _verify_model_file(sface_path, "SFace")

        try:
            detector = cv2.FaceDetectorYN.create(
                model=yunet_path,
                config='',
                input_size=tuple(self.config.yunet_input_size),
                score_threshold=self.config.yunet_score_threshold,
                nms_threshold=self.config.yunet_nms_threshold,
                top_k=self.config.yunet_top_k
            )
        except cv2.error as e:
            raise ModelLoadError("YuNet", yunet_path, details=str(e)) from e

        try:
            recognizer = cv2.FaceRecognizerSF.create(
                model=sface_path,
                config='',
                backend_id=cv2.dnn.DNN_BACKEND_DEFAULT,
                target_id=cv2.dnn.DNN_TARGET_CPU
            )
        except cv2.error as e:
            raise ModelLoadError("SFace", sface_path, details=str(e)) from e

        self.detector, self.recognizer = detector, recognizer
        logger.info(f"Face models loaded from {models_dir}")

    def detect_faces(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """
        Detect faces in a BGR image using YuNet.

        Returns:
            np.ndarray shape [num_faces, 15] in original frame coordinates,
            or None if no faces detected
        """
        if self.detector is None:
            raise ModelNotLoadedError("YuNet")
        if frame is None or not hasattr(frame, 'shape'):
            raise ValueError("Frame is None or invalid")

        input_size = tuple(self.config.yunet_input_size)
        resized = cv2.resize(frame, input_size)
        self.detector.setInputSize(input_size)

        _, faces = self.detector.detect(resized)

        if faces is None or len(faces) == 0:
            return None

        # Rescale to original frame size
        sx = frame.shape[1] / input_size[0]
        sy = frame.shape[0] / input_size[1]

        faces_rescaled = faces.astype(np.float32).copy()
        faces_rescaled[:, [0, 2, 4, 6, 8, 10, 12]] *= sx  # x coords
        faces_rescaled[:, [1, 3, 5, 7, 9, 11, 13]] *= sy  # y coords
        return faces_rescaled

    def extract_face_features(self, frame: np.ndarray, face_row: np.ndarray) -> np.ndarray:
        """
        Extract the SFace descriptor from one detected face.

        Args:
            frame: Full BGR image
            face_row: Face detection row from YuNet

        Returns:
            Calibrated float64 descriptor (see calibrate)
        """
        if self.recognizer is None:
            raise ModelNotLoadedError("SFace")

        aligned = self.recognizer.alignCrop(frame, face_row)
        feature = self.recognizer.feature(aligned)
        return self.calibrate(feature)

    def calibrate(self, feature: np.ndarray) -> np.ndarray:
        """
        Map a raw SFace feature onto the Euclidean scale MatchDecision uses.

        SFace separates identities by the L2 distance between unit-length
        features (same person below sface_l2_threshold, 1.128 in OpenCV's
        reference). Scaling unit features by TARGET_DISTANCE / sface_l2_threshold
        puts that boundary at TARGET_DISTANCE.
        """
        vector = np.asarray(feature, dtype=np.float64).flatten()
        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector
        return vector / norm * (TARGET_DISTANCE / self.config.sface_l2_threshold)

    def detect_and_describe(self, image: np.ndarray) -> Optional[FaceDescription]:
        faces = self.detect_faces(image)
        if faces is None:
            return None

        # Highest detector score first; stable so ties keep detector order
        order = np.argsort(-faces[:, 14], kind="stable")
        top = faces[order[0]]

        return FaceDescription(
            descriptor=self.extract_face_features(image, top),
            face_count=len(faces),
            confidence=float(top[14]),
            bbox=(float(top[0]), float(top[1]), float(top[2]), float(top[3])),
            landmarks=get_face_landmarks(top),
        )


def get_face_landmarks(face_row: np.ndarray) -> np.ndarray:
    """
    Extract 5-point landmarks from YuNet detection row.

    Returns:
        np.ndarray shape [5, 2] for landmark points:
        [right_eye, left_eye, nose, right_mouth, left_mouth]
    """
    if face_row is None or len(face_row) < 15:
        raise ValueError("Invalid face_row for landmarks extraction")

    return np.asarray(face_row[4:14], dtype=np.float32).reshape(5, 2)


__all__ = [
    "OpenCVFaceModel",
    "get_face_landmarks",
]
