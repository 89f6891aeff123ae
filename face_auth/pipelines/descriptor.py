"""
Descriptor Extraction Pipeline

Turns one still image into one 128-dim face descriptor, plus the
encode/decode helpers used to persist descriptors.
"""

import asyncio
import base64
from typing import Optional, Sequence

import numpy as np

from ..core.config import settings
from ..core.exceptions import (
    NoFaceDetectedError,
    MultipleFacesError,
    InvalidFeatureError,
)
from ..core.logger import get_logger
from ..ml.base import FaceModelProvider

logger = get_logger(__name__)


# Constants
FEATURE_DIMENSION = 128
DESCRIPTOR_BYTES = 8  # little-endian float64

REJECT_MULTIPLE = "reject"
BEST_DETECTION = "best"


def as_descriptor(values: Sequence[float]) -> np.ndarray:
    """
    Coerce a sequence to a validated float64 descriptor.

    Descriptors stay float64 from extraction to storage, so the flows compare
    exactly the values MatchDecision would be given.

    Raises:
        InvalidFeatureError: wrong length, NaN/Inf, or all zeros
    """
    feature = np.asarray(values, dtype=np.float64).flatten()

    if feature.shape[0] != FEATURE_DIMENSION:
        raise InvalidFeatureError(FEATURE_DIMENSION, feature.shape[0])

    if not np.isfinite(feature).all():
        raise InvalidFeatureError(FEATURE_DIMENSION, message="Descriptor contains NaN or Inf")

    if np.allclose(feature, 0):
        raise InvalidFeatureError(FEATURE_DIMENSION, message="Descriptor is a zero vector")

    return feature


def validate_feature(feature: Optional[np.ndarray]) -> bool:
    """
    Check that a descriptor is valid without raising.
    """
    if feature is None:
        return False
    try:
        as_descriptor(feature)
    except InvalidFeatureError:
        return False
    return True


def extract_descriptor(
    image: np.ndarray,
    model: FaceModelProvider,
    policy: Optional[str] = None,
) -> np.ndarray:
    """
    Detect exactly one face and return its descriptor.

    Args:
        image: BGR image as numpy array
        model: A loaded FaceModelProvider
        policy: "reject" fails on several faces, "best" keeps the top-ranked
                detection (default from settings)

    Returns:
        128-dim float64 descriptor

    Raises:
        NoFaceDetectedError: no face in the image
        MultipleFacesError: more than one face under the reject policy
        InvalidFeatureError: the model produced a malformed descriptor
    """
    policy = policy or settings.models.multiple_faces_policy

    description = model.detect_and_describe(image)

    if description is None or description.face_count == 0:
        raise NoFaceDetectedError()

    if description.face_count > 1:
        if policy == REJECT_MULTIPLE:
            raise MultipleFacesError(description.face_count)
        logger.warning(
            f"{description.face_count} faces in frame, using top detection "
            f"(confidence={description.confidence})"
        )

    return as_descriptor(description.descriptor)


class DescriptorExtractor:
    """
    Runs extract_descriptor off the event loop for the flows.
    """

    def __init__(self, policy: Optional[str] = None):
        self.policy = policy or settings.models.multiple_faces_policy

    def extract(self, image: np.ndarray, model: FaceModelProvider) -> np.ndarray:
        return extract_descriptor(image, model, self.policy)

    async def extract_async(self, image: np.ndarray, model: FaceModelProvider) -> np.ndarray:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.extract, image, model)


def encode_descriptor_to_base64(feature: np.ndarray) -> str:
    """
    Encode descriptor to base64 string (raw little-endian float64 bytes).
    """
    feature_bytes = np.asarray(feature, dtype="<f8").tobytes()
    return base64.b64encode(feature_bytes).decode('utf-8')


def decode_descriptor_from_base64(base64_data: str) -> np.ndarray:
    """
    Decode a base64 string written by encode_descriptor_to_base64.

    Raises:
        InvalidFeatureError: payload is not 128 float64 values
    """
    try:
        feature_bytes = base64.b64decode(base64_data, validate=True)
    except (ValueError, TypeError) as e:
        raise InvalidFeatureError(FEATURE_DIMENSION, message="Descriptor is not valid base64") from e

    if len(feature_bytes) != FEATURE_DIMENSION * DESCRIPTOR_BYTES:
        raise InvalidFeatureError(FEATURE_DIMENSION, len(feature_bytes) // DESCRIPTOR_BYTES)

    return as_descriptor(np.frombuffer(feature_bytes, dtype="<f8"))


__all__ = [
    "FEATURE_DIMENSION",
    "REJECT_MULTIPLE",
    "BEST_DETECTION",
    "as_descriptor",
    "validate_feature",
    "extract_descriptor",
    "DescriptorExtractor",
    "encode_descriptor_to_base64",
    "decode_descriptor_from_base64",
]
