# face_auth/ml/base.py

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass
class FaceDescription:
    """
    Output of a provider's detect-and-describe call.

    descriptor belongs to the top-ranked detection; face_count is the number
    of faces the detector found in the whole frame.
    """
    descriptor: np.ndarray
    face_count: int
    confidence: Optional[float] = None
    bbox: Optional[Tuple[float, float, float, float]] = None  # x, y, width, height
    landmarks: Optional[np.ndarray] = field(default=None, repr=False)


class FaceModelProvider:
    """
    Abstract interface for face detection + embedding backends.
    The YuNet/SFace provider inherits this; tests plug in fakes.
    """

    def load_models(self, source: Optional[str] = None) -> None:
        """
        Load model weights from `source` (a directory for file-based models).
        Blocking; called from a worker thread by the model gate.
        """
        raise NotImplementedError("load_models() must be implemented by subclasses")

    def detect_and_describe(self, image: np.ndarray) -> Optional[FaceDescription]:
        """
        Detect faces in a BGR image and describe the top-ranked one.

        Returns None when no face is found.
        """
        raise NotImplementedError("detect_and_describe() must be implemented by subclasses")
