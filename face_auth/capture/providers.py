# face_auth/capture/providers.py

import os
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import cv2
import numpy as np

from ..core.config import settings, CameraSettings
from ..core.exceptions import (
    PermissionDeniedError,
    DeviceUnavailableError,
    InvalidImageError,
)
from ..core.logger import get_logger
from ..utils import image_loader

logger = get_logger(__name__)


class CameraProvider:
    """
    Abstract interface for camera backends.
    All methods are blocking; CaptureController calls them from a worker thread.
    """

    def request_access(self) -> Any:
        """
        Acquire the device and return an opaque stream handle.

        Raises:
            PermissionDeniedError: access refused by the OS/runtime
            DeviceUnavailableError: device missing or busy
        """
        raise NotImplementedError("request_access() must be implemented by subclasses")

    def grab_frame(self, stream: Any) -> np.ndarray:
        """Return one BGR still frame from an open stream."""
        raise NotImplementedError("grab_frame() must be implemented by subclasses")

    def release(self, stream: Any) -> None:
        """Release the device behind `stream`."""
        raise NotImplementedError("release() must be implemented by subclasses")


class OpenCVCamera(CameraProvider):
    """
    Webcam via cv2.VideoCapture.

    On Linux an existing but unreadable /dev/videoN is reported as a
    permission problem rather than a missing device.
    """

    def __init__(self, camera_settings: Optional[CameraSettings] = None):
        self.config = camera_settings or settings.camera

    @property
    def device_path(self) -> str:
        return f"/dev/video{self.config.device_index}"

    def request_access(self) -> cv2.VideoCapture:
        path = self.device_path
        if os.path.exists(path) and not os.access(path, os.R_OK | os.W_OK):
            raise PermissionDeniedError(details=path)

        cap = cv2.VideoCapture(self.config.device_index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailableError(details=f"index {self.config.device_index}")

        if self.config.frame_width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.frame_width)
        if self.config.frame_height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.frame_height)

        # let auto exposure settle before the first real frame
        for _ in range(self.config.warmup_frames):
            cap.read()

        logger.info(f"Camera {self.config.device_index} opened")
        return cap

    def grab_frame(self, stream: cv2.VideoCapture) -> np.ndarray:
        ret, frame = stream.read()
        if not ret or frame is None:
            raise DeviceUnavailableError("Failed to read frame from camera")
        return frame

    def release(self, stream: cv2.VideoCapture) -> None:
        stream.release()
        logger.info(f"Camera {self.config.device_index} released")


@dataclass
class _StillStream:
    paths: List[str]
    index: int = 0
    closed: bool = False


class StillImageCamera(CameraProvider):
    """
    Serves image files as camera frames, in order.

    After the last file the final image keeps being returned, so a retry
    re-captures the same still.
    """

    def __init__(self, paths: Sequence[str]):
        if not paths:
            raise ValueError("StillImageCamera needs at least one image path")
        self.paths = [str(p) for p in paths]

    def request_access(self) -> _StillStream:
        for path in self.paths:
            if not os.path.exists(path):
                raise DeviceUnavailableError("Image source not found", details=path)
            if not os.access(path, os.R_OK):
                raise PermissionDeniedError(details=path)
        return _StillStream(paths=list(self.paths))

    def grab_frame(self, stream: _StillStream) -> np.ndarray:
        if stream.closed:
            raise DeviceUnavailableError("Image source closed")

        path = stream.paths[min(stream.index, len(stream.paths) - 1)]
        stream.index += 1

        try:
            frame = image_loader.load_from_path(path)
        except InvalidImageError as e:
            raise DeviceUnavailableError("Unreadable image frame", details=path) from e
        return image_loader.resize_if_needed(frame)

    def release(self, stream: _StillStream) -> None:
        stream.closed = True


__all__ = [
    "CameraProvider",
    "OpenCVCamera",
    "StillImageCamera",
]
