"""
Capture Module

Camera ownership (CaptureController) and camera backends.
"""

from .controller import CaptureSession, CaptureController
from .providers import CameraProvider, OpenCVCamera, StillImageCamera

__all__ = [
    "CaptureSession",
    "CaptureController",
    "CameraProvider",
    "OpenCVCamera",
    "StillImageCamera",
]
