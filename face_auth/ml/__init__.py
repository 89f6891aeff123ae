"""
Machine Learning Module

Face detection and descriptor extraction behind a single-flight model gate:
- DlibFaceModel: face_recognition (dlib) detector + 128-dim encoder, default
- OpenCVFaceModel: YuNet detection + SFace 128-dim descriptors

Usage:
    from face_auth.ml import ModelGate, DlibFaceModel

    gate = ModelGate(DlibFaceModel(), source="models")
    model = await gate.ensure_ready()
    description = model.detect_and_describe(image)
"""

from .base import FaceDescription, FaceModelProvider
from .dlib_model import DlibFaceModel
from .inference import OpenCVFaceModel, get_face_landmarks
from .gate import ModelGate
from .download_models import download_model, download_all, check_models_exist

__all__ = [
    'FaceDescription',
    'FaceModelProvider',
    'DlibFaceModel',
    'OpenCVFaceModel',
    'get_face_landmarks',
    'ModelGate',
    'download_model',
    'download_all',
    'check_models_exist',
]
