"""
Application State

Holds the long-lived collaborators shared by every flow: the credential store,
the model gate, the capture controller and the descriptor extractor. Built once
at process start by create_app_state() and passed around explicitly.

Usage:
    app = create_app_state()

    flow = app.verification_flow(on_success=open_dashboard)
    await flow.submit_credentials("a@x.com", "pw1")
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import settings as default_settings, Settings
from ..capture.controller import CaptureController
from ..capture.providers import CameraProvider, OpenCVCamera
from ..db.store import CredentialStore, create_store
from ..flows.base import SuccessHook
from ..flows.enrollment import EnrollmentFlow
from ..flows.verification import VerificationFlow
from ..ml.base import FaceModelProvider
from ..ml.download_models import check_models_exist
from ..ml.gate import ModelGate
from ..ml.dlib_model import DlibFaceModel
from ..ml.inference import OpenCVFaceModel
from ..pipelines.descriptor import DescriptorExtractor
from ..pipelines.matching import MATCH_THRESHOLD


@dataclass
class AppState:
    """
    Container for the process-wide collaborators.

    Attributes:
        settings: Loaded configuration
        store: Credential store backend, shared by both flows
        gate: Single-flight model loader
        capture: Camera owner; at most one session open at a time
        extractor: Descriptor extraction with the configured multi-face policy
    """

    settings: Settings
    store: CredentialStore
    gate: ModelGate
    capture: CaptureController
    extractor: DescriptorExtractor

    def enrollment_flow(self, on_success: Optional[SuccessHook] = None) -> EnrollmentFlow:
        return EnrollmentFlow(
            self.store, self.gate, self.capture, self.extractor, on_success=on_success
        )

    def verification_flow(self, on_success: Optional[SuccessHook] = None) -> VerificationFlow:
        return VerificationFlow(
            self.store, self.gate, self.capture, self.extractor,
            on_success=on_success,
            max_match_attempts=self.settings.flow.max_match_attempts,
        )

    def get_status(self) -> Dict[str, Any]:
        """Current state for the status command."""
        return {
            "store_backend": self.settings.store.backend,
            "models_path": self.settings.models_path,
            "face_model": self.settings.models.face_model,
            "model_files": check_models_exist(self.settings.models_path),
            "model_ready": self.gate.is_ready,
            "camera_provider": type(self.capture.provider).__name__,
            "multiple_faces_policy": self.extractor.policy,
            "match_threshold": MATCH_THRESHOLD,
        }


def build_model_provider(settings: Settings) -> FaceModelProvider:
    """Default provider for FACE_MODEL: dlib, or opencv (YuNet + SFace)."""
    if settings.models.face_model == "opencv":
        return OpenCVFaceModel(settings.models)
    return DlibFaceModel(settings.models)


def create_app_state(
    settings: Optional[Settings] = None,
    model_provider: Optional[FaceModelProvider] = None,
    camera_provider: Optional[CameraProvider] = None,
    store: Optional[CredentialStore] = None,
) -> AppState:
    """
    Build the application state. Any collaborator can be swapped in,
    which is how the CLI selects still images and how tests inject fakes.
    """
    if settings is None:
        settings = default_settings
    if model_provider is None:
        model_provider = build_model_provider(settings)
    if camera_provider is None:
        camera_provider = OpenCVCamera(settings.camera)
    if store is None:
        store = create_store(settings)

    return AppState(
        settings=settings,
        store=store,
        gate=ModelGate(model_provider, source=settings.models_path),
        capture=CaptureController(camera_provider),
        extractor=DescriptorExtractor(settings.models.multiple_faces_policy),
    )


__all__ = [
    "AppState",
    "build_model_provider",
    "create_app_state",
]
