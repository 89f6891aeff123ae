"""
Common Schemas

Status snapshots reported by the flows and the CLI.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FlowStatus(BaseModel):
    """Snapshot of a flow for display."""

    flow: str = Field(description="enrollment or verification")
    state: str = Field(description="Current state name")
    identifier: Optional[str] = Field(default=None, description="Account identifier, once known")
    failure: Optional[str] = Field(default=None, description="Last recoverable failure")
    rejection: Optional[str] = Field(default=None, description="Rejection reason")
    capture_enabled: bool = Field(default=False, description="Model ready and camera usable")
    camera_open: bool = Field(default=False)
    attempts: int = Field(default=0, description="Biometric attempts made")
    distance: Optional[float] = Field(default=None, description="Last match distance")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "flow": "verification",
                "state": "rejected",
                "identifier": "a@x.com",
                "failure": None,
                "rejection": "biometric_mismatch",
                "capture_enabled": True,
                "camera_open": True,
                "attempts": 1,
                "distance": 0.9,
            }
        }
    )


class AppStatusResponse(BaseModel):
    """Output of the status command."""

    store_backend: str
    face_model: str
    models_path: str
    model_files: Dict[str, bool]
    model_ready: bool
    camera_provider: str
    multiple_faces_policy: str
    match_threshold: float


__all__ = [
    "FlowStatus",
    "AppStatusResponse",
]
