"""
Pydantic Schemas

Form models and status snapshots.
"""

from .enrollment import (
    REQUIRED_ATTRIBUTES,
    CredentialsForm,
    EnrollmentDetails,
)
from .common import (
    FlowStatus,
    AppStatusResponse,
)

__all__ = [
    # Forms
    "REQUIRED_ATTRIBUTES",
    "CredentialsForm",
    "EnrollmentDetails",
    # Status
    "FlowStatus",
    "AppStatusResponse",
]
