"""
Enrollment Flow

First-time registration: capture one face, collect the account details, then
write a single AccountRecord.

    CREDENTIALS_PENDING -> CAMERA_READY -> CAPTURING -> DESCRIPTOR_OBTAINED
        -> DETAILS_PENDING -> COMPLETE

Capture failures pass through FAILED and land back in CAMERA_READY with
`failure` set; the camera stays open for the retry.

Usage:
    flow = app.enrollment_flow(on_success=go_to_dashboard)
    await flow.start()
    await flow.capture()
    await flow.proceed()
    await flow.submit({"email": "a@x.com", "password": "pw1", ...})
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np
from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import DetailsValidationError
from ..core.logger import get_logger
from ..core.security import hash_secret
from ..db.models import AccountRecord
from ..schemas.common import FlowStatus
from ..schemas.enrollment import EnrollmentDetails
from .base import BaseFlow

logger = get_logger(__name__)


class EnrollmentState(str, Enum):
    CREDENTIALS_PENDING = "credentials_pending"
    CAMERA_READY = "camera_ready"
    CAPTURING = "capturing"
    DESCRIPTOR_OBTAINED = "descriptor_obtained"
    DETAILS_PENDING = "details_pending"
    COMPLETE = "complete"
    FAILED = "failed"
    ABORTED = "aborted"


# States in which the flow holds the camera
CAMERA_STATES = (
    EnrollmentState.CAMERA_READY,
    EnrollmentState.CAPTURING,
    EnrollmentState.DESCRIPTOR_OBTAINED,
)


def _validation_errors(error: ValidationError) -> list:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or 'details'}: {err['msg']}"
        for err in error.errors()
    ]


class EnrollmentFlow(BaseFlow):
    """Enrollment state machine. One instance per registration attempt."""

    name = "enrollment"
    aborted_state = EnrollmentState.ABORTED

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._descriptor: Optional[np.ndarray] = None
        self._captured_image: Optional[np.ndarray] = None
        self._transition(EnrollmentState.CREDENTIALS_PENDING)

    @property
    def descriptor(self) -> Optional[np.ndarray]:
        return self._descriptor

    @property
    def captured_image(self) -> Optional[np.ndarray]:
        """Frame the descriptor came from, kept for on-screen confirmation."""
        return self._captured_image

    def _clear_capture(self) -> None:
        self._descriptor = None
        self._captured_image = None

    def _fail(self) -> None:
        self._transition(EnrollmentState.FAILED)
        self._transition(EnrollmentState.CAMERA_READY)

    async def start(self) -> EnrollmentState:
        """Open the camera while the model loads in the background."""
        self._require("start", EnrollmentState.CREDENTIALS_PENDING)
        self._start_model_load()

        self.failure = await self._open_camera()
        if self.failure is not None:
            self._fail()
        else:
            self._transition(EnrollmentState.CAMERA_READY)
        return self._state

    async def capture(self) -> EnrollmentState:
        """Take one still frame and turn it into a descriptor."""
        self._require("capture", EnrollmentState.CAMERA_READY)
        self._transition(EnrollmentState.CAPTURING)

        result = await self._run_capture()
        if result is None:
            if self._state is EnrollmentState.CAPTURING:
                self._fail()
            return self._state

        self._captured_image, self._descriptor = result
        self._transition(EnrollmentState.DESCRIPTOR_OBTAINED)
        logger.info("Face descriptor obtained")
        return self._state

    async def retake(self) -> EnrollmentState:
        """Throw away the captured face and go back to the camera."""
        self._require("retake", EnrollmentState.DESCRIPTOR_OBTAINED)
        self._clear_capture()
        self.capture_controller.discard_frame()

        self.failure = await self._open_camera()
        if self.failure is not None:
            self._fail()
        else:
            self._transition(EnrollmentState.CAMERA_READY)
        return self._state

    async def proceed(self) -> EnrollmentState:
        """Accept the captured face and move on to the details form."""
        self._require("proceed", EnrollmentState.DESCRIPTOR_OBTAINED)
        await self._release_camera()
        self._transition(EnrollmentState.DETAILS_PENDING)
        return self._state

    async def submit(
        self,
        details: Union[EnrollmentDetails, Dict[str, Any]],
    ) -> AccountRecord:
        """
        Persist the account with its descriptor.

        Raises:
            DetailsValidationError: descriptor or required fields missing;
                the flow stays in DETAILS_PENDING
        """
        self._require("submit", EnrollmentState.DETAILS_PENDING)

        if self._descriptor is None:
            raise DetailsValidationError(["face_descriptor: no face captured"])

        if not isinstance(details, EnrollmentDetails):
            try:
                details = EnrollmentDetails.model_validate(details)
            except ValidationError as e:
                raise DetailsValidationError(_validation_errors(e)) from e

        iterations = settings.security.pbkdf2_iterations
        secret_hash, salt = await self._run_blocking(
            hash_secret, details.password.get_secret_value(), None, iterations
        )
        record = AccountRecord(
            identifier=details.email,
            secret_hash=secret_hash,
            secret_salt=salt,
            secret_iterations=iterations,
            display_attributes=details.display_attributes(),
            face_descriptor=self._descriptor,
        )
        await self._run_blocking(self.store.put, record.identifier, record)

        self.identifier = record.identifier
        self._transition(EnrollmentState.COMPLETE)
        logger.info(f"Enrollment complete for {self.identifier}")
        await self._notify_success()
        return record

    async def cancel(self) -> EnrollmentState:
        """Stop any capture, release the camera, back to the start."""
        self._require("cancel", *CAMERA_STATES)
        self._transition(EnrollmentState.CREDENTIALS_PENDING)
        self._cancel_capture()
        self._clear_capture()
        self.failure = None
        await self._release_camera()
        logger.info("Enrollment cancelled")
        return self._state

    def _on_interrupted(self) -> None:
        self._clear_capture()
        self._transition(EnrollmentState.CREDENTIALS_PENDING)

    def status(self) -> FlowStatus:
        return FlowStatus(
            flow=self.name,
            state=self._state.value,
            identifier=self.identifier,
            failure=self.failure.value if self.failure else None,
            capture_enabled=self.capture_enabled,
            camera_open=self.capture_controller.is_open,
        )


__all__ = [
    "EnrollmentState",
    "EnrollmentFlow",
]
