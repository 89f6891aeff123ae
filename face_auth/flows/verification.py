"""
Verification Flow

Login gated by a credential check and then a biometric re-check.

    CREDENTIALS_ENTRY -> CREDENTIALS_CHECKED -> CAMERA_READY -> CAPTURING
        -> MATCHING -> AUTHENTICATED

REJECTED(reason) ends an attempt. A BIOMETRIC_MISMATCH rejection keeps the
camera open and allows another capture until max_match_attempts is used up.
"""

from enum import Enum
from typing import Optional

from ..core.exceptions import (
    AccountNotFoundError,
    InvalidFeatureError,
    InvalidTransitionError,
)
from ..core.logger import get_logger
from ..core.security import verify_secret
from ..db.models import AccountRecord
from ..pipelines.matching import compare_descriptors
from ..schemas.common import FlowStatus
from .base import BaseFlow, RejectionReason

logger = get_logger(__name__)


class VerificationState(str, Enum):
    CREDENTIALS_ENTRY = "credentials_entry"
    CREDENTIALS_CHECKED = "credentials_checked"
    CAMERA_READY = "camera_ready"
    CAPTURING = "capturing"
    MATCHING = "matching"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    ABORTED = "aborted"


TERMINAL_STATES = (
    VerificationState.AUTHENTICATED,
    VerificationState.REJECTED,
    VerificationState.ABORTED,
)


class VerificationFlow(BaseFlow):
    """Verification state machine. One instance per login attempt."""

    name = "verification"
    aborted_state = VerificationState.ABORTED

    def __init__(self, *args, max_match_attempts: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.max_match_attempts = max_match_attempts
        self.rejection: Optional[RejectionReason] = None
        self.attempts = 0
        self.last_distance: Optional[float] = None
        self._record: Optional[AccountRecord] = None
        self._transition(VerificationState.CREDENTIALS_ENTRY)

    @property
    def retries_remaining(self) -> Optional[int]:
        """Biometric attempts left, None when unlimited."""
        if self.max_match_attempts is None:
            return None
        return max(self.max_match_attempts - self.attempts, 0)

    @property
    def can_retry(self) -> bool:
        return (
            self._state is VerificationState.REJECTED
            and self.rejection is RejectionReason.BIOMETRIC_MISMATCH
            and self.retries_remaining != 0
        )

    def _reject(self, reason: RejectionReason) -> None:
        self.rejection = reason
        self._transition(VerificationState.REJECTED)
        logger.warning(f"Verification rejected for {self.identifier}: {reason.value}")

    async def submit_credentials(self, identifier: str, secret: str) -> VerificationState:
        """Check email + password. No camera step happens before this passes."""
        self._require("submit_credentials", VerificationState.CREDENTIALS_ENTRY)
        self.identifier = identifier.strip().lower() if isinstance(identifier, str) else None

        try:
            record = await self._run_blocking(self.store.get, identifier)
        except (AccountNotFoundError, ValueError):
            self._reject(RejectionReason.ACCOUNT_NOT_FOUND)
            return self._state

        matches = await self._run_blocking(
            verify_secret, secret, record.secret_hash, record.secret_salt,
            record.secret_iterations,
        )
        if not matches:
            self._reject(RejectionReason.INVALID_CREDENTIAL)
            return self._state

        self._record = record
        self.identifier = record.identifier
        self._transition(VerificationState.CREDENTIALS_CHECKED)
        return self._state

    async def open_camera(self) -> VerificationState:
        """Open the camera and start the model load in parallel."""
        self._require("open_camera", VerificationState.CREDENTIALS_CHECKED)
        self._start_model_load()
        self.failure = await self._open_camera()
        self._transition(VerificationState.CAMERA_READY)
        return self._state

    async def capture(self) -> VerificationState:
        """Capture a live face and match it against the enrolled one."""
        if self._state is VerificationState.REJECTED and self.can_retry:
            self.rejection = None
        else:
            self._require("capture", VerificationState.CAMERA_READY)
        self._transition(VerificationState.CAPTURING)

        result = await self._run_capture()
        if result is None:
            if self._state is VerificationState.CAPTURING:
                self._transition(VerificationState.CAMERA_READY)
            return self._state

        _, live_descriptor = result
        self._transition(VerificationState.MATCHING)
        await self._match(live_descriptor)
        return self._state

    async def _match(self, live_descriptor) -> None:
        stored = self._record.face_descriptor
        if stored is None:
            await self._release_camera()
            self._reject(RejectionReason.NO_ENROLLED_BIOMETRIC)
            return

        try:
            result = compare_descriptors(live_descriptor, stored)
        except InvalidFeatureError as e:
            await self._abort(e)

        self.attempts += 1
        self.last_distance = result.distance
        logger.debug(f"Match distance {result.distance:.4f} (attempt {self.attempts})")

        if result.is_match:
            await self._release_camera()
            self._transition(VerificationState.AUTHENTICATED)
            logger.info(f"Verified {self.identifier}")
            await self._notify_success()
            return

        self._reject(RejectionReason.BIOMETRIC_MISMATCH)
        if not self.can_retry:
            logger.warning(f"No biometric attempts left for {self.identifier}")
            await self._release_camera()

    async def cancel(self) -> VerificationState:
        """Drop the camera step and return to the checked credentials."""
        if not (self._state is VerificationState.REJECTED and self.can_retry):
            self._require(
                "cancel",
                VerificationState.CAMERA_READY,
                VerificationState.CAPTURING,
            )
        self._transition(VerificationState.CREDENTIALS_CHECKED)
        self._cancel_capture()
        self.rejection = None
        self.failure = None
        await self._release_camera()
        logger.info("Verification camera step cancelled")
        return self._state

    async def restart(self) -> VerificationState:
        """Start over from credential entry after a terminal state."""
        if self._state not in TERMINAL_STATES:
            raise InvalidTransitionError("restart", self._state.value)
        await self._release_camera()
        self._record = None
        self.identifier = None
        self.rejection = None
        self.failure = None
        self.attempts = 0
        self.last_distance = None
        self._transition(VerificationState.CREDENTIALS_ENTRY)
        return self._state

    def _on_interrupted(self) -> None:
        self._transition(VerificationState.CREDENTIALS_CHECKED)

    def status(self) -> FlowStatus:
        return FlowStatus(
            flow=self.name,
            state=self._state.value,
            identifier=self.identifier,
            failure=self.failure.value if self.failure else None,
            rejection=self.rejection.value if self.rejection else None,
            capture_enabled=self.capture_enabled,
            camera_open=self.capture_controller.is_open,
            attempts=self.attempts,
            distance=self.last_distance,
        )


__all__ = [
    "VerificationState",
    "VerificationFlow",
]
