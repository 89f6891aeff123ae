"""
Flow Base

Shared plumbing for EnrollmentFlow and VerificationFlow: state bookkeeping,
the background model load, the capture -> descriptor step and camera cleanup.

Recoverable errors (model, camera, detection) are caught here and turned into
a FailureReason on the flow. Anything else raised while capturing is a
programming error: the flow moves to its ABORTED state, the camera is released
and FlowAbortedError is raised.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Type

import numpy as np

from ..capture.controller import CaptureController
from ..core.exceptions import (
    ModelUnavailableError,
    PermissionDeniedError,
    DeviceUnavailableError,
    NoFaceDetectedError,
    MultipleFacesError,
    InvalidTransitionError,
    FlowAbortedError,
)
from ..core.logger import get_logger
from ..db.store import CredentialStore
from ..ml.gate import ModelGate
from ..pipelines.descriptor import DescriptorExtractor

logger = get_logger(__name__)

SuccessHook = Callable[[str], Any]


class FailureReason(str, Enum):
    """Recoverable capture failure; the flow returns to CAMERA_READY."""
    MODEL_UNAVAILABLE = "model_unavailable"
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"


class RejectionReason(str, Enum):
    """Why a verification attempt ended in REJECTED."""
    ACCOUNT_NOT_FOUND = "account_not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    BIOMETRIC_MISMATCH = "biometric_mismatch"
    NO_ENROLLED_BIOMETRIC = "no_enrolled_biometric"


FAILURE_REASONS: Tuple[Tuple[Type[Exception], FailureReason], ...] = (
    (ModelUnavailableError, FailureReason.MODEL_UNAVAILABLE),
    (PermissionDeniedError, FailureReason.PERMISSION_DENIED),
    (DeviceUnavailableError, FailureReason.DEVICE_UNAVAILABLE),
    (NoFaceDetectedError, FailureReason.NO_FACE_DETECTED),
    (MultipleFacesError, FailureReason.MULTIPLE_FACES_DETECTED),
)

RECOVERABLE_ERRORS = tuple(exc_type for exc_type, _ in FAILURE_REASONS)


def failure_reason_for(error: BaseException) -> Optional[FailureReason]:
    """Map a recoverable exception to its FailureReason, None otherwise."""
    for exc_type, reason in FAILURE_REASONS:
        if isinstance(error, exc_type):
            return reason
    return None


def _consume_result(task: asyncio.Future) -> None:
    # load errors are reported again by the ensure_ready() that capture awaits
    if not task.cancelled():
        task.exception()


class BaseFlow:
    """Common state handling for the two flows."""

    name = "flow"
    aborted_state: Enum

    def __init__(
        self,
        store: CredentialStore,
        gate: ModelGate,
        capture: CaptureController,
        extractor: Optional[DescriptorExtractor] = None,
        on_success: Optional[SuccessHook] = None,
    ):
        self.store = store
        self.gate = gate
        self.capture_controller = capture
        self.extractor = extractor or DescriptorExtractor()
        self.on_success = on_success

        self.identifier: Optional[str] = None
        self.failure: Optional[FailureReason] = None
        self._history: List[Enum] = []
        self._state: Optional[Enum] = None
        self._model_task: Optional[asyncio.Future] = None
        self._capture_task: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------
    # State bookkeeping
    # ------------------------------------------------------------------

    @property
    def state(self) -> Enum:
        return self._state

    @property
    def history(self) -> List[Enum]:
        """States visited so far, oldest first."""
        return list(self._history)

    @property
    def capture_enabled(self) -> bool:
        """Capture may only be triggered once the model is loaded."""
        return self.gate.is_ready

    def _transition(self, new_state: Enum) -> None:
        old_state = self._state
        self._state = new_state
        self._history.append(new_state)
        if old_state is not None:
            logger.debug(f"{self.name}: {old_state.value} -> {new_state.value}")

    def _require(self, operation: str, *states: Enum) -> None:
        if self._state not in states:
            raise InvalidTransitionError(operation, self._state.value)

    # ------------------------------------------------------------------
    # Model and camera
    # ------------------------------------------------------------------

    def _start_model_load(self) -> None:
        """Begin ensure_ready() in the background so the camera can open meanwhile."""
        if self.gate.is_ready:
            return
        if self._model_task is None or self._model_task.done():
            self._model_task = asyncio.ensure_future(self.gate.ensure_ready())
            self._model_task.add_done_callback(_consume_result)

    async def _open_camera(self) -> Optional[FailureReason]:
        """Open the camera, returning the failure reason instead of raising."""
        try:
            await self.capture_controller.open()
        except (PermissionDeniedError, DeviceUnavailableError) as e:
            reason = failure_reason_for(e)
            logger.warning(f"{self.name}: camera unavailable ({reason.value}): {e}")
            return reason
        return None

    async def _release_camera(self) -> None:
        await self.capture_controller.close()

    async def _grab_descriptor(self) -> Tuple[np.ndarray, np.ndarray]:
        model = await self.gate.ensure_ready()
        await self.capture_controller.open()
        frame = await self.capture_controller.capture_frame()
        descriptor = await self.extractor.extract_async(frame, model)
        return frame, descriptor

    async def _run_capture(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """
        Run one capture + extraction as a cancellable task.

        Returns:
            (frame, descriptor) on success, None on a recoverable failure
            (self.failure is set) or when cancel() interrupted it.

        Raises:
            FlowAbortedError: unexpected error, flow is now ABORTED
        """
        self.failure = None
        task = asyncio.ensure_future(self._grab_descriptor())
        self._capture_task = task
        capturing_state = self._state
        try:
            result = await task
        except asyncio.CancelledError:
            if self._state is not capturing_state:
                # cancel() already moved the flow and released the camera
                return None
            # the caller itself was cancelled
            await self._release_camera()
            self._on_interrupted()
            raise
        except RECOVERABLE_ERRORS as e:
            self.failure = failure_reason_for(e)
            self.capture_controller.discard_frame()
            logger.warning(f"{self.name}: capture failed ({self.failure.value}): {e}")
            return None
        except Exception as e:
            await self._abort(e)
        finally:
            self._capture_task = None

        if self._state is not capturing_state:
            # cancelled after the task finished; drop the late frame
            return None
        return result

    def _cancel_capture(self) -> None:
        if self._capture_task is not None and not self._capture_task.done():
            self._capture_task.cancel()

    def _on_interrupted(self) -> None:
        """State to fall back to when the caller of capture() is cancelled."""
        raise NotImplementedError("_on_interrupted() must be implemented by subclasses")

    async def _abort(self, error: Exception) -> None:
        logger.error(f"{self.name}: internal error, aborting: {error!r}")
        self._transition(self.aborted_state)
        await self._release_camera()
        raise FlowAbortedError(details=type(error).__name__) from error

    async def _notify_success(self) -> None:
        if self.on_success is None:
            return
        result = self.on_success(self.identifier)
        if inspect.isawaitable(result):
            await result

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    # ------------------------------------------------------------------
    # Scoped use
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release the camera on flow exit, whatever the state."""
        self._cancel_capture()
        await self._release_camera()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


__all__ = [
    "FailureReason",
    "RejectionReason",
    "FAILURE_REASONS",
    "RECOVERABLE_ERRORS",
    "failure_reason_for",
    "BaseFlow",
]
