"""
Capture Controller

Owns the camera for the flow step that needs it. At most one CaptureSession
is open at a time; open() while open returns the existing session.

Usage:
    controller = CaptureController(OpenCVCamera())

    async with controller.session():
        frame = await controller.capture_frame()
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from ..core.exceptions import PermissionDeniedError, DeviceUnavailableError
from ..core.logger import get_logger
from .providers import CameraProvider

logger = get_logger(__name__)


@dataclass
class CaptureSession:
    """Transient camera session, never persisted."""
    stream: Any
    is_open: bool = True
    pending_frame: Optional[np.ndarray] = field(default=None, repr=False)
    opened_at: float = field(default_factory=time.monotonic)


class CaptureController:

    def __init__(self, provider: CameraProvider):
        self.provider = provider
        self._session: Optional[CaptureSession] = None
        self._lock = asyncio.Lock()

    @property
    def current_session(self) -> Optional[CaptureSession]:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None and self._session.is_open

    async def open(self) -> CaptureSession:
        """
        Acquire the camera. No-op returning the existing session when open.

        Raises:
            PermissionDeniedError: camera access refused
            DeviceUnavailableError: camera missing, busy or failing
        """
        async with self._lock:
            if self.is_open:
                return self._session

            loop = asyncio.get_running_loop()
            pending = loop.run_in_executor(None, self.provider.request_access)
            try:
                stream = await asyncio.shield(pending)
            except asyncio.CancelledError:
                # the worker thread still finishes; release what it acquires
                pending.add_done_callback(self._release_orphan)
                raise
            except (PermissionDeniedError, DeviceUnavailableError):
                raise
            except OSError as e:
                raise DeviceUnavailableError(details=str(e)) from e

            self._session = CaptureSession(stream=stream)
            logger.debug("Capture session opened")
            return self._session

    def _release_orphan(self, pending: asyncio.Future) -> None:
        if pending.cancelled() or pending.exception() is not None:
            return
        try:
            self.provider.release(pending.result())
        except (OSError, DeviceUnavailableError) as e:
            logger.warning(f"Camera release failed: {e}")

    async def capture_frame(self) -> np.ndarray:
        """
        Grab one still frame; it replaces any pending frame.

        Raises:
            DeviceUnavailableError: camera closed or read failed
        """
        session = self._session
        if session is None or not session.is_open:
            raise DeviceUnavailableError("Camera is not open")

        loop = asyncio.get_running_loop()
        frame = await loop.run_in_executor(None, self.provider.grab_frame, session.stream)

        if not session.is_open:
            # closed while the read was in flight
            raise DeviceUnavailableError("Camera closed during capture")

        session.pending_frame = frame
        return frame

    def discard_frame(self) -> None:
        if self._session is not None:
            self._session.pending_frame = None

    async def close(self) -> None:
        """Release the camera. Safe to call when already closed."""
        session, self._session = self._session, None
        if session is None or not session.is_open:
            return

        session.is_open = False
        session.pending_frame = None

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.provider.release, session.stream)
        except (OSError, DeviceUnavailableError) as e:
            logger.warning(f"Camera release failed: {e}")
        logger.debug("Capture session closed")

    @asynccontextmanager
    async def session(self):
        """Scoped acquisition: the camera is released on every exit path."""
        session = await self.open()
        try:
            yield session
        finally:
            await self.close()


__all__ = [
    "CaptureSession",
    "CaptureController",
]
