"""
Model Gate

Loads the face model at most once per process and exposes readiness.

Concurrent ensure_ready() calls share one in-flight load: the first caller
creates a future under an asyncio.Lock and every other caller awaits that same
future. A failed load clears the future so a later call can try again.

Usage:
    gate = ModelGate(OpenCVFaceModel(), source=settings.models_path)
    model = await gate.ensure_ready()
"""

import asyncio
from typing import Optional

from ..core.exceptions import ModelUnavailableError, ModelNotLoadedError
from ..core.logger import get_logger
from .base import FaceModelProvider

logger = get_logger(__name__)


class ModelGate:
    """Single-flight loader around a FaceModelProvider."""

    def __init__(self, provider: FaceModelProvider, source: Optional[str] = None):
        self.provider = provider
        self.source = source
        self.load_count = 0
        self._ready = False
        self._lock = asyncio.Lock()
        self._loading: Optional[asyncio.Future] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_loading(self) -> bool:
        return self._loading is not None and not self._loading.done()

    @property
    def model(self) -> FaceModelProvider:
        """The loaded provider. Raises ModelNotLoadedError until ready."""
        if not self._ready:
            raise ModelNotLoadedError(type(self.provider).__name__)
        return self.provider

    async def ensure_ready(self) -> FaceModelProvider:
        """
        Wait until the model is loaded, starting the load if needed.

        Raises:
            ModelUnavailableError: if the load failed (gate stays retryable)
        """
        if self._ready:
            return self.provider

        async with self._lock:
            if self._ready:
                return self.provider
            if self._loading is None:
                self._loading = asyncio.ensure_future(self._load())
            loading = self._loading

        # shield: a cancelled waiter must not cancel the shared load
        return await asyncio.shield(loading)

    async def _load(self) -> FaceModelProvider:
        self.load_count += 1
        logger.info(f"Loading face model ({type(self.provider).__name__})...")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.provider.load_models, self.source)
        except Exception as e:
            self._loading = None
            logger.error(f"Face model load failed: {e}")
            raise ModelUnavailableError(details=str(e)) from e

        self._ready = True
        logger.info("Face model ready")
        return self.provider


__all__ = [
    "ModelGate",
]
