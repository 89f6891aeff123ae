"""
Custom Exceptions for Face Authentication

Provides domain-specific exceptions for the enrollment and verification flows.

Usage:
    from face_auth.core.exceptions import NoFaceDetectedError

    if description is None:
        raise NoFaceDetectedError("No face found in captured frame")
"""

from typing import Optional, Any


class FaceAuthError(Exception):
    """
    Base exception for all face authentication errors.

    All custom exceptions inherit from this class, allowing
    catch-all handling when needed.
    """

    def __init__(
        self,
        message: str = "Face authentication error occurred",
        details: Optional[Any] = None,
    ):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


# =============================================================================
# MODEL ERRORS
# =============================================================================

class ModelUnavailableError(FaceAuthError):
    """Raised when the embedding model could not be loaded. Retryable."""

    def __init__(
        self,
        message: str = "Face model unavailable",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


class ModelNotLoadedError(FaceAuthError):
    """Raised when a model handle is requested before the gate is ready."""

    def __init__(
        self,
        model_name: str,
        message: str = "Model not loaded",
        details: Optional[Any] = None,
    ):
        self.model_name = model_name
        super().__init__(f"{message}: {model_name}", details)


class ModelLoadError(FaceAuthError):
    """Raised when a model file is missing or fails to initialize."""

    def __init__(
        self,
        model_name: str,
        model_path: str,
        message: str = "Failed to load model",
        details: Optional[Any] = None,
    ):
        self.model_name = model_name
        self.model_path = model_path
        super().__init__(f"{message}: {model_name} from {model_path}", details)


# =============================================================================
# CAMERA ERRORS
# =============================================================================

class PermissionDeniedError(FaceAuthError):
    """Raised when camera access is refused by the runtime."""

    def __init__(
        self,
        message: str = "Camera access denied",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


class DeviceUnavailableError(FaceAuthError):
    """Raised when the camera cannot be opened or stops delivering frames."""

    def __init__(
        self,
        message: str = "Camera device unavailable",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


# =============================================================================
# DETECTION / DESCRIPTOR ERRORS
# =============================================================================

class NoFaceDetectedError(FaceAuthError):
    """Raised when no face is detected in an image."""

    def __init__(
        self,
        message: str = "No face detected in image",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


class MultipleFacesError(FaceAuthError):
    """Raised when multiple faces are detected but only one is expected."""

    def __init__(
        self,
        face_count: int,
        message: str = "Multiple faces detected",
        details: Optional[Any] = None,
    ):
        self.face_count = face_count
        super().__init__(f"{message}: found {face_count} faces", details)


class InvalidFeatureError(FaceAuthError):
    """Raised when a descriptor is invalid (wrong dimension, NaN, etc.)."""

    def __init__(
        self,
        expected_dim: int = 128,
        actual_dim: Optional[int] = None,
        message: str = "Invalid face descriptor",
        details: Optional[Any] = None,
    ):
        self.expected_dim = expected_dim
        self.actual_dim = actual_dim
        if actual_dim is not None:
            message = f"{message}: expected {expected_dim}D, got {actual_dim}D"
        super().__init__(message, details)


class InvalidImageError(FaceAuthError):
    """Raised when image is invalid, corrupted, or unsupported format."""

    def __init__(
        self,
        message: str = "Invalid or unsupported image",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


# =============================================================================
# STORE ERRORS
# =============================================================================

class AccountNotFoundError(FaceAuthError):
    """Raised when no account record exists for an identifier."""

    def __init__(
        self,
        identifier: str,
        message: str = "Account not found",
        details: Optional[Any] = None,
    ):
        self.identifier = identifier
        super().__init__(f"{message}: {identifier}", details)


class DatabaseConnectionError(FaceAuthError):
    """Raised when database connection fails."""

    def __init__(
        self,
        message: str = "Database connection failed",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


class DatabaseQueryError(FaceAuthError):
    """Raised when a database query fails."""

    def __init__(
        self,
        message: str = "Database query failed",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


# =============================================================================
# FLOW ERRORS
# =============================================================================

class DetailsValidationError(FaceAuthError):
    """Raised when enrollment details cannot be submitted."""

    def __init__(
        self,
        errors: Optional[list] = None,
        message: str = "Enrollment details are incomplete",
    ):
        self.errors = errors or []
        super().__init__(message, self.errors or None)


class InvalidTransitionError(FaceAuthError):
    """Raised when a flow operation is called from the wrong state."""

    def __init__(
        self,
        operation: str,
        state: str,
        message: str = "Operation not allowed",
    ):
        self.operation = operation
        self.state = state
        super().__init__(f"{message}: {operation} in state {state}")


class FlowAbortedError(FaceAuthError):
    """Raised when a flow hits an unrecoverable internal error."""

    def __init__(
        self,
        message: str = "Internal error, flow aborted",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)


__all__ = [
    "FaceAuthError",
    "ModelUnavailableError",
    "ModelNotLoadedError",
    "ModelLoadError",
    "PermissionDeniedError",
    "DeviceUnavailableError",
    "NoFaceDetectedError",
    "MultipleFacesError",
    "InvalidFeatureError",
    "InvalidImageError",
    "AccountNotFoundError",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "DetailsValidationError",
    "InvalidTransitionError",
    "FlowAbortedError",
]
