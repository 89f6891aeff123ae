"""
Core module for Face Authentication.

Contains centralized configuration, logging, exceptions, and secret hashing.
Application state lives in core.state and is imported from there.
"""

from .config import settings, get_settings, Settings
from .logger import logger, get_logger, configure_logging
from .exceptions import (
    FaceAuthError,
    ModelUnavailableError,
    PermissionDeniedError,
    DeviceUnavailableError,
    NoFaceDetectedError,
    MultipleFacesError,
    InvalidFeatureError,
    AccountNotFoundError,
    DetailsValidationError,
    InvalidTransitionError,
    FlowAbortedError,
)
from .security import hash_secret, verify_secret

__all__ = [
    # Config
    "settings",
    "get_settings",
    "Settings",
    # Logger
    "logger",
    "get_logger",
    "configure_logging",
    # Exceptions
    "FaceAuthError",
    "ModelUnavailableError",
    "PermissionDeniedError",
    "DeviceUnavailableError",
    "NoFaceDetectedError",
    "MultipleFacesError",
    "InvalidFeatureError",
    "AccountNotFoundError",
    "DetailsValidationError",
    "InvalidTransitionError",
    "FlowAbortedError",
    # Security
    "hash_secret",
    "verify_secret",
]
