"""
Centralized Configuration for Face Authentication

All configuration is loaded from environment variables with sensible defaults.
Uses Pydantic Settings for validation and type coercion.

Usage:
    from face_auth.core.config import settings

    print(settings.models.models_path)
    print(settings.store.backend)
"""

import os
from typing import Optional, Tuple, Literal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# SETTINGS CLASSES
# =============================================================================

class ModelSettings(BaseSettings):
    """Face model configuration."""

    model_config = SettingsConfigDict(extra="ignore", protected_namespaces=())

    # Provider: "dlib" descriptors are calibrated for the 0.6 Euclidean
    # threshold; "opencv" (YuNet + SFace) is rescaled to it, see sface_l2_threshold
    face_model: Literal["dlib", "opencv"] = Field(
        default="dlib",
        description="Face model provider"
    )

    # Paths
    models_path: str = Field(
        default="models",
        description="Path to ONNX model files"
    )

    # dlib / face_recognition settings
    dlib_detection_model: Literal["hog", "cnn"] = Field(
        default="hog",
        description="dlib face detector (cnn needs a GPU build to be practical)"
    )
    dlib_upsample: int = Field(
        default=1,
        ge=0,
        description="Times to upsample the frame before detecting"
    )
    dlib_num_jitters: int = Field(
        default=1,
        ge=1,
        description="Re-samples averaged per descriptor"
    )

    # YuNet (face detection) settings
    yunet_filename: str = Field(
        default="face_detection_yunet_2023mar.onnx",
        description="YuNet model filename"
    )
    yunet_input_size: Tuple[int, int] = Field(
        default=(640, 640),
        description="YuNet input size (width, height)"
    )
    yunet_score_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="YuNet detection confidence threshold"
    )
    yunet_nms_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="YuNet NMS threshold"
    )
    yunet_top_k: int = Field(
        default=5000,
        description="YuNet maximum detections"
    )

    # SFace (face descriptor) settings
    sface_filename: str = Field(
        default="face_recognition_sface_2021dec.onnx",
        description="SFace model filename"
    )
    sface_l2_threshold: float = Field(
        default=1.128,
        gt=0.0,
        description="Same-person L2 distance between unit SFace features (OpenCV reference value)"
    )
    feature_dim: int = Field(
        default=128,
        description="Face descriptor dimension"
    )

    multiple_faces_policy: Literal["reject", "best"] = Field(
        default="reject",
        description="What to do when more than one face is in frame"
    )

    @property
    def yunet_path(self) -> str:
        """Full path to YuNet model."""
        return os.path.join(self.models_path, self.yunet_filename)

    @property
    def sface_path(self) -> str:
        """Full path to SFace model."""
        return os.path.join(self.models_path, self.sface_filename)


class CameraSettings(BaseSettings):
    """Camera capture configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CAMERA_",
        extra="ignore",
    )

    device_index: int = Field(default=0, description="OpenCV VideoCapture index")
    warmup_frames: int = Field(
        default=5,
        ge=0,
        description="Frames discarded after opening so exposure can settle"
    )
    frame_width: Optional[int] = Field(default=None, description="Requested frame width")
    frame_height: Optional[int] = Field(default=None, description="Requested frame height")


class StoreSettings(BaseSettings):
    """Credential store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        extra="ignore",
    )

    backend: Literal["memory", "file", "postgres"] = Field(
        default="file",
        description="Credential store backend"
    )
    file_path: str = Field(
        default="data/accounts.json",
        description="JSON file used by the file backend"
    )
    key_prefix: str = Field(
        default="account:",
        description="Prefix prepended to the identifier to form the store key"
    )


class DatabaseSettings(BaseSettings):
    """Database configuration for the postgres store backend."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    database_url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full database connection URL"
    )
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="face_auth", description="Database name")
    user: str = Field(default="postgres", description="Database user")
    password: str = Field(default="", description="Database password")

    table_name: str = Field(
        default="accounts",
        description="Account records table name"
    )

    # Connection pool
    pool_min_conn: int = Field(default=1, description="Min pool connections")
    pool_max_conn: int = Field(default=5, description="Max pool connections")

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Reject table names that are not plain (optionally schema-qualified) identifiers."""
        import re
        if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)?$", v):
            raise ValueError(f"Invalid table name: {v}")
        return v


class SecuritySettings(BaseSettings):
    """Secret hashing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        extra="ignore",
    )

    pbkdf2_iterations: int = Field(
        default=310_000,
        ge=1,
        description="PBKDF2-HMAC-SHA256 iteration count"
    )
    salt_bytes: int = Field(default=16, ge=8, description="Per-record salt size")


class FlowSettings(BaseSettings):
    """Enrollment / verification flow policy."""

    model_config = SettingsConfigDict(
        env_prefix="FLOW_",
        extra="ignore",
    )

    max_match_attempts: Optional[int] = Field(
        default=5,
        description="Biometric attempts per verification (0 = unlimited)"
    )

    @field_validator("max_match_attempts", mode="before")
    @classmethod
    def parse_max_attempts(cls, v):
        """Convert 0 or empty string to None."""
        if v in (0, "0", "", None):
            return None
        return int(v)


class ImageSettings(BaseSettings):
    """Still image loading configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    max_width: int = Field(
        default=1920,
        description="Maximum image width"
    )
    max_height: int = Field(
        default=1920,
        description="Maximum image height"
    )
    allowed_formats: Tuple[str, ...] = Field(
        default=("jpg", "jpeg", "png", "webp", "bmp"),
        description="Allowed image formats"
    )

    @property
    def max_size(self) -> Tuple[int, int]:
        """Return max size as (width, height) tuple."""
        return (self.max_width, self.max_height)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path"
    )


class Settings(BaseSettings):
    """
    Main settings class that combines all configuration sections.

    Usage:
        from face_auth.core.config import settings

        print(settings.camera.device_index)
        print(settings.store.backend)
        print(settings.models.multiple_faces_policy)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-settings
    models: ModelSettings = Field(default_factory=ModelSettings)
    camera: CameraSettings = Field(default_factory=CameraSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    flow: FlowSettings = Field(default_factory=FlowSettings)
    image: ImageSettings = Field(default_factory=ImageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def models_path(self) -> str:
        return self.models.models_path


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Default settings instance
settings = get_settings()


# =============================================================================
# ENVIRONMENT VARIABLE REFERENCE
# =============================================================================
"""
Environment Variables Reference:

Model Settings:
    FACE_MODEL              - dlib | opencv (default: dlib)
    MODELS_PATH             - Path to ONNX models for opencv (default: models)
    DLIB_DETECTION_MODEL    - hog | cnn (default: hog)
    DLIB_NUM_JITTERS        - Re-samples per descriptor (default: 1)
    SFACE_L2_THRESHOLD      - SFace same-person unit L2 distance (default: 1.128)
    YUNET_SCORE_THRESHOLD   - Detection threshold (default: 0.7)
    MULTIPLE_FACES_POLICY   - reject | best (default: reject)

Camera Settings:
    CAMERA_DEVICE_INDEX     - VideoCapture index (default: 0)
    CAMERA_WARMUP_FRAMES    - Frames dropped after open (default: 5)
    CAMERA_FRAME_WIDTH      - Requested width (default: driver default)
    CAMERA_FRAME_HEIGHT     - Requested height (default: driver default)

Store Settings:
    STORE_BACKEND           - memory | file | postgres (default: file)
    STORE_FILE_PATH         - JSON file for the file backend (default: data/accounts.json)
    STORE_KEY_PREFIX        - Store key prefix (default: account:)

Database Settings (postgres backend):
    DATABASE_URL            - Full connection URL (overrides individual settings)
    DB_HOST                 - Database host (default: localhost)
    DB_PORT                 - Database port (default: 5432)
    DB_NAME                 - Database name (default: face_auth)
    DB_USER                 - Database user (default: postgres)
    DB_PASSWORD             - Database password (default: "")
    DB_TABLE_NAME           - Account table (default: accounts)

Security Settings:
    SECURITY_PBKDF2_ITERATIONS - Hash iterations (default: 310000)
    SECURITY_SALT_BYTES     - Salt size in bytes (default: 16)

Flow Settings:
    FLOW_MAX_MATCH_ATTEMPTS - Biometric attempts per login (default: 5, 0 = unlimited)

Logging Settings:
    LOG_LEVEL               - Log level (default: INFO)
    LOG_FILE                - Optional log file path
"""


__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "ModelSettings",
    "CameraSettings",
    "StoreSettings",
    "DatabaseSettings",
    "SecuritySettings",
    "FlowSettings",
    "ImageSettings",
    "LoggingSettings",
]
