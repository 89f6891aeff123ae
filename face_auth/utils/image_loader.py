"""
Image Loader Module

Still image loading for headless capture and tests:
- Raw encoded bytes
- File paths

All loaders return OpenCV BGR numpy arrays and raise InvalidImageError
on undecodable input.
"""

import io
import os
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from ..core.config import settings
from ..core.exceptions import InvalidImageError


def _pil_to_cv2(img: Image.Image) -> np.ndarray:
    """Convert PIL Image to OpenCV BGR numpy array."""
    if img.mode != "RGB":
        img = img.convert("RGB")
    return cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)


def _open_checked(
    stream,
    allowed_formats: Optional[Iterable[str]] = None,
) -> np.ndarray:
    try:
        img = Image.open(stream)
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(details=str(e)) from e

    validate_image_format(img, allowed_formats)
    return _pil_to_cv2(img)


# Core Loading Functions

def load_from_bytes(data: bytes) -> np.ndarray:
    """Load image from encoded bytes (JPEG, PNG, ...)."""
    return _open_checked(io.BytesIO(data))


def load_from_path(file_path: str) -> np.ndarray:
    """Load image from local filesystem path."""
    if not os.path.isfile(file_path):
        raise InvalidImageError("Image file not found", details=file_path)
    with open(file_path, "rb") as f:
        return _open_checked(f)


# Validation Functions

def validate_image_format(img: Image.Image, allowed_formats: Optional[Iterable[str]] = None) -> bool:
    """Check if image format is allowed."""
    allowed = frozenset(allowed_formats or settings.image.allowed_formats)
    fmt = (img.format or "").lower()
    if fmt not in allowed:
        raise InvalidImageError(
            "Unsupported image format",
            details=f"Format: {fmt or 'unknown'}, Supported: {', '.join(sorted(allowed))}",
        )
    return True


# Image Processing Utilities

def resize_if_needed(img_array: np.ndarray, max_size: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """Resize image if it exceeds max dimensions, maintaining aspect ratio."""
    h, w = img_array.shape[:2]
    max_w, max_h = max_size or settings.image.max_size

    if w <= max_w and h <= max_h:
        return img_array

    scale = min(max_w / w, max_h / h)
    new_size = (int(w * scale), int(h * scale))
    return cv2.resize(img_array, new_size, interpolation=cv2.INTER_AREA)


__all__ = [
    "load_from_bytes",
    "load_from_path",
    "validate_image_format",
    "resize_if_needed",
]
