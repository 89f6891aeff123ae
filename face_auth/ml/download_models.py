"""
Model Download

Fetches the YuNet and SFace ONNX files that OpenCVFaceModel loads.

    python -m face_auth download-models --models-dir models

A file already on disk is kept when it is at least the expected size. New
downloads are streamed to a temp file in the models directory and moved into
place only after the size (and optional SHA256) check passes, so a broken
download never leaves a half-written model behind.
"""

import os
import hashlib
import tempfile
import urllib.request
from dataclasses import dataclass
from typing import Dict, Optional

from ..core.config import settings
from ..core.logger import get_logger

logger = get_logger(__name__)

ZOO_URL = "https://github.com/opencv/opencv_zoo/raw/refs/heads/main/models"

# HTTP headers to avoid 403 errors
REQUEST_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
}

CHUNK_SIZE = 1 << 16


@dataclass(frozen=True)
class ModelFile:
    """One downloadable model and the checks its file must pass."""
    key: str
    url: str
    filename: str
    min_bytes: int
    sha256: Optional[str] = None

    def path(self, models_dir: str) -> str:
        return os.path.join(models_dir, self.filename)

    def present(self, models_dir: str) -> bool:
        path = self.path(models_dir)
        return os.path.exists(path) and os.path.getsize(path) >= self.min_bytes


MODEL_FILES: Dict[str, ModelFile] = {
    'yunet': ModelFile(
        key='yunet',
        url=f"{ZOO_URL}/face_detection_yunet/face_detection_yunet_2023mar.onnx",
        filename=settings.models.yunet_filename,
        min_bytes=100_000,
    ),
    'sface': ModelFile(
        key='sface',
        url=f"{ZOO_URL}/face_recognition_sface/face_recognition_sface_2021dec.onnx",
        filename=settings.models.sface_filename,
        min_bytes=1_000_000,
    ),
}


def _format_size(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def _fetch(model: ModelFile, target: str) -> str:
    """
    Stream model.url into target and return its SHA256.

    Raises:
        OSError: network or filesystem failure (urllib errors included)
    """
    digest = hashlib.sha256()
    request = urllib.request.Request(model.url, headers=REQUEST_HEADERS)
    with urllib.request.urlopen(request, timeout=60) as response, open(target, 'wb') as out:
        for chunk in iter(lambda: response.read(CHUNK_SIZE), b''):
            digest.update(chunk)
            out.write(chunk)
    return digest.hexdigest()


def download_model(model_key: str, models_dir: Optional[str] = None) -> bool:
    """
    Make sure one model file is available.

    Returns:
        True if the file is present (already there or freshly downloaded)
    """
    model = MODEL_FILES.get(model_key)
    if model is None:
        logger.error(f"Unknown model: {model_key}")
        return False

    models_dir = models_dir or settings.models_path
    path = model.path(models_dir)

    if model.present(models_dir):
        logger.info(f"Model {model_key} already exists ({_format_size(os.path.getsize(path))})")
        return True
    if os.path.exists(path):
        logger.warning(f"Model {model_key} is truncated ({os.path.getsize(path)} bytes), re-downloading")

    os.makedirs(models_dir, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=models_dir, prefix=f".{model_key}-", suffix=".part")
    os.close(fd)

    logger.info(f"Downloading {model_key} from {model.url}...")
    try:
        file_hash = _fetch(model, tmp_path)
        size = os.path.getsize(tmp_path)
        if size < model.min_bytes:
            logger.error(f"Downloaded {model_key} is too small ({size} bytes)")
            return False
        if model.sha256 and file_hash != model.sha256:
            logger.error(f"Downloaded {model_key} failed the SHA256 check")
            return False
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error(f"Error downloading {model_key}: {e}")
        return False
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)

    logger.info(f"Downloaded {model_key} to {path} ({_format_size(size)})")
    return True


def check_models_exist(models_dir: Optional[str] = None) -> Dict[str, bool]:
    """Which model files are present in models_dir (by name, size not checked)."""
    models_dir = models_dir or settings.models_path
    return {key: os.path.exists(model.path(models_dir)) for key, model in MODEL_FILES.items()}


def download_all(models_dir: Optional[str] = None) -> int:
    """
    Download every model.

    Returns:
        Exit code (0 for success, 1 if any model is missing afterwards)
    """
    models_dir = models_dir or settings.models_path
    failed = [key for key in MODEL_FILES if not download_model(key, models_dir)]
    if failed:
        logger.error(f"Failed to download: {', '.join(failed)}")
        return 1
    logger.info(f"All models ready in {models_dir}")
    return 0


__all__ = [
    "ModelFile",
    "MODEL_FILES",
    "download_model",
    "download_all",
    "check_models_exist",
]
