"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from face_auth.core.config import (
    DatabaseSettings,
    FlowSettings,
    ModelSettings,
    Settings,
    StoreSettings,
    get_settings,
)


class TestSettings:

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_test_environment_applied(self):
        settings = get_settings()
        assert settings.security.pbkdf2_iterations == 1000
        assert settings.store.backend == "memory"

    def test_model_paths(self, monkeypatch):
        monkeypatch.setenv("MODELS_PATH", "/opt/models")
        models = ModelSettings()
        assert models.yunet_path == "/opt/models/face_detection_yunet_2023mar.onnx"
        assert models.sface_path.endswith("face_recognition_sface_2021dec.onnx")
        assert Settings(models=models).models_path == "/opt/models"

    def test_multiple_faces_policy(self, monkeypatch):
        monkeypatch.setenv("MULTIPLE_FACES_POLICY", "best")
        assert ModelSettings().multiple_faces_policy == "best"
        monkeypatch.setenv("MULTIPLE_FACES_POLICY", "first")
        with pytest.raises(ValidationError):
            ModelSettings()

    def test_store_backend_env(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "file")
        monkeypatch.setenv("STORE_FILE_PATH", "/tmp/accounts.json")
        store = StoreSettings()
        assert store.backend == "file"
        assert store.file_path == "/tmp/accounts.json"
        assert store.key_prefix == "account:"

    def test_database_url_alias(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/face")
        assert DatabaseSettings().database_url == "postgresql://u:p@db/face"

    def test_table_name_validated(self):
        assert DatabaseSettings(table_name="auth.accounts").table_name == "auth.accounts"
        with pytest.raises(ValidationError):
            DatabaseSettings(table_name="accounts; DROP TABLE x")

    @pytest.mark.parametrize("raw, expected", [("0", None), ("", None), ("7", 7)])
    def test_max_match_attempts(self, monkeypatch, raw, expected):
        monkeypatch.setenv("FLOW_MAX_MATCH_ATTEMPTS", raw)
        assert FlowSettings().max_match_attempts == expected
