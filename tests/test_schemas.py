"""Tests for the form schemas."""

import pytest
from pydantic import ValidationError

from face_auth.schemas import AppStatusResponse, CredentialsForm, EnrollmentDetails, FlowStatus


class TestCredentialsForm:

    def test_email_normalized(self):
        form = CredentialsForm(email="  Ada@Example.COM ", password="pw1")
        assert form.email == "ada@example.com"

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            CredentialsForm(email="ada", password="pw1")

    def test_password_hidden_in_repr(self):
        form = CredentialsForm(email="a@x.com", password="pw1")
        assert "pw1" not in repr(form)
        assert form.password.get_secret_value() == "pw1"

    def test_empty_password(self):
        with pytest.raises(ValidationError):
            CredentialsForm(email="a@x.com", password="")


class TestEnrollmentDetails:

    def test_user_requires_name_and_phone(self):
        with pytest.raises(ValidationError) as exc_info:
            EnrollmentDetails(email="a@x.com", password="pw1", attributes={"full_name": "Ada"})
        assert "phone" in str(exc_info.value)

    def test_company_fields(self):
        details = EnrollmentDetails(
            email="hr@acme.io",
            password="pw1",
            role="company",
            attributes={"company_name": "Acme", "industry": "Tools", "city": "Oslo"},
        )
        assert details.display_attributes()["role"] == "company"

    def test_blank_field_counts_as_missing(self):
        with pytest.raises(ValidationError):
            EnrollmentDetails(
                email="a@x.com",
                password="pw1",
                attributes={"full_name": "   ", "phone": "555"},
            )

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            EnrollmentDetails(
                email="a@x.com",
                password="pw1",
                role="admin",
                attributes={"full_name": "Ada", "phone": "555"},
            )

    def test_attributes_stripped(self):
        details = EnrollmentDetails(
            email="a@x.com",
            password="pw1",
            attributes={" full_name ": " Ada ", "phone": "555"},
        )
        assert details.display_attributes() == {"full_name": "Ada", "phone": "555", "role": "user"}


class TestStatusSchemas:

    def test_flow_status_defaults(self):
        status = FlowStatus(flow="enrollment", state="camera_ready")
        assert status.attempts == 0
        assert status.distance is None

    def test_flow_status_example_in_schema(self):
        example = FlowStatus.model_config["json_schema_extra"]["example"]
        assert FlowStatus.model_json_schema()["example"] == example
        assert FlowStatus(**example).rejection == "biometric_mismatch"

    def test_app_status_json(self):
        status = AppStatusResponse(
            store_backend="memory",
            face_model="dlib",
            models_path="models",
            model_files={"yunet": True, "sface": False},
            model_ready=False,
            camera_provider="OpenCVCamera",
            multiple_faces_policy="reject",
            match_threshold=0.6,
        )
        assert '"match_threshold":0.6' in status.model_dump_json()
