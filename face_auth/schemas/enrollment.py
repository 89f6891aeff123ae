"""
Enrollment Schemas

Form models for the account details and credential entry steps.
"""

import re
from typing import Dict, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Profile fields that must be filled per account role
REQUIRED_ATTRIBUTES = {
    "user": ("full_name", "phone"),
    "company": ("company_name", "industry", "city"),
}


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


class CredentialsForm(BaseModel):
    """Email + password as typed on the login step."""

    email: str = Field(..., description="Account email")
    password: SecretStr = Field(..., description="Account password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("Password must not be empty")
        return v


class EnrollmentDetails(CredentialsForm):
    """Remaining account fields supplied after the face capture."""

    role: Literal["user", "company"] = Field(
        default="user",
        description="Account type"
    )
    attributes: Dict[str, str] = Field(
        default_factory=dict,
        description="Role-specific profile fields"
    )

    @field_validator("attributes")
    @classmethod
    def strip_attributes(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {k.strip(): str(val).strip() for k, val in v.items() if k.strip()}

    @model_validator(mode="after")
    def check_required_attributes(self) -> "EnrollmentDetails":
        missing = [
            name for name in REQUIRED_ATTRIBUTES[self.role]
            if not self.attributes.get(name)
        ]
        if missing:
            raise ValueError(f"Missing required fields for {self.role}: {', '.join(missing)}")
        return self

    def display_attributes(self) -> Dict[str, str]:
        return {**self.attributes, "role": self.role}


__all__ = [
    "REQUIRED_ATTRIBUTES",
    "CredentialsForm",
    "EnrollmentDetails",
]
