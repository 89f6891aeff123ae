"""
Account Record Model

One record per enrolled identity, keyed by the case-normalized email.
Records are immutable values; updates replace the whole record.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from ..pipelines.descriptor import (
    as_descriptor,
    encode_descriptor_to_base64,
    decode_descriptor_from_base64,
)


def normalize_identifier(identifier: str) -> str:
    """Case-normalize an email identifier."""
    if not isinstance(identifier, str):
        raise ValueError("Identifier must be a string")
    normalized = identifier.strip().lower()
    if not normalized:
        raise ValueError("Identifier must not be empty")
    return normalized


@dataclass(frozen=True)
class AccountRecord:
    """
    Persisted account.

    Attributes:
        identifier: Case-normalized email, primary key
        secret_hash: PBKDF2 digest of the account secret (hex)
        secret_salt: Per-record salt (hex)
        secret_iterations: PBKDF2 iteration count used for this record
        display_attributes: Free-form profile fields, including "role"
        face_descriptor: 128-dim float64 descriptor, None until enrolled
    """
    identifier: str
    secret_hash: str
    secret_salt: str
    secret_iterations: int
    display_attributes: Dict[str, str] = field(default_factory=dict)
    face_descriptor: Optional[np.ndarray] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "identifier", normalize_identifier(self.identifier))
        object.__setattr__(self, "display_attributes", dict(self.display_attributes))

        if self.face_descriptor is not None:
            descriptor = as_descriptor(self.face_descriptor).copy()
            descriptor.setflags(write=False)
            object.__setattr__(self, "face_descriptor", descriptor)

    @property
    def has_biometric(self) -> bool:
        return self.face_descriptor is not None

    @property
    def role(self) -> Optional[str]:
        return self.display_attributes.get("role")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON layout."""
        return {
            "identifier": self.identifier,
            "secret_hash": self.secret_hash,
            "secret_salt": self.secret_salt,
            "secret_iterations": self.secret_iterations,
            "face_descriptor": (
                encode_descriptor_to_base64(self.face_descriptor)
                if self.face_descriptor is not None else None
            ),
            "display_attributes": dict(self.display_attributes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountRecord":
        encoded = data.get("face_descriptor")
        return cls(
            identifier=data["identifier"],
            secret_hash=data["secret_hash"],
            secret_salt=data["secret_salt"],
            secret_iterations=int(data["secret_iterations"]),
            display_attributes=data.get("display_attributes") or {},
            face_descriptor=decode_descriptor_from_base64(encoded) if encoded else None,
        )


__all__ = [
    "AccountRecord",
    "normalize_identifier",
]
