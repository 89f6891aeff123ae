"""
Flows Module

The two user journeys: EnrollmentFlow (register with a face) and
VerificationFlow (password + face login).
"""

from .base import FailureReason, RejectionReason, failure_reason_for
from .enrollment import EnrollmentState, EnrollmentFlow
from .verification import VerificationState, VerificationFlow

__all__ = [
    "FailureReason",
    "RejectionReason",
    "failure_reason_for",
    "EnrollmentState",
    "EnrollmentFlow",
    "VerificationState",
    "VerificationFlow",
]
