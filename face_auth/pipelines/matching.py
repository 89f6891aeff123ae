"""
Match Decision

Euclidean distance between two face descriptors and a fixed-threshold verdict.
Lower distance means more similar; a distance of exactly MATCH_THRESHOLD is
not a match.
"""

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from ..core.exceptions import InvalidFeatureError

# Fixed decision threshold, not user-configurable
MATCH_THRESHOLD = 0.6

DescriptorLike = Union[np.ndarray, Sequence[float]]


@dataclass(frozen=True)
class MatchResult:
    """Result of comparing two descriptors."""
    distance: float
    is_match: bool
    threshold: float = MATCH_THRESHOLD


def descriptor_distance(a: DescriptorLike, b: DescriptorLike) -> float:
    """
    Euclidean distance between two descriptors.

    Raises:
        InvalidFeatureError: descriptors differ in length
    """
    va = np.asarray(a, dtype=np.float64).flatten()
    vb = np.asarray(b, dtype=np.float64).flatten()

    if va.shape != vb.shape:
        raise InvalidFeatureError(
            expected_dim=va.shape[0],
            actual_dim=vb.shape[0],
            message="Descriptor length mismatch",
        )

    return float(np.linalg.norm(va - vb))


def is_match(a: DescriptorLike, b: DescriptorLike) -> bool:
    """True iff distance(a, b) < MATCH_THRESHOLD."""
    return descriptor_distance(a, b) < MATCH_THRESHOLD


def compare_descriptors(a: DescriptorLike, b: DescriptorLike) -> MatchResult:
    distance = descriptor_distance(a, b)
    return MatchResult(distance=distance, is_match=distance < MATCH_THRESHOLD)


__all__ = [
    "MATCH_THRESHOLD",
    "MatchResult",
    "descriptor_distance",
    "is_match",
    "compare_descriptors",
]
