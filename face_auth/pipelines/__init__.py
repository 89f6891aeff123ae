"""
Pipelines Module

Descriptor extraction and match decision logic, separated from the flows
that orchestrate them.
"""

from .descriptor import (
    FEATURE_DIMENSION,
    DescriptorExtractor,
    extract_descriptor,
    as_descriptor,
    validate_feature,
    encode_descriptor_to_base64,
    decode_descriptor_from_base64,
)
from .matching import (
    MATCH_THRESHOLD,
    MatchResult,
    descriptor_distance,
    is_match,
    compare_descriptors,
)

__all__ = [
    # Descriptor extraction
    "FEATURE_DIMENSION",
    "DescriptorExtractor",
    "extract_descriptor",
    "as_descriptor",
    "validate_feature",
    "encode_descriptor_to_base64",
    "decode_descriptor_from_base64",
    # Matching
    "MATCH_THRESHOLD",
    "MatchResult",
    "descriptor_distance",
    "is_match",
    "compare_descriptors",
]
