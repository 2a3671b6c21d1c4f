"""
Campus Fix - Image Validation Module
Client and verdict types for the image-content oracle.
"""

from campusfix.validation.image_validator import (
    FailurePolicy,
    ImageValidationClient,
    encode_image,
    unavailable_verdict,
    unparseable_verdict,
)
from campusfix.validation.verdict import (
    ValidationVerdict,
    extract_first_json_object,
    parse_verdict,
)

__all__ = [
    "FailurePolicy",
    "ImageValidationClient",
    "encode_image",
    "unavailable_verdict",
    "unparseable_verdict",
    "ValidationVerdict",
    "extract_first_json_object",
    "parse_verdict",
]
