"""
Image validation verdicts and tolerant parsing of oracle answers.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Image was not accepted as a reportable issue"


@dataclass(frozen=True)
class ValidationVerdict:
    """Answer of the image-content oracle for one image."""
    is_valid: bool
    reason: str
    confidence: int

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be within 0-100: {self.confidence}")
        if not self.is_valid and not self.reason:
            raise ValueError("A rejected verdict needs a reason")

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ValidationVerdict":
        """
        Build a verdict from the oracle's JSON object.

        Raises:
            ValueError: if ``isValid`` is missing or not a boolean
        """
        raw_valid = data.get("isValid")
        if isinstance(raw_valid, str) and raw_valid.lower() in ("true", "false"):
            raw_valid = raw_valid.lower() == "true"
        if not isinstance(raw_valid, bool):
            raise ValueError(f"isValid is not a boolean: {raw_valid!r}")

        reason = str(data.get("reason") or "").strip()
        if not raw_valid and not reason:
            reason = DEFAULT_REJECTION_REASON

        try:
            confidence = int(round(float(data.get("confidence", 0))))
        except (TypeError, ValueError, OverflowError):
            confidence = 0
        confidence = min(100, max(0, confidence))

        return cls(is_valid=raw_valid, reason=reason, confidence=confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "reason": self.reason,
            "confidence": self.confidence,
        }


def extract_first_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Find the first well-formed JSON object embedded in text.

    Handles answers wrapped in prose or markdown code fences.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    return None


def parse_verdict(text: str) -> Optional[ValidationVerdict]:
    """Parse raw oracle output into a verdict, or None if it cannot be read."""
    payload = extract_first_json_object(text or "")
    if payload is None:
        logger.warning("No JSON object found in oracle response")
        return None

    try:
        return ValidationVerdict.from_payload(payload)
    except ValueError as e:
        logger.warning(f"Malformed oracle verdict: {e}")
        return None
