"""
Image validation oracle client
Asks a remote image-content classifier whether a photo shows a reportable
environmental issue (air, water, waste or noise source).
"""

import base64
import logging
from enum import Enum
from typing import Optional

import httpx

from campusfix.core.config import Settings
from campusfix.core.constants import (
    UNAVAILABLE_VERDICT_CONFIDENCE,
    UNAVAILABLE_VERDICT_REASON,
    UNPARSEABLE_VERDICT_CONFIDENCE,
    UNPARSEABLE_VERDICT_REASON,
)
from campusfix.core.exceptions import ValidationServiceUnavailable
from campusfix.validation.verdict import (
    ValidationVerdict,
    extract_first_json_object,
    parse_verdict,
)

logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    """What to do when the oracle cannot give a usable answer."""
    FAIL_OPEN = "fail_open"      # Accept the image with a fallback verdict
    FAIL_CLOSED = "fail_closed"  # Refuse to continue until the oracle answers


def encode_image(image_data: bytes, content_type: str = "image/jpeg") -> str:
    """Encode image bytes as a base64 data URL."""
    encoded = base64.b64encode(image_data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def unparseable_verdict() -> ValidationVerdict:
    return ValidationVerdict(
        is_valid=True,
        reason=UNPARSEABLE_VERDICT_REASON,
        confidence=UNPARSEABLE_VERDICT_CONFIDENCE,
    )


def unavailable_verdict() -> ValidationVerdict:
    return ValidationVerdict(
        is_valid=True,
        reason=UNAVAILABLE_VERDICT_REASON,
        confidence=UNAVAILABLE_VERDICT_CONFIDENCE,
    )


class ImageValidationClient:
    """
    Client for the image validation service.

    The service receives ``{"imageBase64": ...}`` and answers with
    ``{"isValid", "reason", "confidence"}``, possibly wrapped in prose.
    Its answers are not deterministic; raw responses are logged for audit.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        policy: FailurePolicy = FailurePolicy.FAIL_CLOSED,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize validation client.

        Args:
            url: Validation endpoint
            api_key: Optional bearer token
            timeout: HTTP request timeout in seconds
            policy: Behaviour when the answer cannot be parsed
            transport: Optional transport override (tests)
        """
        if not url:
            raise ValueError("Image validation URL is required")

        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.policy = policy
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageValidationClient":
        return cls(
            url=settings.image_validation_url,
            api_key=settings.image_validation_api_key,
            timeout=settings.image_validation_timeout_seconds,
            policy=(
                FailurePolicy.FAIL_OPEN
                if settings.image_validation_fail_open
                else FailurePolicy.FAIL_CLOSED
            ),
        )

    @property
    def fail_open(self) -> bool:
        return self.policy == FailurePolicy.FAIL_OPEN

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=headers,
                transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def validate(
        self,
        image_data: bytes,
        content_type: str = "image/jpeg"
    ) -> ValidationVerdict:
        """
        Validate an image.

        Args:
            image_data: Image bytes (JPEG, PNG)
            content_type: MIME type of the image

        Returns:
            ValidationVerdict

        Raises:
            ValidationServiceUnavailable: on network errors, non-2xx answers,
                service-reported errors, or unparseable answers when the
                policy is fail-closed
        """
        client = self._get_client()

        try:
            response = await client.post(
                self.url,
                json={"imageBase64": encode_image(image_data, content_type)},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Image validation request failed: {e}")
            raise ValidationServiceUnavailable() from e

        raw = response.text
        logger.info(f"Image validation raw response: {raw[:500]}")

        # The service may answer 200 with an error body
        payload = extract_first_json_object(raw)
        if payload is not None and payload.get("error"):
            logger.error(f"Image validation service error: {payload['error']}")
            raise ValidationServiceUnavailable()

        verdict = parse_verdict(raw)
        if verdict is not None:
            return verdict

        if self.fail_open:
            logger.warning("Unparseable validation answer; allowing submission (fail-open)")
            return unparseable_verdict()

        raise ValidationServiceUnavailable(
            "Image validation returned an unreadable answer. Please try again."
        )
