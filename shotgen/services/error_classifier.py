"""
Error Classifier - Classify vendor failures for retry, rotation and user-facing messages
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from shotgen.config.constants import CONTENT_MODERATION_KEYWORDS


class FailureKind(str, Enum):
    """Closed taxonomy of generation failures"""

    AUTH_INVALID = "AUTH_INVALID"
    RATE_LIMITED = "RATE_LIMITED"
    CONTENT_MODERATION = "CONTENT_MODERATION"
    RESULT_MISSING = "RESULT_MISSING"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    VENDOR_ERROR = "VENDOR_ERROR"


ROTATE_KINDS = {FailureKind.AUTH_INVALID, FailureKind.RATE_LIMITED}
RETRYABLE_KINDS = {
    FailureKind.AUTH_INVALID,
    FailureKind.RATE_LIMITED,
    FailureKind.TIMEOUT,
    FailureKind.VENDOR_ERROR,
}


class GenerationError(Exception):
    """Base exception for classified generation failures"""

    kind: FailureKind = FailureKind.VENDOR_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def rotate(self) -> bool:
        return self.kind in ROTATE_KINDS


class AuthInvalidError(GenerationError):
    kind = FailureKind.AUTH_INVALID


class RateLimitedError(GenerationError):
    kind = FailureKind.RATE_LIMITED


class ContentModerationError(GenerationError):
    kind = FailureKind.CONTENT_MODERATION


class ResultMissingError(GenerationError):
    kind = FailureKind.RESULT_MISSING


class TaskNotFoundError(GenerationError):
    kind = FailureKind.TASK_NOT_FOUND


class GenerationTimeoutError(GenerationError):
    kind = FailureKind.TIMEOUT


class GenerationCancelledError(GenerationError):
    kind = FailureKind.CANCELLED


class VendorError(GenerationError):
    kind = FailureKind.VENDOR_ERROR


ERROR_CLASSES = {
    FailureKind.AUTH_INVALID: AuthInvalidError,
    FailureKind.RATE_LIMITED: RateLimitedError,
    FailureKind.CONTENT_MODERATION: ContentModerationError,
    FailureKind.RESULT_MISSING: ResultMissingError,
    FailureKind.TASK_NOT_FOUND: TaskNotFoundError,
    FailureKind.TIMEOUT: GenerationTimeoutError,
    FailureKind.CANCELLED: GenerationCancelledError,
    FailureKind.VENDOR_ERROR: VendorError,
}


def _body_text(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(body)


def _maybe_json(body: Any) -> Any:
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            return json.loads(body)
        except ValueError:
            return body
    return body


class ErrorClassifier:
    """
    Classify vendor HTTP failures

    Classification is a pure function of the HTTP status and response body;
    it never inspects credentials or mutates state.
    """

    def classify(self, http_status: Optional[int], body: Any = None) -> FailureKind:
        """
        Classify a failure

        Args:
            http_status: HTTP status code (None for transport failures)
            body: Response body as dict, list, bytes or text

        Returns:
            FailureKind
        """
        if http_status in (401, 403):
            return FailureKind.AUTH_INVALID
        if http_status == 429:
            return FailureKind.RATE_LIMITED
        if self.is_content_moderation(body):
            return FailureKind.CONTENT_MODERATION
        return FailureKind.VENDOR_ERROR

    def is_content_moderation(self, body: Any) -> bool:
        """True when the body mentions any moderation keyword (case-insensitive)"""
        text = _body_text(body).lower()
        if not text:
            return False
        return any(keyword.lower() in text for keyword in CONTENT_MODERATION_KEYWORDS)

    def extract_message(self, http_status: Optional[int], body: Any = None) -> str:
        """
        Extract the most specific human message from a vendor error body

        Args:
            http_status: HTTP status code
            body: Response body

        Returns:
            error.message, message, error (when a string), or a generic fallback
        """
        parsed = _maybe_json(body)
        if isinstance(parsed, dict):
            error = parsed.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if parsed.get("message"):
                return str(parsed["message"])
            if isinstance(error, str) and error:
                return error
        elif isinstance(parsed, str) and parsed.strip():
            return parsed.strip()[:500]
        return f"vendor error {http_status}" if http_status else "vendor error"

    def to_error(self, http_status: Optional[int], body: Any = None) -> GenerationError:
        """
        Build the typed exception for a failed vendor call

        Args:
            http_status: HTTP status code
            body: Response body

        Returns:
            GenerationError subclass matching the classification
        """
        kind = self.classify(http_status, body)
        message = self.extract_message(http_status, body)
        return ERROR_CLASSES[kind](message, status_code=http_status, body=body)

    def from_failure_message(self, message: str) -> GenerationError:
        """Classify a vendor-reported task failure message"""
        kind = FailureKind.CONTENT_MODERATION if self.is_content_moderation(message) else FailureKind.VENDOR_ERROR
        return ERROR_CLASSES[kind](message or "video generation failed", body=message)

    def should_rotate(self, kind: FailureKind) -> bool:
        """Whether a failure kind warrants switching to the next credential"""
        return kind in ROTATE_KINDS

    def describe(self, error: Exception) -> Dict[str, Any]:
        """
        User-facing description of a failure

        Args:
            error: Exception to describe

        Returns:
            Dict with code, message, classification, retryable, suggested_modifications
        """
        if not isinstance(error, GenerationError):
            return {
                "code": FailureKind.VENDOR_ERROR.value,
                "message": f"An unexpected error occurred: {str(error)}",
                "classification": "non_retryable",
                "retryable": False,
                "suggested_modifications": ["Please try again or contact support"],
            }

        return {
            "code": error.kind.value,
            "message": self._user_message(error),
            "classification": "retryable" if error.retryable else "non_retryable",
            "retryable": error.retryable,
            "suggested_modifications": self._suggestions(error.kind),
        }

    def _user_message(self, error: GenerationError) -> str:
        kind = error.kind
        if kind == FailureKind.AUTH_INVALID:
            return "Authentication failed. Please check API credentials"
        if kind == FailureKind.RATE_LIMITED:
            return "Rate limit exceeded for video generation service"
        if kind == FailureKind.CONTENT_MODERATION:
            return f"Content was rejected by the vendor's moderation: {error.message}"
        if kind == FailureKind.RESULT_MISSING:
            return "Task finished but the vendor returned no video URL"
        if kind == FailureKind.TASK_NOT_FOUND:
            return "Task no longer exists on the vendor side"
        if kind == FailureKind.TIMEOUT:
            return "Video generation timed out"
        if kind == FailureKind.CANCELLED:
            return "Video generation was cancelled"
        return f"Video generation service error: {error.message}"

    def _suggestions(self, kind: FailureKind) -> List[str]:
        suggestions_map = {
            FailureKind.AUTH_INVALID: ["Verify VENDOR_API_KEYS are correct and active"],
            FailureKind.RATE_LIMITED: ["Wait a few minutes and try again", "Add more API keys for rotation"],
            FailureKind.CONTENT_MODERATION: [
                "Revise the prompt to remove sensitive content",
                "Replace reference images that may violate content policy",
            ],
            FailureKind.RESULT_MISSING: ["Regenerate the group"],
            FailureKind.TASK_NOT_FOUND: ["Regenerate the group"],
            FailureKind.TIMEOUT: ["Try again in a few minutes"],
            FailureKind.CANCELLED: [],
            FailureKind.VENDOR_ERROR: ["Try again in a few minutes"],
        }
        return suggestions_map.get(kind, [])


error_classifier = ErrorClassifier()
