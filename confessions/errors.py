"""
Exception hierarchy for confession handling.

Every error carries the HTTP status code, a stable machine-readable code,
a short message and an optional user-facing notification. The same classes
are raised by the HTTP API, the SQL backend and the Lambda resolver, so a
rejection means the same thing wherever it happens.
"""

from typing import Optional


class ConfessionError(Exception):
    """Base class for all errors converted into an error response."""

    status_code: int = 500
    code: str = "SERVER_ERROR"
    default_message: str = "Server error"
    notification: Optional[str] = None

    def __init__(self, message: Optional[str] = None, notification: Optional[str] = None):
        self.message = message or self.default_message
        if notification is not None:
            self.notification = notification
        # "CODE: message" survives transports that only keep the error string
        super().__init__(f"{self.code}: {self.message}")


# =============================================================================
# Input validation (400)
# =============================================================================

class InvalidRequestError(ConfessionError):
    status_code = 400
    code = "VALIDATION"
    default_message = "Invalid request"


class InvalidJSONError(InvalidRequestError):
    code = "INVALID_JSON"
    default_message = "Invalid JSON body"


class MessageRequiredError(InvalidRequestError):
    default_message = "Message is required"
    notification = "कुछ तो लिखो! 📝"


class MessageTooLongError(InvalidRequestError):
    default_message = "Message too long (max 500)"
    notification = "थोड़ा छोटा लिखो! Max 500 characters 📏"


class InvalidPageTokenError(InvalidRequestError):
    default_message = "Invalid nextToken"


# =============================================================================
# Content policy (400)
# =============================================================================

class ContentRejectedError(ConfessionError):
    status_code = 400
    code = "CONTENT_REJECTED"
    default_message = "Content rejected"


class ProfanityDetectedError(ContentRejectedError):
    code = "PROFANITY"
    default_message = "Inappropriate content detected"
    notification = "अच्छा लिखो! 🙏 No bad words please."


class ToxicContentError(ContentRejectedError):
    code = "TOXIC"
    default_message = "Content flagged as potentially harmful"
    notification = "अच्छा लिखो! 🙏 Keep it positive."


# =============================================================================
# Rate limiting (429)
# =============================================================================

class RateLimitExceededError(ConfessionError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests. Please wait a minute."


# =============================================================================
# Upstream / backend failures (500)
# =============================================================================

class UpstreamServiceError(ConfessionError):
    status_code = 500
    code = "UPSTREAM_ERROR"
    default_message = "Upstream service error"
    notification = "Something went wrong. Try again!"


class SentimentServiceError(UpstreamServiceError):
    default_message = "Sentiment service unavailable"


# Codes that can travel inside a GraphQL error message and be rebuilt
ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        InvalidRequestError,
        ProfanityDetectedError,
        ToxicContentError,
        RateLimitExceededError,
    )
}


def error_from_message(text: str) -> Optional[ConfessionError]:
    """
    Rebuild a typed error from a "CODE: message" string.

    Returns None when the text carries no known code.
    """
    code, sep, message = (text or "").partition(":")
    if not sep:
        return None
    cls = ERRORS_BY_CODE.get(code.strip())
    if cls is None:
        return None
    return cls(message.strip() or None)
