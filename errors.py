"""Error taxonomy shared by the client, analyzer, formatter and webhook."""

import logging

logger = logging.getLogger(__name__)


class ReviewError(Exception):
    """Base class for every error ADOLens raises on purpose.

    Carries an HTTP-like ``status_code``, a stable machine-readable ``code``
    and a ``details`` dict that is safe to return to callers.
    """

    default_status = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "statusCode": self.status_code,
            "details": self.details,
        }


class ValidationError(ReviewError):
    """Bad or missing input, detected before any I/O."""

    default_status = 400
    default_code = "VALIDATION_ERROR"


class RemoteServiceError(ReviewError):
    """Non-2xx response from Azure DevOps."""

    default_code = "AZURE_DEVOPS_ERROR"


class TransportError(ReviewError):
    """The request never got a response (DNS, refused connection, reset).

    Not a ``RemoteServiceError``: there is no HTTP status or body. Retried
    like a 5xx response.
    """

    default_status = 503
    default_code = "TRANSPORT_ERROR"


class RequestTimeoutError(ReviewError):
    """The request exceeded its deadline."""

    default_status = 408
    default_code = "TIMEOUT"


class ParseError(ReviewError):
    """The response body could not be decoded."""

    default_status = 502
    default_code = "PARSE_ERROR"


class UnsupportedFormatError(ReviewError):
    """Report formatter was asked for a format it does not know."""

    default_status = 400
    default_code = "UNSUPPORTED_FORMAT"


class WebhookError(ReviewError):
    """Bad webhook signature or payload shape."""

    default_status = 400
    default_code = "WEBHOOK_ERROR"


class CircuitOpenError(ReviewError):
    """Calls are short-circuited while the breaker is open."""

    default_status = 503
    default_code = "CIRCUIT_BREAKER_OPEN"


def handle_error(error: Exception, context: dict | None = None) -> dict:
    """Log *error* and build a response body that never leaks internals.

    ``ReviewError`` instances are reported with their own message and code;
    anything else collapses to a generic 500 body.
    """
    logger.error("Error occurred: %s (context=%s)", error, context or {}, exc_info=error)

    if isinstance(error, ReviewError):
        return {"success": False, "error": error.to_dict()}

    return {
        "success": False,
        "error": {
            "message": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
            "statusCode": 500,
        },
    }
