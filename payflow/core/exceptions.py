from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for API failures."""
    # Authentication errors (1xxx)
    UNAUTHORIZED = "AUTH_1001"
    FORBIDDEN = "AUTH_1002"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "VAL_2001"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"
    RATE_LIMIT_EXCEEDED = "RES_3003"

    # Server errors (4xxx)
    SERVER_ERROR = "SRV_4001"
    DECODING_FAILED = "SRV_4002"

    # Network errors (5xxx)
    NO_INTERNET_CONNECTION = "NET_5001"
    TIMEOUT = "NET_5002"
    NETWORK_ERROR = "NET_5003"

    # Catch-all (9xxx)
    UNKNOWN = "SYS_9001"


class ApiError(Exception):
    """Base exception for every failure surfaced by the transport.

    The set of subclasses is closed: new failure causes are added to the
    classifier and get a subclass here, callers never invent their own.

    Attributes:
        error_code: Programmatic error code
        message: Message carried by the failure (server text for validation errors)
        status_code: HTTP status of the response, when there was one
        details: Additional error details as a dictionary
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "Something went wrong. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Fixed, non-technical text to show to the user."""
        return self.default_message

    def __eq__(self, other: object) -> bool:
        return (
            type(self) is type(other)
            and self.message == other.message
            and self.status_code == other.status_code
        )

    def __hash__(self) -> int:
        return hash((type(self), self.message, self.status_code))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class Unauthorized(ApiError):
    error_code = ErrorCode.UNAUTHORIZED
    default_message = "Your session has expired. Please login again."


class Forbidden(ApiError):
    error_code = ErrorCode.FORBIDDEN
    default_message = "You don't have permission to perform this action."


class NotFound(ApiError):
    error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "The requested resource was not found."


class ValidationError(ApiError):
    """Request rejected for its content; the message is shown as-is."""

    error_code = ErrorCode.VALIDATION_FAILED
    default_message = "Please check your input"

    @property
    def user_message(self) -> str:
        return self.message


class RateLimitExceeded(ApiError):
    error_code = ErrorCode.RATE_LIMIT_EXCEEDED
    default_message = "Too many requests. Please try again later."


class ServerError(ApiError):
    error_code = ErrorCode.SERVER_ERROR
    default_message = "Server error. Please try again later."


class DecodingError(ApiError):
    error_code = ErrorCode.DECODING_FAILED
    default_message = "Failed to process server response."


class NoInternetConnection(ApiError):
    error_code = ErrorCode.NO_INTERNET_CONNECTION
    default_message = "No internet connection. Please check your network."


class Timeout(ApiError):
    error_code = ErrorCode.TIMEOUT
    default_message = "Request timed out. Please try again."


class NetworkError(ApiError):
    error_code = ErrorCode.NETWORK_ERROR
    default_message = "Unable to connect. Please check your network and try again."

    @property
    def user_message(self) -> str:
        # messages are fixed by the classifier ("cannot reach server", ...)
        return f"Network error: {self.message}"


class Unknown(ApiError):
    """Unclassified failure; the only variant whose raw text reaches the user."""

    error_code = ErrorCode.UNKNOWN

    @property
    def user_message(self) -> str:
        return self.message
