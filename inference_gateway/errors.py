"""
Inference Gateway SDK - Error Classes

Exceptions raised by the clients.
"""

from typing import Any, Dict, Optional


class InferenceGatewayError(Exception):
    """
    Base exception for the Inference Gateway SDK.

    All SDK errors inherit from this class.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        status_code: HTTP status code if applicable
        retryable: Whether the request can be retried
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: str = "unknown",
        status_code: int = 500,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"status_code={self.status_code})"
        )

    @classmethod
    def from_response(
        cls,
        response_data: Any,
        status_code: int,
        headers: Optional[Dict[str, str]] = None
    ) -> "InferenceGatewayError":
        """
        Create an error from a gateway error body.

        The gateway answers `{"error": "message"}`; object-shaped errors
        (`{"error": {"message", "code", ...}}`) from upstream providers are
        accepted as well.
        """
        error: Any = None
        if isinstance(response_data, dict):
            error = response_data.get("error", response_data.get("message"))

        if isinstance(error, dict):
            message = error.get("message") or "Unknown error"
            code = error.get("code") or error.get("type")
            details = {k: v for k, v in error.items() if k != "message"}
        elif error:
            message = str(error)
            code = None
            details = {}
        else:
            message = f"HTTP {status_code}"
            code = None
            details = {"body": response_data} if response_data else {}

        if status_code in (401, 403):
            return AuthenticationError(
                message=message,
                code=code or "authentication_error",
                status_code=status_code,
                details=details,
            )
        if status_code == 429:
            return RateLimitError(
                message=message,
                retry_after=_parse_retry_after(headers),
                status_code=status_code,
                details=details,
            )
        if status_code in (400, 404, 422):
            return InvalidRequestError(
                message=message,
                code=code or "invalid_request",
                status_code=status_code,
                details=details,
            )
        if status_code == 408 or status_code == 504:
            return TimeoutError(message=message, status_code=status_code, details=details)
        if status_code >= 500:
            return ProviderError(
                message=message,
                code=code or "provider_error",
                status_code=status_code,
                details=details,
            )

        return cls(
            message=message,
            code=code or "unknown",
            status_code=status_code,
            details=details,
        )


def _parse_retry_after(headers: Optional[Dict[str, str]]) -> int:
    if not headers:
        return 60
    value = headers.get("retry-after") or headers.get("Retry-After")
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 60


class AuthenticationError(InferenceGatewayError):
    """
    API key is invalid, missing or lacks permission.

    Raised for 401 and 403 responses.
    """

    def __init__(
        self,
        message: str = "Invalid or missing API key",
        code: str = "authentication_error",
        **kwargs
    ):
        kwargs.pop("retryable", None)
        super().__init__(
            message=message,
            code=code,
            status_code=kwargs.pop("status_code", 401),
            retryable=False,
            **kwargs
        )


class RateLimitError(InferenceGatewayError):
    """
    Rate limit exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        **kwargs
    ):
        kwargs.pop("retryable", None)
        kwargs.pop("code", None)
        super().__init__(
            message=message,
            code="rate_limit_exceeded",
            status_code=kwargs.pop("status_code", 429),
            retryable=True,
            **kwargs
        )
        self.retry_after = retry_after


class InvalidRequestError(InferenceGatewayError):
    """
    Request was rejected by the gateway.

    Raised for 400, 404 and 422 responses (unknown model, bad payload,
    unknown provider).
    """

    def __init__(self, message: str, **kwargs):
        kwargs.pop("retryable", None)
        super().__init__(
            message=message,
            code=kwargs.pop("code", "invalid_request"),
            status_code=kwargs.pop("status_code", 400),
            retryable=False,
            **kwargs
        )


class ProviderError(InferenceGatewayError):
    """
    Error from the gateway or the provider behind it (5xx).

    Attributes:
        provider: The provider that caused the error, when known
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "provider_error"),
            status_code=kwargs.pop("status_code", 502),
            retryable=kwargs.pop("retryable", True),
            **kwargs
        )
        self.provider = provider


class TimeoutError(InferenceGatewayError):
    """Request timed out."""

    def __init__(self, message: str = "Request timed out", **kwargs):
        kwargs.pop("retryable", None)
        kwargs.pop("code", None)
        super().__init__(
            message=message,
            code="timeout",
            status_code=kwargs.pop("status_code", 408),
            retryable=True,
            **kwargs
        )


class ConnectionError(InferenceGatewayError):
    """
    Failed to connect to the gateway.

    This error occurs when:
    - Network is unavailable
    - DNS resolution fails
    - Connection is refused
    """

    def __init__(self, message: str = "Failed to connect to gateway", **kwargs):
        kwargs.pop("retryable", None)
        kwargs.pop("code", None)
        super().__init__(
            message=message,
            code="connection_error",
            status_code=kwargs.pop("status_code", 503),
            retryable=True,
            **kwargs
        )


class StreamError(InferenceGatewayError):
    """
    Stream failed after the response head arrived.

    Raised when the transport breaks mid-stream, or when the stream ends
    without a terminal event and nothing was accumulated.

    Attributes:
        partial_content: Content received before the failure
    """

    def __init__(
        self,
        message: str = "Stream interrupted",
        partial_content: str = "",
        **kwargs
    ):
        kwargs.pop("retryable", None)
        super().__init__(
            message=message,
            code=kwargs.pop("code", "stream_error"),
            status_code=kwargs.pop("status_code", 500),
            retryable=False,  # Can't retry mid-stream
            **kwargs
        )
        self.partial_content = partial_content


class CallbackError(InferenceGatewayError):
    """
    A caller-supplied stream callback raised.

    The original exception is chained as `__cause__`.

    Attributes:
        callback: Name of the failing callback, e.g. "on_content"
    """

    def __init__(self, callback: str, message: Optional[str] = None, **kwargs):
        kwargs.pop("retryable", None)
        kwargs.pop("code", None)
        super().__init__(
            message=message or f"Stream callback {callback} failed",
            code="callback_error",
            status_code=kwargs.pop("status_code", 0),
            retryable=False,
            **kwargs
        )
        self.callback = callback


def is_retryable_error(error: Any) -> bool:
    """
    Check if an error is retryable.

    Infrastructure errors (rate limits, timeouts, connection issues,
    provider errors) are retryable. Semantic errors (invalid request,
    authentication) are not.
    """
    if isinstance(error, InferenceGatewayError):
        return error.retryable

    return False
