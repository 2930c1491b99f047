"""
Inference Gateway SDK - Streaming Error Records

Errors reported to `on_error` while a stream is being consumed.

Key principle:
- Non-fatal errors (malformed frame, gateway-reported error, truncation
  with content) are reported and the stream carries on or finishes
- Fatal errors end the call; the raised exception carries the same
  information as the record
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class StreamErrorType(str, Enum):
    """Types of streaming errors."""
    # Before any content
    CONNECTION_FAILED = "connection_failed"
    HTTP_ERROR = "http_error"

    # Recoverable, stream continues
    MALFORMED_FRAME = "malformed_frame"
    PROVIDER_ERROR = "provider_error"

    # Terminal
    STREAM_TRUNCATED = "stream_truncated"
    STREAM_INTERRUPTED = "stream_interrupted"
    CALLBACK_FAILED = "callback_failed"


@dataclass
class StreamError:
    """
    An error observed while streaming.

    Contains everything needed to explain the failure to the caller,
    including the content delivered before it happened.
    """
    type: StreamErrorType
    message: str
    fatal: bool = False
    stream_id: str = ""

    occurred_at: float = field(default_factory=time.time)

    # Content state at error time
    partial_content: Optional[str] = None
    events_applied: int = 0

    # Error details
    raw: Optional[str] = None
    http_status: Optional[int] = None
    exception: Optional[BaseException] = None

    @property
    def content_started(self) -> bool:
        return bool(self.partial_content)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging or re-serialization."""
        result: Dict[str, Any] = {
            "error": {
                "type": self.type.value,
                "message": self.message,
                "fatal": self.fatal,
                "stream_id": self.stream_id,
            }
        }

        if self.partial_content:
            result["partial_content"] = self.partial_content
            result["events_applied"] = self.events_applied

        if self.http_status is not None:
            result["error"]["http_status"] = self.http_status
        if self.raw is not None:
            result["error"]["raw"] = self.raw

        return result


class StreamErrorBuilder:
    """Builder for stream errors that carries the stream's content state."""

    def __init__(self, stream_id: str = ""):
        self.stream_id = stream_id
        self._partial_content = ""
        self._events_applied = 0

    def set_content_state(self, partial_content: str = "", events_applied: int = 0):
        """Set the content state at error time."""
        self._partial_content = partial_content
        self._events_applied = events_applied

    def _build(self, type: StreamErrorType, message: str, fatal: bool, **kwargs) -> StreamError:
        return StreamError(
            type=type,
            message=message,
            fatal=fatal,
            stream_id=self.stream_id,
            partial_content=self._partial_content or None,
            events_applied=self._events_applied,
            **kwargs
        )

    def connection_failed(self, exception: BaseException) -> StreamError:
        """The request never produced a response head."""
        return self._build(
            StreamErrorType.CONNECTION_FAILED,
            f"Failed to connect to gateway: {exception}",
            fatal=True,
            exception=exception,
        )

    def http_error(
        self,
        status_code: int,
        message: str,
        exception: Optional[BaseException] = None
    ) -> StreamError:
        """The gateway answered with a non-2xx status."""
        return self._build(
            StreamErrorType.HTTP_ERROR,
            message,
            fatal=True,
            http_status=status_code,
            exception=exception,
        )

    def malformed_frame(self, message: str, raw: str) -> StreamError:
        return self._build(StreamErrorType.MALFORMED_FRAME, message, fatal=False, raw=raw)

    def provider_error(self, message: str, raw: str) -> StreamError:
        return self._build(StreamErrorType.PROVIDER_ERROR, message, fatal=False, raw=raw)

    def truncated(self, fatal: bool) -> StreamError:
        """
        The transport closed before a terminal event.

        Non-fatal when content was accumulated: the call still finishes
        with a truncated result.
        """
        return self._build(
            StreamErrorType.STREAM_TRUNCATED,
            "Stream ended before a terminal event was received",
            fatal=fatal,
        )

    def interrupted(self, exception: BaseException) -> StreamError:
        """The transport failed mid-stream."""
        return self._build(
            StreamErrorType.STREAM_INTERRUPTED,
            f"Stream was interrupted: {exception}",
            fatal=True,
            exception=exception,
        )

    def callback_failed(self, exception: BaseException) -> StreamError:
        return self._build(
            StreamErrorType.CALLBACK_FAILED,
            str(exception),
            fatal=True,
            exception=exception,
        )
