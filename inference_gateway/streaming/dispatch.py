"""
Inference Gateway SDK - Dispatch Engine

Routes accumulator notifications to the caller's callbacks.

Callbacks run synchronously and in notification order on the stream's own
thread (sync client) or task (async client). A callback that raises is
wrapped in CallbackError and ends the call.
"""

import inspect
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Optional, Set

from ..errors import CallbackError
from ..observability.logging import get_logger
from .accumulator import Notification, NotificationKind
from .errors import StreamError


logger = get_logger(__name__)


@dataclass
class StreamCallbacks:
    """
    Optional handlers for a streaming call.

    Every handler may be left as None. With the async client, handlers may
    also be coroutine functions.

    Example:
        callbacks = StreamCallbacks(
            on_content=lambda text: print(text, end="", flush=True),
            on_tool=lambda call: print(call.name, call.arguments),
        )
    """
    on_open: Optional[Callable[[], Any]] = None
    on_message_start: Optional[Callable[[str], Any]] = None
    on_stream_start: Optional[Callable[[], Any]] = None
    on_content_start: Optional[Callable[[], Any]] = None
    on_content: Optional[Callable[[str], Any]] = None
    on_content_end: Optional[Callable[[], Any]] = None
    on_reasoning: Optional[Callable[[str], Any]] = None
    on_chunk: Optional[Callable[[Dict[str, Any]], Any]] = None
    on_tool_call_delta: Optional[Callable[[Any], Any]] = None
    on_tool: Optional[Callable[[Any], Any]] = None
    on_usage: Optional[Callable[[Any], Any]] = None
    on_message_end: Optional[Callable[[], Any]] = None
    on_stream_end: Optional[Callable[[], Any]] = None
    on_finish: Optional[Callable[[Any], Any]] = None
    on_error: Optional[Callable[[StreamError], Any]] = None
    on_cancel: Optional[Callable[[Any], Any]] = None

    @classmethod
    def from_dict(cls, handlers: Dict[str, Callable]) -> "StreamCallbacks":
        """Build from a mapping of handler name to callable."""
        known = {f.name for f in fields(cls)}
        unknown = set(handlers) - known
        if unknown:
            raise ValueError(f"Unknown stream callbacks: {', '.join(sorted(unknown))}")
        return cls(**handlers)


# Notification kind -> (callback name, passes payload)
_ROUTES = {
    NotificationKind.MESSAGE_START: ("on_message_start", True),
    NotificationKind.STREAM_START: ("on_stream_start", False),
    NotificationKind.CONTENT_START: ("on_content_start", False),
    NotificationKind.CONTENT: ("on_content", True),
    NotificationKind.CONTENT_END: ("on_content_end", False),
    NotificationKind.REASONING: ("on_reasoning", True),
    NotificationKind.CHUNK: ("on_chunk", True),
    NotificationKind.TOOL_CALL_DELTA: ("on_tool_call_delta", True),
    NotificationKind.TOOL_CALL: ("on_tool", True),
    NotificationKind.USAGE: ("on_usage", True),
    NotificationKind.MESSAGE_END: ("on_message_end", False),
    NotificationKind.STREAM_END: ("on_stream_end", False),
}

# Lifecycle callbacks that fire at most once per call
_ONCE = frozenset({"on_open", "on_finish", "on_cancel"})


def _reject_awaitable(name: str, result: Any):
    if not inspect.isawaitable(result):
        return
    if inspect.iscoroutine(result):
        result.close()
    raise CallbackError(
        name,
        f"Stream callback {name} returned an awaitable; "
        "use AsyncInferenceGatewayClient for async callbacks",
    )


class Dispatcher:
    """
    Invokes callbacks for one streaming call.

    Holds the once-only bookkeeping for lifecycle callbacks, so a new
    Dispatcher is created per call.
    """

    def __init__(self, callbacks: Optional[StreamCallbacks] = None):
        self.callbacks = callbacks or StreamCallbacks()
        self._fired: Set[str] = set()
        self._fatal_reported = False

    def route(self, notification: Notification):
        """Callback name and arguments for a notification, or None."""
        route = _ROUTES.get(notification.kind)
        if route is None:
            return None
        name, passes_payload = route
        return name, ((notification.payload,) if passes_payload else ())

    def _handler(self, name: str) -> Optional[Callable]:
        if name in _ONCE:
            if name in self._fired:
                logger.warning("Lifecycle callback already fired", callback=name)
                return None
            self._fired.add(name)
        return getattr(self.callbacks, name)

    # ------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------

    def invoke(self, name: str, *args):
        """
        Invoke one callback.

        Raises:
            CallbackError: If the callback raised or returned an awaitable
        """
        handler = self._handler(name)
        if handler is None:
            return

        try:
            result = handler(*args)
        except Exception as e:
            raise CallbackError(name) from e

        _reject_awaitable(name, result)

    def dispatch(self, notification: Notification):
        """Deliver one notification."""
        route = self.route(notification)
        if route is not None:
            self.invoke(route[0], *route[1])

    def report_error(self, error: StreamError):
        """
        Deliver a StreamError to on_error.

        An exception raised by on_error propagates unchanged.

        Raises:
            CallbackError: If on_error returned an awaitable
        """
        if not self._accept_error(error):
            return
        if self.callbacks.on_error is not None:
            _reject_awaitable("on_error", self.callbacks.on_error(error))

    # ------------------------------------------------------------
    # Async
    # ------------------------------------------------------------

    async def ainvoke(self, name: str, *args):
        """Invoke one callback, awaiting its result if it is awaitable."""
        handler = self._handler(name)
        if handler is None:
            return

        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise CallbackError(name) from e

    async def adispatch(self, notification: Notification):
        route = self.route(notification)
        if route is not None:
            await self.ainvoke(route[0], *route[1])

    async def areport_error(self, error: StreamError):
        if not self._accept_error(error):
            return
        if self.callbacks.on_error is not None:
            result = self.callbacks.on_error(error)
            if inspect.isawaitable(result):
                await result

    def _accept_error(self, error: StreamError) -> bool:
        if not error.fatal:
            return True
        if self._fatal_reported:
            return False
        self._fatal_reported = True
        return True
