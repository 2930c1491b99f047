"""
Inference Gateway SDK - Stream Session

Drives one streaming chat completion from the HTTP response to its final
result.

State machine:

    IDLE -> CONNECTING -> STREAMING -> FINALIZING -> DONE
                 |             |            |
                 +-------------+------------+--> CANCELLED | FAILED

Between reads, everything derivable from bytes already received is
decoded, classified, accumulated and dispatched before the next read.
Cancellation is checked before each read and before each notification.
"""

import asyncio
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Iterator, List, Optional, Union

import httpx

from ..errors import (
    CallbackError,
    ConnectionError,
    InferenceGatewayError,
    StreamError as StreamFailure,
    TimeoutError,
)
from ..models import FinishReason, Message, MessageRole, ToolCall, Usage
from ..observability.logging import bind_log_context, get_logger
from ..observability.metrics import StreamMetrics, get_metrics
from ..observability.tracing import TraceContext, TracingManager, get_tracing_manager
from .accumulator import DeltaAccumulator, Notification, NotificationKind, ResolvedToolCall, StreamState
from .dispatch import Dispatcher, StreamCallbacks
from .errors import StreamError, StreamErrorBuilder
from .events import EventClassifier
from .frames import Frame, FrameDecoder


logger = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of a streaming call."""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.CANCELLED, SessionState.FAILED)


_TRANSITIONS = {
    SessionState.IDLE: {SessionState.CONNECTING},
    SessionState.CONNECTING: {SessionState.STREAMING, SessionState.CANCELLED, SessionState.FAILED},
    SessionState.STREAMING: {SessionState.FINALIZING, SessionState.CANCELLED, SessionState.FAILED},
    SessionState.FINALIZING: {SessionState.DONE, SessionState.CANCELLED, SessionState.FAILED},
    SessionState.DONE: set(),
    SessionState.CANCELLED: set(),
    SessionState.FAILED: set(),
}


class StreamOutcome(str, Enum):
    """How a streaming call that returned a result ended."""
    COMPLETED = "completed"
    TRUNCATED = "truncated"
    CANCELLED = "cancelled"


# ============================================================
# Cancellation
# ============================================================

class CancellationToken:
    """
    Cooperative cancellation handle.

    Once cancelled it stays cancelled. Safe to cancel from any thread.

    Example:
        token = CancellationToken()
        threading.Timer(5.0, token.cancel).start()
        result = client.stream_chat_completion(request, cancel_token=token)
        if result.cancelled:
            print("gave up after 5s:", result.content)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._subscribers: List[Callable[[], Any]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        """Cancel; subscribers run once, on the calling thread."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            subscribers, self._subscribers = self._subscribers, []

        for callback in subscribers:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation subscriber failed")

    def subscribe(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Run `callback` on cancellation.

        Runs immediately if already cancelled.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            if not self._cancelled:
                self._subscribers.append(callback)
                return lambda: self._unsubscribe(callback)

        callback()
        return lambda: None

    def _unsubscribe(self, callback: Callable[[], Any]):
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)


# ============================================================
# Result
# ============================================================

@dataclass
class StreamResult:
    """Everything a streaming call produced."""
    content: str = ""
    reasoning: str = ""
    tool_calls: List[ResolvedToolCall] = field(default_factory=list)
    finish_reason: Optional[Union[FinishReason, str]] = None
    usage: Optional[Usage] = None
    role: Optional[str] = None
    outcome: StreamOutcome = StreamOutcome.COMPLETED
    stream_id: str = ""

    @property
    def truncated(self) -> bool:
        return self.outcome == StreamOutcome.TRUNCATED

    @property
    def cancelled(self) -> bool:
        return self.outcome == StreamOutcome.CANCELLED

    @classmethod
    def from_state(cls, state: StreamState, outcome: StreamOutcome) -> "StreamResult":
        return cls(
            content=state.content,
            reasoning=state.reasoning,
            tool_calls=state.resolved_tool_calls,
            finish_reason=state.finish_reason,
            usage=state.usage,
            role=state.role,
            outcome=outcome,
            stream_id=state.stream_id,
        )

    def to_message(self) -> Message:
        """The assistant turn, for appending to the conversation."""
        tool_calls: Optional[List[ToolCall]] = [
            tc.to_tool_call() for tc in self.tool_calls if tc.complete
        ]
        return Message(
            role=self.role or MessageRole.ASSISTANT,
            content=self.content,
            tool_calls=tool_calls or None,
            reasoning_content=self.reasoning or None,
        )


# ============================================================
# Session
# ============================================================

class _SessionBase:
    """Pipeline and bookkeeping shared by the sync and async sessions."""

    def __init__(
        self,
        callbacks: Optional[StreamCallbacks] = None,
        cancel_token: Optional[CancellationToken] = None,
        model: str = "",
        provider: Optional[str] = None,
        metrics: Optional[StreamMetrics] = None,
        tracing: Optional[TracingManager] = None,
    ):
        self.state = SessionState.IDLE
        self.stream = StreamState()
        self.token = cancel_token or CancellationToken()
        self.model = model
        self.provider = provider or ""

        self.decoder = FrameDecoder()
        self.classifier = EventClassifier()
        self.accumulator = DeltaAccumulator()
        self.dispatcher = Dispatcher(callbacks)
        self.errors = StreamErrorBuilder(self.stream.stream_id)

        self.metrics = metrics if metrics is not None else get_metrics()
        self.tracing = tracing if tracing is not None else get_tracing_manager()

        self._terminal_seen = False
        self._started_at = time.perf_counter()
        self._first_content_at: Optional[float] = None

    @property
    def stream_id(self) -> str:
        return self.stream.stream_id

    def transition(self, new_state: SessionState):
        """
        Move to `new_state`.

        Raises:
            RuntimeError: On a transition the state machine does not allow
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal stream session transition {self.state.value} -> {new_state.value}"
            )
        logger.debug(
            "Stream session transition",
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state

    def _fail(self):
        if not self.state.is_terminal:
            self.transition(SessionState.FAILED)

    def _notifications(self, frames: Iterable[Frame]) -> Iterator[Notification]:
        """Classify and accumulate frames lazily, one event at a time."""
        for frame in frames:
            for event in self.classifier.classify(frame):
                self.metrics.record_event(event.type.value)
                for notification in self.accumulator.apply(self.stream, event):
                    yield notification
                if self._terminal_seen:
                    return

    def _prepare(self, notification: Notification) -> Union[Notification, StreamError, None]:
        """
        Bookkeeping for one notification.

        Returns what to deliver: the notification itself, an error record
        for on_error, or None.
        """
        kind = notification.kind

        if kind == NotificationKind.TERMINAL:
            self._terminal_seen = True
            return None

        if kind == NotificationKind.PROVIDER_ERROR:
            event = notification.payload
            self._sync_error_state()
            if event.malformed:
                self.metrics.record_malformed_frame()
                return self.errors.malformed_frame(event.message, event.raw)
            logger.warning("Gateway reported an error mid-stream", detail=event.message)
            return self.errors.provider_error(event.message, event.raw)

        if kind == NotificationKind.CONTENT and self._first_content_at is None:
            self._first_content_at = time.perf_counter()
            self.metrics.record_time_to_first_content(
                self.model,
                self.provider,
                self._first_content_at - self._started_at,
            )

        if kind == NotificationKind.TOOL_CALL:
            self.metrics.record_tool_call(notification.payload.complete)

        return notification

    def _sync_error_state(self):
        self.errors.set_content_state(self.stream.content, self.stream.events_applied)

    def _result(self, outcome: StreamOutcome) -> StreamResult:
        return StreamResult.from_state(self.stream, outcome)

    def _http_error(self, response: httpx.Response) -> InferenceGatewayError:
        """Typed exception from a non-2xx response whose body was read."""
        try:
            body: Any = response.json()
        except ValueError:
            body = {"error": response.text} if response.text else None
        return InferenceGatewayError.from_response(body, response.status_code, dict(response.headers))

    def _connect_error(self, e: Exception) -> InferenceGatewayError:
        if isinstance(e, httpx.TimeoutException):
            return TimeoutError(f"Request timed out: {e}")
        return ConnectionError(f"Failed to connect to gateway: {e}")

    def _interrupted_error(self, e: Exception) -> StreamFailure:
        return StreamFailure(
            f"Stream was interrupted: {e}",
            partial_content=self.stream.content,
        )

    def _truncated_error(self) -> StreamFailure:
        return StreamFailure(
            "Stream ended before a terminal event was received",
            code="stream_truncated",
            partial_content=self.stream.content,
        )

    def _record_end(self, span, outcome: str, exception: Optional[BaseException] = None):
        duration = time.perf_counter() - self._started_at
        self.metrics.record_stream(self.model, self.provider, outcome, duration)

        finish_reason = self.stream.finish_reason
        if isinstance(finish_reason, FinishReason):
            finish_reason = finish_reason.value
        self.tracing.record_usage(span, self.stream.usage)
        self.tracing.record_outcome(span, outcome, finish_reason)
        if exception is not None:
            self.tracing.record_exception(span, exception)

        log = logger.info if outcome == "completed" else logger.warning
        if outcome == "failed":
            log = logger.error
        log(
            "Stream finished",
            outcome=outcome,
            duration_ms=round(duration * 1000, 2),
            content_length=len(self.stream.content),
            tool_calls=len(self.stream.tool_calls),
        )

    def _log_fields(self, span) -> dict:
        fields = {"stream_id": self.stream_id, "model": self.model}
        if self.provider:
            fields["provider"] = self.provider
        trace_ctx = TraceContext.from_span(span)
        if trace_ctx is not None:
            fields["trace_id"] = trace_ctx.trace_id
        return fields


class StreamSession(_SessionBase):
    """
    Synchronous stream session.

    `run()` takes a callable that sends the request and returns the open
    streaming response; the session closes it before returning.

    A blocking `send()` can't be interrupted, so a cancellation that arrives
    while connecting takes effect once the response head is in. Use
    AsyncStreamSession where that latency matters.
    """

    def run(self, send: Callable[[], httpx.Response]) -> StreamResult:
        with self.tracing.stream_span(self.model, self.provider, self.stream_id) as span:
            with bind_log_context(**self._log_fields(span)):
                try:
                    result = self._run(send)
                except BaseException as e:
                    self._fail()
                    self._record_end(span, "failed", e)
                    raise
                self._record_end(span, result.outcome.value)
                return result

    def _run(self, send: Callable[[], httpx.Response]) -> StreamResult:
        self.transition(SessionState.CONNECTING)
        if self.token.cancelled:
            return self._cancel()

        try:
            response = send()
        except httpx.HTTPError as e:
            error = self._connect_error(e)
            self.transition(SessionState.FAILED)
            self.dispatcher.report_error(self.errors.connection_failed(e))
            raise error from e

        unsubscribe = self.token.subscribe(response.close)
        try:
            return self._consume(response)
        except CallbackError as e:
            self._fail()
            self._sync_error_state()
            if e.callback != "on_error":
                self.dispatcher.report_error(self.errors.callback_failed(e.__cause__ or e))
            raise
        finally:
            unsubscribe()
            response.close()

    def _consume(self, response: httpx.Response) -> StreamResult:
        if self.token.cancelled:
            return self._cancel()
        if not response.is_success:
            response.read()
            error = self._http_error(response)
            self.transition(SessionState.FAILED)
            self.dispatcher.report_error(
                self.errors.http_error(response.status_code, error.message, error)
            )
            raise error

        self.transition(SessionState.STREAMING)
        if self.token.cancelled:
            return self._cancel()
        self.dispatcher.invoke("on_open")

        chunks = response.iter_bytes()
        while True:
            if self.token.cancelled:
                return self._cancel()
            try:
                chunk = next(chunks)
            except StopIteration:
                break
            except (httpx.HTTPError, httpx.StreamError) as e:
                if self.token.cancelled:
                    return self._cancel()
                return self._interrupted(e)

            for notification in self._notifications(self.decoder.feed(chunk)):
                if self.token.cancelled:
                    return self._cancel()
                self._deliver(notification)
            if self._terminal_seen:
                return self._finish(StreamOutcome.COMPLETED)

        for notification in self._notifications(self.decoder.flush()):
            if self.token.cancelled:
                return self._cancel()
            self._deliver(notification)
        if self._terminal_seen:
            return self._finish(StreamOutcome.COMPLETED)

        return self._truncated()

    def _deliver(self, notification: Notification):
        item = self._prepare(notification)
        if isinstance(item, StreamError):
            self.dispatcher.report_error(item)
        elif item is not None:
            self.dispatcher.dispatch(item)

    def _finish(self, outcome: StreamOutcome) -> StreamResult:
        self.transition(SessionState.FINALIZING)
        for notification in self.accumulator.finalize(self.stream):
            if self.token.cancelled:
                return self._cancel()
            self._deliver(notification)

        if self.token.cancelled:
            return self._cancel()
        result = self._result(outcome)
        self.dispatcher.invoke("on_finish", result)
        self.transition(SessionState.DONE)
        return result

    def _truncated(self) -> StreamResult:
        self._sync_error_state()
        if self.stream.has_output:
            self.dispatcher.report_error(self.errors.truncated(fatal=False))
            return self._finish(StreamOutcome.TRUNCATED)

        self.transition(SessionState.FAILED)
        self.dispatcher.report_error(self.errors.truncated(fatal=True))
        raise self._truncated_error()

    def _interrupted(self, e: Exception) -> StreamResult:
        self.transition(SessionState.FAILED)
        self._sync_error_state()
        self.dispatcher.report_error(self.errors.interrupted(e))
        raise self._interrupted_error(e) from e

    def _cancel(self) -> StreamResult:
        self.transition(SessionState.CANCELLED)
        result = self._result(StreamOutcome.CANCELLED)
        self.dispatcher.invoke("on_cancel", result)
        return result


class AsyncStreamSession(_SessionBase):
    """
    Asynchronous stream session.

    Callbacks may be coroutine functions. Cancelling the token from another
    thread interrupts a pending send or read on the session's event loop.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._reading = False
        self._read_interrupted = False

    async def run(self, send: Callable[[], Awaitable[httpx.Response]]) -> StreamResult:
        with self.tracing.stream_span(self.model, self.provider, self.stream_id) as span:
            with bind_log_context(**self._log_fields(span)):
                try:
                    result = await self._run(send)
                except BaseException as e:
                    self._fail()
                    self._record_end(span, "failed", e)
                    raise
                self._record_end(span, result.outcome.value)
                return result

    async def _run(self, send: Callable[[], Awaitable[httpx.Response]]) -> StreamResult:
        self.transition(SessionState.CONNECTING)
        if self.token.cancelled:
            return await self._cancel()

        self._loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        unsubscribe = self.token.subscribe(self._on_token_cancelled)
        response: Optional[httpx.Response] = None
        try:
            try:
                response = await self._send(send)
            except httpx.HTTPError as e:
                error = self._connect_error(e)
                self.transition(SessionState.FAILED)
                await self.dispatcher.areport_error(self.errors.connection_failed(e))
                raise error from e
            return await self._consume(response)
        except asyncio.CancelledError:
            if not self._read_interrupted:
                raise
            if hasattr(self._task, "uncancel"):
                self._task.uncancel()
            return await self._cancel()
        except CallbackError as e:
            self._fail()
            self._sync_error_state()
            if e.callback != "on_error":
                await self.dispatcher.areport_error(self.errors.callback_failed(e.__cause__ or e))
            raise
        finally:
            unsubscribe()
            if response is not None:
                await response.aclose()

    async def _send(self, send: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        self._reading = True
        try:
            return await send()
        finally:
            self._reading = False

    def _on_token_cancelled(self):
        self._loop.call_soon_threadsafe(self._interrupt_read)

    def _interrupt_read(self):
        if self._reading and self._task is not None and not self._task.done():
            self._read_interrupted = True
            self._task.cancel()

    async def _consume(self, response: httpx.Response) -> StreamResult:
        if self.token.cancelled:
            return await self._cancel()
        if not response.is_success:
            await response.aread()
            error = self._http_error(response)
            self.transition(SessionState.FAILED)
            await self.dispatcher.areport_error(
                self.errors.http_error(response.status_code, error.message, error)
            )
            raise error

        self.transition(SessionState.STREAMING)
        if self.token.cancelled:
            return await self._cancel()
        await self.dispatcher.ainvoke("on_open")

        chunks = response.aiter_bytes()
        while True:
            if self.token.cancelled:
                return await self._cancel()
            self._reading = True
            try:
                chunk = await chunks.__anext__()
            except StopAsyncIteration:
                break
            except (httpx.HTTPError, httpx.StreamError) as e:
                if self.token.cancelled:
                    return await self._cancel()
                return await self._interrupted(e)
            finally:
                self._reading = False

            for notification in self._notifications(self.decoder.feed(chunk)):
                if self.token.cancelled:
                    return await self._cancel()
                await self._deliver(notification)
            if self._terminal_seen:
                return await self._finish(StreamOutcome.COMPLETED)

        for notification in self._notifications(self.decoder.flush()):
            if self.token.cancelled:
                return await self._cancel()
            await self._deliver(notification)
        if self._terminal_seen:
            return await self._finish(StreamOutcome.COMPLETED)

        return await self._truncated()

    async def _deliver(self, notification: Notification):
        item = self._prepare(notification)
        if isinstance(item, StreamError):
            await self.dispatcher.areport_error(item)
        elif item is not None:
            await self.dispatcher.adispatch(item)

    async def _finish(self, outcome: StreamOutcome) -> StreamResult:
        self.transition(SessionState.FINALIZING)
        for notification in self.accumulator.finalize(self.stream):
            if self.token.cancelled:
                return await self._cancel()
            await self._deliver(notification)

        if self.token.cancelled:
            return await self._cancel()
        result = self._result(outcome)
        await self.dispatcher.ainvoke("on_finish", result)
        self.transition(SessionState.DONE)
        return result

    async def _truncated(self) -> StreamResult:
        self._sync_error_state()
        if self.stream.has_output:
            await self.dispatcher.areport_error(self.errors.truncated(fatal=False))
            return await self._finish(StreamOutcome.TRUNCATED)

        self.transition(SessionState.FAILED)
        await self.dispatcher.areport_error(self.errors.truncated(fatal=True))
        raise self._truncated_error()

    async def _interrupted(self, e: Exception) -> StreamResult:
        self.transition(SessionState.FAILED)
        self._sync_error_state()
        await self.dispatcher.areport_error(self.errors.interrupted(e))
        raise self._interrupted_error(e) from e

    async def _cancel(self) -> StreamResult:
        self.transition(SessionState.CANCELLED)
        result = self._result(StreamOutcome.CANCELLED)
        await self.dispatcher.ainvoke("on_cancel", result)
        return result
