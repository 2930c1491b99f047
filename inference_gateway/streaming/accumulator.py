"""
Inference Gateway SDK - Delta Accumulator

Folds StreamEvents into per-stream state and derives the user-facing
notifications each event implies.

Tool calls come in pieces:
- First: index, id and function name
- Then: argument fragments (partial JSON strings), concatenated in order
- Finally: resolvable once a terminal signal (finish_reason "tool_calls"
  or message-end) was observed and the buffer parses as JSON; a call with
  no arguments yet waits for finalize, where an empty buffer means {}

Fragments for different indices may interleave arbitrarily. Arguments are
never parsed before the terminal signal, so a partial buffer can't surface
as an error.
"""

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..models import FinishReason, FunctionCall, ToolCall, Usage
from ..observability.logging import get_logger
from .events import (
    ContentDelta,
    FinishReasonSignal,
    MessageStart,
    ProviderError,
    RawChunk,
    ReasoningDelta,
    StreamEvent,
    StreamEventType,
    ToolCallDelta,
    UsageDelta,
)


logger = get_logger(__name__)


class NotificationKind(str, Enum):
    """What a notification tells the caller."""
    MESSAGE_START = "message_start"
    STREAM_START = "stream_start"
    CONTENT_START = "content_start"
    CONTENT = "content"
    CONTENT_END = "content_end"
    REASONING = "reasoning"
    CHUNK = "chunk"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL = "tool_call"
    USAGE = "usage"
    MESSAGE_END = "message_end"
    STREAM_END = "stream_end"
    PROVIDER_ERROR = "provider_error"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class Notification:
    """One unit of work for the dispatcher."""
    kind: NotificationKind
    payload: Any = None


# ============================================================
# Tool calls
# ============================================================

@dataclass(frozen=True)
class ResolvedToolCall:
    """
    A tool call as handed to the caller.

    `complete` is False for best-effort records of calls that never
    became valid (missing name or unparseable arguments at stream end);
    those carry `arguments=None` and the raw buffer.
    """
    index: int
    id: str
    name: str
    arguments: Any
    raw_arguments: str
    complete: bool = True
    error: Optional[str] = None

    def to_tool_call(self) -> ToolCall:
        """Convert to the transcript model for a follow-up request."""
        return ToolCall(
            id=self.id,
            function=FunctionCall(name=self.name, arguments=self.raw_arguments),
        )


@dataclass
class AccumulatedToolCall:
    """
    Accumulates the fragments of one tool call.

    `id` and `function_name` are first-fragment-wins: a value resent on a
    later fragment never overwrites one already set.
    """
    index: int
    id: Optional[str] = None
    type: str = "function"
    function_name: Optional[str] = None
    arguments_buffer: str = ""
    fragments: int = 0
    result: Optional[ResolvedToolCall] = None

    @property
    def is_resolved(self) -> bool:
        return self.result is not None

    def update(
        self,
        id: Optional[str] = None,
        function_name: Optional[str] = None,
        arguments_fragment: Optional[str] = None
    ):
        """Apply one fragment."""
        self.fragments += 1
        if id and not self.id:
            self.id = id
        if function_name and not self.function_name:
            self.function_name = function_name
        if arguments_fragment:
            self.arguments_buffer += arguments_fragment

    def parse_arguments(self) -> Tuple[bool, Any]:
        """
        Try to parse the arguments buffer.

        An empty buffer counts as an empty object.

        Returns:
            (ok, parsed_value)
        """
        if not self.arguments_buffer.strip():
            return True, {}
        try:
            return True, json.loads(self.arguments_buffer)
        except ValueError:
            return False, None

    def validate(self) -> Tuple[bool, Optional[str]]:
        """
        Validate the accumulated tool call.

        Returns:
            (is_valid, error_message)
        """
        if not self.function_name:
            return False, "Missing function name"

        ok, _ = self.parse_arguments()
        if not ok:
            return False, "Arguments are not valid JSON"

        return True, None

    def resolve(self, allow_empty: bool = False) -> Optional[ResolvedToolCall]:
        """
        Resolve if valid; returns None (never raises) otherwise.

        An empty buffer resolves to {} only with `allow_empty`.
        """
        if self.result is not None:
            return None
        if not allow_empty and not self.arguments_buffer.strip():
            return None

        ok, arguments = self.parse_arguments()
        if not ok or not self.function_name:
            return None

        self.result = ResolvedToolCall(
            index=self.index,
            id=self.id or "",
            name=self.function_name,
            arguments=arguments,
            raw_arguments=self.arguments_buffer,
        )
        return self.result

    def abandon(self) -> ResolvedToolCall:
        """Produce the best-effort record for a call that never resolved."""
        _, error = self.validate()
        self.result = ResolvedToolCall(
            index=self.index,
            id=self.id or "",
            name=self.function_name or "",
            arguments=None,
            raw_arguments=self.arguments_buffer,
            complete=False,
            error=error,
        )
        return self.result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to OpenAI tool call format."""
        return {
            "id": self.id or "",
            "type": self.type,
            "function": {
                "name": self.function_name or "",
                "arguments": self.arguments_buffer
            }
        }


# ============================================================
# Stream state
# ============================================================

@dataclass
class StreamState:
    """
    Everything accumulated for one in-flight stream.

    Mutated only by DeltaAccumulator, on the stream's own task/thread.
    """
    stream_id: str = field(default_factory=lambda: f"strm_{uuid.uuid4().hex[:12]}")
    role: Optional[str] = None
    content: str = ""
    reasoning: str = ""
    tool_calls: Dict[int, AccumulatedToolCall] = field(default_factory=dict)
    finish_reason: Optional[Union[FinishReason, str]] = None
    usage: Optional[Usage] = None

    # Terminal tool-call signal (finish_reason "tool_calls" or message-end)
    tool_signal: bool = False
    # Terminal event (Done / stream-end) observed
    terminated: bool = False
    finalized: bool = False

    events_applied: int = 0

    @property
    def has_output(self) -> bool:
        """True once anything worth reporting was accumulated."""
        return bool(self.content or self.reasoning or self.tool_calls)

    @property
    def pending_tool_calls(self) -> List[AccumulatedToolCall]:
        """Unresolved calls in first-seen order."""
        return [tc for tc in self.tool_calls.values() if not tc.is_resolved]

    @property
    def resolved_tool_calls(self) -> List[ResolvedToolCall]:
        """Resolved (or abandoned) calls in first-seen order."""
        return [tc.result for tc in self.tool_calls.values() if tc.result is not None]


class DeltaAccumulator:
    """
    Applies events to a StreamState.

    Stateless; the state object is passed in so one accumulator can serve
    any number of independent streams.
    """

    _SIMPLE = {
        StreamEventType.STREAM_START: NotificationKind.STREAM_START,
        StreamEventType.CONTENT_START: NotificationKind.CONTENT_START,
        StreamEventType.CONTENT_END: NotificationKind.CONTENT_END,
    }

    def apply(self, state: StreamState, event: StreamEvent) -> List[Notification]:
        """
        Apply one event.

        Args:
            state: The stream's state, updated in place
            event: The event to apply

        Returns:
            Notifications implied by the event, in delivery order
        """
        if state.finalized:
            logger.warning(
                "Discarding event received after stream was finalized",
                event_type=event.type.value,
                stream_id=state.stream_id,
            )
            return []

        state.events_applied += 1
        kind = event.type

        if kind in self._SIMPLE:
            return [Notification(self._SIMPLE[kind])]

        if isinstance(event, ContentDelta):
            if not event.text:
                return []
            state.content += event.text
            return [Notification(NotificationKind.CONTENT, event.text)]

        if isinstance(event, ReasoningDelta):
            if not event.text:
                return []
            state.reasoning += event.text
            return [Notification(NotificationKind.REASONING, event.text)]

        if isinstance(event, ToolCallDelta):
            return self._apply_tool_call_delta(state, event)

        if isinstance(event, UsageDelta):
            # Gateways send running totals, so the latest value wins
            state.usage = Usage(
                prompt_tokens=event.prompt_tokens,
                completion_tokens=event.completion_tokens,
                total_tokens=event.total_tokens,
            )
            return [Notification(NotificationKind.USAGE, state.usage)]

        if isinstance(event, FinishReasonSignal):
            state.finish_reason = FinishReason.parse(event.reason)
            if state.finish_reason == FinishReason.TOOL_CALLS:
                return self._signal_tool_calls(state)
            return []

        if isinstance(event, RawChunk):
            return [Notification(NotificationKind.CHUNK, event.payload)]

        if isinstance(event, MessageStart):
            if state.role is None:
                state.role = event.role
            return [Notification(NotificationKind.MESSAGE_START, event.role)]

        if kind == StreamEventType.MESSAGE_END:
            notifications = self._signal_tool_calls(state)
            notifications.append(Notification(NotificationKind.MESSAGE_END))
            return notifications

        if isinstance(event, ProviderError):
            return [Notification(NotificationKind.PROVIDER_ERROR, event)]

        if event.is_terminal:
            state.terminated = True
            notifications = []
            if kind == StreamEventType.STREAM_END:
                notifications.append(Notification(NotificationKind.STREAM_END))
            notifications.append(Notification(NotificationKind.TERMINAL, event))
            return notifications

        logger.debug("No notification for event", event_type=kind.value)
        return []

    def finalize(self, state: StreamState) -> List[Notification]:
        """
        Close the stream's tool calls.

        Every pending call is resolved if it is valid, otherwise reported
        as a best-effort record. Idempotent.
        """
        if state.finalized:
            return []

        notifications = []
        for tc in state.pending_tool_calls:
            resolved = tc.resolve(allow_empty=True)
            if resolved is None:
                resolved = tc.abandon()
                logger.warning(
                    "Tool call did not resolve before stream end",
                    tool_index=tc.index,
                    tool_name=tc.function_name or "",
                    reason=resolved.error,
                    stream_id=state.stream_id,
                )
            notifications.append(Notification(NotificationKind.TOOL_CALL, resolved))

        state.finalized = True
        return notifications

    def _apply_tool_call_delta(
        self,
        state: StreamState,
        event: ToolCallDelta
    ) -> List[Notification]:
        tc = state.tool_calls.get(event.index)
        if tc is None:
            tc = AccumulatedToolCall(index=event.index)
            state.tool_calls[event.index] = tc
        elif tc.is_resolved:
            logger.warning(
                "Tool call fragment arrived after the call was resolved",
                tool_index=event.index,
                stream_id=state.stream_id,
            )
            return [Notification(NotificationKind.TOOL_CALL_DELTA, event)]

        tc.update(
            id=event.id,
            function_name=event.name,
            arguments_fragment=event.arguments_fragment,
        )

        notifications = [Notification(NotificationKind.TOOL_CALL_DELTA, event)]
        if state.tool_signal:
            resolved = tc.resolve()
            if resolved is not None:
                notifications.append(Notification(NotificationKind.TOOL_CALL, resolved))
        return notifications

    def _signal_tool_calls(self, state: StreamState) -> List[Notification]:
        state.tool_signal = True
        notifications = []
        for tc in state.pending_tool_calls:
            resolved = tc.resolve()
            if resolved is not None:
                notifications.append(Notification(NotificationKind.TOOL_CALL, resolved))
        return notifications
