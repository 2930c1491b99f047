"""
Inference Gateway SDK - Stream Events

Protocol-independent logical events and the classifier that derives them
from decoded frames.

The gateway speaks two framings over the same SSE transport:

1. Labelled protocol - the `event:` field names the event
   (message-start, stream-start, content-start, content-delta,
   content-end, message-end, stream-end)
2. Chunk protocol - no label, `data:` holds either the `[DONE]`
   sentinel or an OpenAI-style `chat.completion.chunk` object

Both are classified into the same StreamEvent variants so that the
accumulator and dispatcher never look at wire formats.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import ValidationError

from ..observability.logging import get_logger
from .frames import Frame
from .schema import ChunkPayload, ContentDeltaPayload, ErrorPayload, MessageStartPayload


logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


class StreamEventType(str, Enum):
    """Types of logical stream events."""
    MESSAGE_START = "message-start"
    STREAM_START = "stream-start"
    CONTENT_START = "content-start"
    CONTENT_DELTA = "content-delta"
    CONTENT_END = "content-end"
    MESSAGE_END = "message-end"
    STREAM_END = "stream-end"
    REASONING_DELTA = "reasoning-delta"
    TOOL_CALL_DELTA = "tool-call-delta"
    USAGE_DELTA = "usage-delta"
    FINISH_REASON = "finish-reason"
    RAW_CHUNK = "raw-chunk"
    DONE = "done"
    PROVIDER_ERROR = "provider-error"


# Labels the gateway may put in the `event:` field
LABELLED_EVENTS = frozenset({
    StreamEventType.MESSAGE_START,
    StreamEventType.STREAM_START,
    StreamEventType.CONTENT_START,
    StreamEventType.CONTENT_DELTA,
    StreamEventType.CONTENT_END,
    StreamEventType.MESSAGE_END,
    StreamEventType.STREAM_END,
})


# ============================================================
# Event variants
# ============================================================

@dataclass(frozen=True)
class StreamEvent:
    """Base for all logical stream events."""
    type: ClassVar[StreamEventType]

    @property
    def is_terminal(self) -> bool:
        """True for events after which no further data arrives."""
        return self.type in (StreamEventType.DONE, StreamEventType.STREAM_END)


@dataclass(frozen=True)
class MessageStart(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.MESSAGE_START
    role: str = "assistant"


@dataclass(frozen=True)
class StreamStart(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.STREAM_START


@dataclass(frozen=True)
class ContentStart(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.CONTENT_START


@dataclass(frozen=True)
class ContentDelta(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.CONTENT_DELTA
    text: str = ""


@dataclass(frozen=True)
class ContentEnd(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.CONTENT_END


@dataclass(frozen=True)
class ReasoningDelta(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.REASONING_DELTA
    text: str = ""


@dataclass(frozen=True)
class ToolCallDelta(StreamEvent):
    """
    One fragment of a tool call.

    `index` is stable for all fragments of the same call. `id` and `name`
    are only guaranteed on the first fragment for an index.
    """
    type: ClassVar[StreamEventType] = StreamEventType.TOOL_CALL_DELTA
    index: int = 0
    id: Optional[str] = None
    name: Optional[str] = None
    arguments_fragment: Optional[str] = None


@dataclass(frozen=True)
class UsageDelta(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.USAGE_DELTA
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class FinishReasonSignal(StreamEvent):
    """`choices[0].finish_reason` of a chunk."""
    type: ClassVar[StreamEventType] = StreamEventType.FINISH_REASON
    reason: str = ""


@dataclass(frozen=True)
class RawChunk(StreamEvent):
    """The parsed chunk object itself, for raw-chunk subscribers."""
    type: ClassVar[StreamEventType] = StreamEventType.RAW_CHUNK
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessageEnd(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.MESSAGE_END


@dataclass(frozen=True)
class StreamEnd(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.STREAM_END


@dataclass(frozen=True)
class Done(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.DONE


@dataclass(frozen=True)
class ProviderError(StreamEvent):
    """
    Malformed or gateway-reported error payload. Never fatal on its own.

    `malformed` is True when the frame itself could not be understood, as
    opposed to a well-formed `{"error": ...}` object sent by the gateway.
    """
    type: ClassVar[StreamEventType] = StreamEventType.PROVIDER_ERROR
    message: str = ""
    raw: str = ""
    malformed: bool = False


# ============================================================
# Classifier
# ============================================================

class EventClassifier:
    """
    Classifies frames into StreamEvents.

    Stateless; one instance may be shared by any number of streams.
    """

    def classify(self, frame: Frame) -> List[StreamEvent]:
        """
        Classify one frame.

        Args:
            frame: A decoded frame

        Returns:
            The logical events carried by the frame, in order. Empty for
            frames with an unknown label or an empty payload.
        """
        if frame.is_labelled:
            return self._classify_labelled(frame)
        return self._classify_chunk(frame)

    def _classify_labelled(self, frame: Frame) -> List[StreamEvent]:
        try:
            label = StreamEventType(frame.event)
        except ValueError:
            label = None

        if label not in LABELLED_EVENTS:
            logger.debug("Ignoring frame with unknown event label", event=frame.event)
            return []

        data = frame.data.strip()
        if not data:
            logger.debug("Ignoring labelled frame without payload", event=frame.event)
            return []

        try:
            body = json.loads(data)
        except json.JSONDecodeError as e:
            return [self._malformed(frame.data, f"Invalid JSON in {frame.event} frame: {e}")]

        if not isinstance(body, dict):
            return [self._malformed(frame.data, f"Expected object in {frame.event} frame")]

        try:
            if label == StreamEventType.MESSAGE_START:
                return [MessageStart(role=MessageStartPayload.model_validate(body).role)]
            if label == StreamEventType.CONTENT_DELTA:
                return [ContentDelta(text=ContentDeltaPayload.model_validate(body).content)]
        except ValidationError as e:
            return [self._malformed(frame.data, f"Unexpected {frame.event} payload: {e}")]

        simple = {
            StreamEventType.STREAM_START: StreamStart,
            StreamEventType.CONTENT_START: ContentStart,
            StreamEventType.CONTENT_END: ContentEnd,
            StreamEventType.MESSAGE_END: MessageEnd,
            StreamEventType.STREAM_END: StreamEnd,
        }
        return [simple[label]()]

    def _classify_chunk(self, frame: Frame) -> List[StreamEvent]:
        data = frame.data.strip()
        if not data:
            return []

        if data == DONE_SENTINEL:
            return [Done()]

        try:
            body = json.loads(data)
        except json.JSONDecodeError as e:
            return [self._malformed(frame.data, f"Invalid JSON in stream chunk: {e}")]

        if not isinstance(body, dict):
            return [self._malformed(frame.data, "Expected a JSON object in stream chunk")]

        if "error" in body and not body.get("choices"):
            try:
                message = ErrorPayload.model_validate(body).message
            except ValidationError:
                message = str(body.get("error"))
            return [ProviderError(message=message, raw=frame.data)]

        try:
            chunk = ChunkPayload.model_validate(body)
        except ValidationError as e:
            return [self._malformed(frame.data, f"Unexpected stream chunk shape: {e}")]

        events: List[StreamEvent] = [RawChunk(payload=body)]

        choice = chunk.first_choice
        if choice is not None:
            delta = choice.delta

            if delta.role:
                events.append(MessageStart(role=delta.role))

            reasoning = delta.reasoning_text
            if reasoning:
                events.append(ReasoningDelta(text=reasoning))

            if delta.content:
                events.append(ContentDelta(text=delta.content))

            for tc in delta.tool_calls or []:
                function = tc.function
                events.append(ToolCallDelta(
                    index=tc.index,
                    id=tc.id,
                    name=function.name if function else None,
                    arguments_fragment=function.arguments if function else None,
                ))

            if choice.finish_reason:
                events.append(FinishReasonSignal(reason=choice.finish_reason))

        if chunk.usage is not None:
            events.append(UsageDelta(
                prompt_tokens=chunk.usage.prompt_tokens,
                completion_tokens=chunk.usage.completion_tokens,
                total_tokens=chunk.usage.total_tokens,
            ))

        return events

    def _malformed(self, raw: str, message: str) -> ProviderError:
        logger.warning("Malformed stream frame", detail=message)
        return ProviderError(message=message, raw=raw, malformed=True)


_default_classifier = EventClassifier()


def classify_frame(frame: Frame) -> List[StreamEvent]:
    """Classify a frame with the shared classifier."""
    return _default_classifier.classify(frame)
