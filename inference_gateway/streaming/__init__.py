"""
Inference Gateway SDK - Streaming

bytes -> frames -> events -> accumulated state + callbacks -> StreamResult
"""

from .accumulator import (
    AccumulatedToolCall,
    DeltaAccumulator,
    Notification,
    NotificationKind,
    ResolvedToolCall,
    StreamState,
)
from .dispatch import Dispatcher, StreamCallbacks
from .errors import StreamError, StreamErrorBuilder, StreamErrorType
from .events import (
    DONE_SENTINEL,
    ContentDelta,
    ContentEnd,
    ContentStart,
    Done,
    EventClassifier,
    FinishReasonSignal,
    MessageEnd,
    MessageStart,
    ProviderError,
    RawChunk,
    ReasoningDelta,
    StreamEnd,
    StreamEvent,
    StreamEventType,
    StreamStart,
    ToolCallDelta,
    UsageDelta,
    classify_frame,
)
from .frames import Frame, FrameDecoder, adecode_frames, decode_frames
from .session import (
    AsyncStreamSession,
    CancellationToken,
    SessionState,
    StreamOutcome,
    StreamResult,
    StreamSession,
)

__all__ = [
    # Frames
    "Frame",
    "FrameDecoder",
    "decode_frames",
    "adecode_frames",
    # Events
    "DONE_SENTINEL",
    "EventClassifier",
    "classify_frame",
    "StreamEvent",
    "StreamEventType",
    "MessageStart",
    "StreamStart",
    "ContentStart",
    "ContentDelta",
    "ContentEnd",
    "ReasoningDelta",
    "ToolCallDelta",
    "UsageDelta",
    "FinishReasonSignal",
    "RawChunk",
    "MessageEnd",
    "StreamEnd",
    "Done",
    "ProviderError",
    # Accumulator
    "AccumulatedToolCall",
    "DeltaAccumulator",
    "Notification",
    "NotificationKind",
    "ResolvedToolCall",
    "StreamState",
    # Dispatch
    "Dispatcher",
    "StreamCallbacks",
    # Errors
    "StreamError",
    "StreamErrorBuilder",
    "StreamErrorType",
    # Session
    "AsyncStreamSession",
    "CancellationToken",
    "SessionState",
    "StreamOutcome",
    "StreamResult",
    "StreamSession",
]
