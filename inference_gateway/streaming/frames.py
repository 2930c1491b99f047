"""
Inference Gateway SDK - Frame Decoder

Turns an arbitrarily-chunked byte stream into discrete SSE frames.

A frame is one blank-line-terminated block of the event stream:

    event: content-delta
    data: {"content": "Hi"}

The decoder keeps state across chunks:
- Partial UTF-8 sequences are held by an incremental decoder
- A trailing CR is held until the next chunk shows whether it is half of a CRLF
- An incomplete block stays buffered until its blank line arrives
"""

import codecs
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, List, Optional


@dataclass(frozen=True)
class Frame:
    """One event block of the stream."""
    data: str = ""
    event: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None

    @property
    def is_labelled(self) -> bool:
        """True when the frame names its logical event."""
        return self.event is not None


class FrameDecoder:
    """
    Incremental SSE frame decoder.

    Usage:
        decoder = FrameDecoder()

        for chunk in transport_chunks:
            for frame in decoder.feed(chunk):
                handle(frame)

        for frame in decoder.flush():
            handle(frame)
    """

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._pending_cr = False
        self._bytes_received = 0

    @property
    def bytes_received(self) -> int:
        """Total number of bytes fed so far."""
        return self._bytes_received

    @property
    def has_pending(self) -> bool:
        """True when a partial frame is buffered."""
        return bool(self._buffer.strip()) or self._pending_cr

    def feed(self, chunk: bytes) -> List[Frame]:
        """
        Feed one transport chunk.

        Args:
            chunk: Raw bytes as received from the transport

        Returns:
            Every frame completed by this chunk, in stream order
        """
        if not chunk:
            return []

        self._bytes_received += len(chunk)
        self._append(self._decoder.decode(chunk))
        return self._drain()

    def flush(self) -> List[Frame]:
        """
        Signal end of stream.

        A non-blank remainder without its terminating blank line is parsed
        as a final implicit frame instead of being discarded.
        """
        self._append(self._decoder.decode(b"", final=True))
        if self._pending_cr:
            self._buffer += "\n"
            self._pending_cr = False

        frames = self._drain()
        remainder, self._buffer = self._buffer, ""
        self._decoder.reset()

        if remainder.strip():
            frame = parse_block(remainder)
            if frame is not None:
                frames.append(frame)
        return frames

    def _append(self, text: str):
        """Normalize line endings and append to the buffer."""
        if not text:
            return

        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False

        # A CR at the very end may be followed by LF in the next chunk
        if text.endswith("\r"):
            text = text[:-1]
            self._pending_cr = True

        self._buffer += text.replace("\r\n", "\n").replace("\r", "\n")

    def _drain(self) -> List[Frame]:
        """Cut every complete block out of the buffer."""
        frames: List[Frame] = []

        while True:
            boundary = self._buffer.find("\n\n")
            if boundary == -1:
                break

            block = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + 2:]

            frame = parse_block(block)
            if frame is not None:
                frames.append(frame)

        # Leading blank lines between blocks carry no information
        self._buffer = self._buffer.lstrip("\n")
        return frames


def parse_block(block: str) -> Optional[Frame]:
    """
    Parse one blank-line-delimited block into a Frame.

    Returns None for blocks without any event or data field
    (comment-only keep-alives, stray id lines).
    """
    event: Optional[str] = None
    data_lines: List[str] = []
    event_id: Optional[str] = None
    retry: Optional[int] = None

    for line in block.split("\n"):
        if not line or line.startswith(":"):
            continue

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            event = value or None
        elif name == "data":
            data_lines.append(value)
        elif name == "id":
            if "\0" not in value:
                event_id = value
        elif name == "retry":
            if value.isdigit():
                retry = int(value)

    if event is None and not data_lines:
        return None

    # "message" is the SSE default type, i.e. no label at all
    if event == "message":
        event = None

    return Frame(
        data="\n".join(data_lines),
        event=event,
        id=event_id,
        retry=retry,
    )


def decode_frames(chunks: Iterable[bytes]) -> Iterator[Frame]:
    """Lazily decode frames from a synchronous byte iterator."""
    decoder = FrameDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.flush()


async def adecode_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Lazily decode frames from an asynchronous byte iterator."""
    decoder = FrameDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    for frame in decoder.flush():
        yield frame
