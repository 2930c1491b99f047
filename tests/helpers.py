"""
Inference Gateway SDK - Test Helpers

SSE wire builders, a scripted gateway for httpx.MockTransport and a
callback recorder.
"""

import json
from dataclasses import fields
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from inference_gateway.streaming import StreamCallbacks, StreamError, StreamResult


BASE_URL = "http://gateway.test/v1"

# ============================================================
# Wire builders
# ============================================================

def sse(data: Any, event: Optional[str] = None) -> str:
    """One SSE frame; dicts are JSON-encoded."""
    if not isinstance(data, str):
        data = json.dumps(data)
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {data}")
    return "\n".join(lines) + "\n\n"


def chunk(
    content: Optional[str] = None,
    role: Optional[str] = None,
    reasoning_content: Optional[str] = None,
    tool_calls: Optional[List[Dict[str, Any]]] = None,
    finish_reason: Optional[str] = None,
    usage: Optional[Dict[str, int]] = None,
    choices: bool = True,
) -> Dict[str, Any]:
    """A chat.completion.chunk object."""
    delta: Dict[str, Any] = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if reasoning_content is not None:
        delta["reasoning_content"] = reasoning_content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls

    payload: Dict[str, Any] = {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "gpt-4o",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}] if choices else [],
    }
    if usage is not None:
        payload["usage"] = usage
    return payload


def tool_fragment(
    index: int,
    id: Optional[str] = None,
    name: Optional[str] = None,
    arguments: Optional[str] = None,
) -> Dict[str, Any]:
    """One `tool_calls[]` delta entry."""
    entry: Dict[str, Any] = {"index": index}
    if id is not None:
        entry["id"] = id
        entry["type"] = "function"
    function: Dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        entry["function"] = function
    return entry


DONE = "data: [DONE]\n\n"

LABELLED_HI_THERE = (
    sse({"content": "Hi"}, event="content-delta")
    + sse({"content": " there"}, event="content-delta")
    + sse({}, event="stream-end")
)

TOOL_CALL_STREAM = (
    sse(chunk(role="assistant", tool_calls=[
        tool_fragment(0, id="c1", name="get_weather", arguments='{"loc'),
    ]))
    + sse(chunk(tool_calls=[tool_fragment(0, arguments='ation":"SF"}')]))
    + sse(chunk(finish_reason="tool_calls"))
    + DONE
)


def split_every(data: bytes, size: int) -> List[bytes]:
    """Split bytes into chunks of `size` (last one shorter)."""
    return [data[i:i + size] for i in range(0, len(data), size)]


# ============================================================
# Scripted gateway
# ============================================================

class ScriptedGateway:
    """
    httpx.MockTransport handler replaying a scripted streaming response.

    Records every request it receives.
    """

    def __init__(
        self,
        chunks: Iterable[bytes] = (),
        status_code: int = 200,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        fail_after: Optional[int] = None,
        asynchronous: bool = False,
    ):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.json_body = json_body
        self.headers = headers or {}
        self.fail_after = fail_after
        self.asynchronous = asynchronous
        self.requests: List[httpx.Request] = []

    @classmethod
    def streaming(cls, body: str, chunk_size: Optional[int] = None, **kwargs) -> "ScriptedGateway":
        data = body.encode("utf-8")
        chunks = split_every(data, chunk_size) if chunk_size else [data]
        return cls(chunks=chunks, **kwargs)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.last_request.content)

    def _sync_body(self):
        for i, piece in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise httpx.ReadError("connection reset by peer")
            yield piece
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise httpx.ReadError("connection reset by peer")

    async def _async_body(self):
        for piece in self._sync_body():
            yield piece

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.json_body is not None:
            return httpx.Response(self.status_code, json=self.json_body, headers=self.headers)

        body = self._async_body() if self.asynchronous else self._sync_body()
        headers = {"content-type": "text/event-stream", **self.headers}
        return httpx.Response(self.status_code, content=body, headers=headers)


# ============================================================
# Callback recorder
# ============================================================

CALLBACK_NAMES = [f.name for f in fields(StreamCallbacks)]


class CallbackRecorder:
    """Records every callback invocation as (name, argument)."""

    def __init__(self):
        self.calls: List[Tuple[str, Any]] = []

    def _make(self, name: str) -> Callable:
        def handler(*args):
            self.calls.append((name, args[0] if args else None))
        return handler

    def callbacks(self, **overrides) -> StreamCallbacks:
        handlers = {name: self._make(name) for name in CALLBACK_NAMES}
        handlers.update(overrides)
        return StreamCallbacks(**handlers)

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def args(self, name: str) -> List[Any]:
        return [arg for n, arg in self.calls if n == name]

    def count(self, name: str) -> int:
        return len(self.args(name))

    def errors(self) -> List[StreamError]:
        return self.args("on_error")

    def normalized(self) -> List[Tuple[str, Any]]:
        """Calls with per-stream values (ids, timestamps) stripped."""
        result = []
        for name, arg in self.calls:
            if isinstance(arg, StreamResult):
                arg = (arg.content, arg.reasoning, arg.outcome, tuple(arg.tool_calls), arg.usage)
            elif isinstance(arg, StreamError):
                arg = (arg.type, arg.fatal, arg.message)
            result.append((name, arg))
        return result
