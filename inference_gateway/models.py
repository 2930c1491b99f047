"""
Inference Gateway SDK - Data Models

Dataclasses for requests and responses exchanged with the gateway.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# ============================================================
# Enums
# ============================================================

class Provider(str, Enum):
    """Providers the gateway can route to."""
    OLLAMA = "ollama"
    GROQ = "groq"
    OPENAI = "openai"
    CLOUDFLARE = "cloudflare"
    COHERE = "cohere"
    ANTHROPIC = "anthropic"
    DEEPSEEK = "deepseek"


class MessageRole(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Reasons the model stopped generating."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    FUNCTION_CALL = "function_call"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[Union[FinishReason, str]]:
        """Map a wire value to the enum, keeping unknown values verbatim."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return value


# ============================================================
# Tool Models
# ============================================================

@dataclass
class FunctionDefinition:
    """Function definition for tool calling."""
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name}
        if self.description:
            result["description"] = self.description
        if self.parameters:
            result["parameters"] = self.parameters
        return result


@dataclass
class Tool:
    """Tool definition for function calling."""
    function: FunctionDefinition
    type: str = "function"

    @classmethod
    def create(
        cls,
        name: str,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None
    ) -> Tool:
        """Create a tool with the given function definition."""
        return cls(
            function=FunctionDefinition(
                name=name,
                description=description,
                parameters=parameters or {"type": "object", "properties": {}}
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "function": self.function.to_dict()
        }


@dataclass
class FunctionCall:
    """Function call details."""
    name: str
    arguments: str  # JSON string

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass
class ToolCall:
    """Tool call from the assistant."""
    id: str
    function: FunctionCall
    type: str = "function"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ToolCall:
        func_data = data.get("function") or {}
        return cls(
            id=data.get("id", ""),
            type=data.get("type", "function"),
            function=FunctionCall(
                name=func_data.get("name", ""),
                arguments=func_data.get("arguments", "")
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": self.function.to_dict()
        }


# ============================================================
# Message Models
# ============================================================

@dataclass
class Message:
    """A chat message."""
    role: Union[MessageRole, str]
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    reasoning: Optional[str] = None
    reasoning_content: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: Optional[str] = None,
        tool_calls: Optional[List[ToolCall]] = None
    ) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        """Create a tool result message."""
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        tool_calls = data.get("tool_calls")
        return cls(
            role=data.get("role", MessageRole.ASSISTANT.value),
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in tool_calls] if tool_calls else None,
            tool_call_id=data.get("tool_call_id"),
            reasoning=data.get("reasoning"),
            reasoning_content=data.get("reasoning_content"),
        )

    def to_dict(self) -> Dict[str, Any]:
        role = self.role.value if isinstance(self.role, MessageRole) else self.role
        result: Dict[str, Any] = {"role": role, "content": self.content or ""}

        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        if self.reasoning:
            result["reasoning"] = self.reasoning
        if self.reasoning_content:
            result["reasoning_content"] = self.reasoning_content

        return result


# ============================================================
# Request Models
# ============================================================

@dataclass
class ChatCompletionRequest:
    """Request body for `POST /chat/completions`."""
    model: str
    messages: List[Union[Message, Dict[str, Any]]]
    max_tokens: Optional[int] = None
    tools: Optional[List[Union[Tool, Dict[str, Any]]]] = None
    include_usage: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, stream: bool = False) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                m.to_dict() if isinstance(m, Message) else dict(m)
                for m in self.messages
            ],
            "stream": stream,
        }

        if self.max_tokens is not None:
            result["max_tokens"] = self.max_tokens
        if self.tools:
            result["tools"] = [
                t.to_dict() if isinstance(t, Tool) else dict(t)
                for t in self.tools
            ]
        if stream and self.include_usage:
            result["stream_options"] = {"include_usage": True}

        result.update(self.extra)
        return result


def request_payload(
    request: Union[ChatCompletionRequest, Dict[str, Any]],
    stream: bool = False
) -> Dict[str, Any]:
    """Serialize a request given as a dataclass or a plain dict."""
    if isinstance(request, ChatCompletionRequest):
        return request.to_dict(stream=stream)

    payload = dict(request)
    payload["messages"] = [
        m.to_dict() if isinstance(m, Message) else m
        for m in payload.get("messages", [])
    ]
    if payload.get("tools"):
        payload["tools"] = [
            t.to_dict() if isinstance(t, Tool) else t
            for t in payload["tools"]
        ]
    payload["stream"] = stream
    return payload


# ============================================================
# Response Models
# ============================================================

@dataclass
class Usage:
    """Token usage information."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Usage:
        data = data or {}
        return cls(
            prompt_tokens=data.get("prompt_tokens") or 0,
            completion_tokens=data.get("completion_tokens") or 0,
            total_tokens=data.get("total_tokens") or 0
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ChatCompletionChoice:
    """One choice of a non-streaming completion."""
    index: int
    message: Message
    finish_reason: Optional[Union[FinishReason, str]] = None


@dataclass
class ChatCompletionResponse:
    """Response from a non-streaming chat completion."""
    id: str
    model: str
    choices: List[ChatCompletionChoice]
    created: int = 0
    object: str = "chat.completion"
    usage: Optional[Usage] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChatCompletionResponse:
        choices = [
            ChatCompletionChoice(
                index=c.get("index", i),
                message=Message.from_dict(c.get("message") or {}),
                finish_reason=FinishReason.parse(c.get("finish_reason")),
            )
            for i, c in enumerate(data.get("choices") or [])
        ]
        usage = data.get("usage")
        return cls(
            id=data.get("id", ""),
            model=data.get("model", ""),
            choices=choices,
            created=data.get("created", 0),
            object=data.get("object", "chat.completion"),
            usage=Usage.from_dict(usage) if usage else None,
        )

    @property
    def content(self) -> Optional[str]:
        """Content of the first choice."""
        return self.choices[0].message.content if self.choices else None

    @property
    def tool_calls(self) -> List[ToolCall]:
        if not self.choices:
            return []
        return self.choices[0].message.tool_calls or []


@dataclass
class Model:
    """A model served by the gateway."""
    id: str
    object: str = "model"
    created: int = 0
    owned_by: str = ""
    served_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Model:
        return cls(
            id=data.get("id", ""),
            object=data.get("object", "model"),
            created=data.get("created", 0),
            owned_by=data.get("owned_by", ""),
            served_by=data.get("served_by"),
        )


@dataclass
class ListModelsResponse:
    """Response of `GET /models`."""
    data: List[Model] = field(default_factory=list)
    object: str = "list"
    provider: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ListModelsResponse:
        return cls(
            data=[Model.from_dict(m) for m in data.get("data") or []],
            object=data.get("object", "list"),
            provider=data.get("provider"),
        )


@dataclass
class MCPTool:
    """A tool exposed by an MCP server behind the gateway."""
    name: str
    description: str = ""
    server: str = ""
    input_schema: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MCPTool:
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            server=data.get("server", ""),
            input_schema=data.get("input_schema"),
        )


@dataclass
class ListToolsResponse:
    """Response of `GET /mcp/tools`."""
    data: List[MCPTool] = field(default_factory=list)
    object: str = "list"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ListToolsResponse:
        return cls(
            data=[MCPTool.from_dict(t) for t in data.get("data") or []],
            object=data.get("object", "list"),
        )
