"""
Inference Gateway SDK - Stream Payload Schemas

Pydantic models for the JSON carried in `data:` lines.

Two payload families exist:
- Labelled protocol: small objects keyed by the frame's `event` label
- Chunk protocol: OpenAI-style `chat.completion.chunk` objects

The models are deliberately lenient (unknown fields allowed, most fields
optional) so that gateway/provider additions never break the consumer.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================
# Labelled protocol
# ============================================================

class MessageStartPayload(BaseModel):
    """`message-start` payload."""
    role: str = "assistant"

    model_config = ConfigDict(extra="allow")


class ContentDeltaPayload(BaseModel):
    """`content-delta` payload."""
    content: str = ""

    model_config = ConfigDict(extra="allow")


# ============================================================
# Chunk protocol
# ============================================================

class FunctionDeltaPayload(BaseModel):
    """Function part of a tool call fragment."""
    name: Optional[str] = None
    arguments: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class ToolCallDeltaPayload(BaseModel):
    """One `tool_calls[]` entry of a chunk delta."""
    index: int
    id: Optional[str] = None
    type: Optional[str] = None
    function: Optional[FunctionDeltaPayload] = None

    model_config = ConfigDict(extra="allow")


class DeltaPayload(BaseModel):
    """`choices[].delta` object."""
    role: Optional[str] = None
    content: Optional[str] = None
    reasoning_content: Optional[str] = None
    reasoning: Optional[str] = None
    refusal: Optional[str] = None
    tool_calls: Optional[List[ToolCallDeltaPayload]] = None

    model_config = ConfigDict(extra="allow")

    @property
    def reasoning_text(self) -> Optional[str]:
        """Reasoning text, whichever field the provider used."""
        if self.reasoning_content:
            return self.reasoning_content
        return self.reasoning or None


class ChoicePayload(BaseModel):
    """One `choices[]` entry."""
    index: int = 0
    delta: DeltaPayload = Field(default_factory=DeltaPayload)
    finish_reason: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("delta", mode="before")
    @classmethod
    def none_delta_is_empty(cls, v):
        """Some providers send `"delta": null` on the final chunk."""
        return {} if v is None else v


class UsagePayload(BaseModel):
    """Top-level `usage` object."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    model_config = ConfigDict(extra="allow")

    @field_validator("prompt_tokens", "completion_tokens", "total_tokens", mode="before")
    @classmethod
    def none_is_zero(cls, v):
        return 0 if v is None else v


class ChunkPayload(BaseModel):
    """A `chat.completion.chunk` object."""
    id: Optional[str] = None
    object: Optional[str] = None
    created: Optional[int] = None
    model: Optional[str] = None
    choices: List[ChoicePayload] = Field(default_factory=list)
    usage: Optional[UsagePayload] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("choices", mode="before")
    @classmethod
    def none_choices_is_empty(cls, v):
        return [] if v is None else v

    @property
    def first_choice(self) -> Optional[ChoicePayload]:
        return self.choices[0] if self.choices else None


class ErrorPayload(BaseModel):
    """Gateway error object, either `{"error": "msg"}` or `{"error": {...}}`."""
    error: Union[str, Dict[str, Any]]

    model_config = ConfigDict(extra="allow")

    @property
    def message(self) -> str:
        if isinstance(self.error, str):
            return self.error
        return str(self.error.get("message") or self.error.get("code") or "Unknown error")
