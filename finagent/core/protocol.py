"""
Agent Communication Protocol

Defines the data structures exchanged between agents, their model clients and
the callers of the orchestration core: conversation messages, model
responses, agent results and attributed stream segments.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError

DEFAULT_MAX_TOOL_ITERATIONS = 8


class MessageRole(str, Enum):
    """Role of a message inside a conversation or an in-flight exchange"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


class ToolCallRequest(BaseModel):
    """
    One tool call requested by the model.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Model-assigned call identifier, echoed in the tool result")
    name: str = Field(description="Name of the requested tool")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Arguments as decoded JSON")
    invalid_arguments: Optional[str] = Field(
        default=None,
        description="Why the model's raw arguments could not be decoded; set instead of arguments",
    )


class Message(BaseModel):
    """
    Standard message format for threads and model context.

    ``tool_call`` messages carry the model's requested calls in ``tool_calls``;
    ``tool_result`` messages reference the call they answer via ``tool_call_id``.
    """
    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(description="Who produced the message")
    content: str = Field(default="", description="Text of the message")
    author: Optional[str] = Field(None, description="Producing agent name, set during runs")
    tool_call_id: Optional[str] = Field(None, description="Call answered by a tool_result message")
    tool_calls: Tuple[ToolCallRequest, ...] = Field(default=(), description="Calls requested by a tool_call message")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, author: Optional[str] = None) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content, author=author)

    @classmethod
    def tool_call(
        cls,
        calls: List[ToolCallRequest],
        content: str = "",
        author: Optional[str] = None,
    ) -> "Message":
        return cls(role=MessageRole.TOOL_CALL, content=content, author=author, tool_calls=tuple(calls))

    @classmethod
    def tool_result(cls, call_id: str, content: str, author: Optional[str] = None) -> "Message":
        return cls(role=MessageRole.TOOL_RESULT, content=content, author=author, tool_call_id=call_id)


class ModelResponse(BaseModel):
    """
    Result of one non-streaming model call: plain text, tool calls, or both.
    """
    text: str = ""
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class ModelDelta(BaseModel):
    """
    One increment of a streaming model call. Tool calls only ever appear on
    the terminal delta of a stream.
    """
    text: str = ""
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)


class AgentConfig(BaseModel):
    """
    Immutable configuration of a leaf agent, validated at construction.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Agent name, used for attribution and logging")
    description: str = Field(default="", description="What the agent does")
    instructions: str = Field(description="Fixed system prompt")
    max_tool_iterations: int = Field(
        default=DEFAULT_MAX_TOOL_ITERATIONS,
        description="Tool-call rounds allowed in one turn before giving up",
    )

    @field_validator("name", "instructions")
    @classmethod
    def _not_blank(cls, value: str, info) -> str:
        if not value or not value.strip():
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return value.strip() if info.field_name == "name" else value

    @field_validator("max_tool_iterations")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_tool_iterations must be at least 1")
        return value

    @classmethod
    def create(cls, **kwargs: Any) -> "AgentConfig":
        """Build a config, reporting validation problems as ConfigurationError."""
        try:
            return cls(**kwargs)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid agent configuration: {exc}") from exc


class AgentResult(BaseModel):
    """
    Output of one agent or workflow turn.
    """
    agent_id: str = Field(description="Identifier of the agent that produced the result")
    agent_name: str = Field(description="Name of the agent that produced the result")
    text: str = Field(description="Full assistant text of the turn")
    messages: List[Message] = Field(default_factory=list, description="Raw messages of the turn")

    def __str__(self) -> str:
        return self.text


class StreamSegment(BaseModel):
    """
    One attributed fragment of streamed output.
    """
    model_config = ConfigDict(frozen=True)

    agent_id: str
    agent_name: str
    text: str = ""
    is_final_for_agent: bool = False
    sequence: int = Field(default=0, description="Position in the relayed stream")
