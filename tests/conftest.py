"""Shared fixtures: scripted model clients and small tools."""
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import pytest

from finagent.core.model_client import ModelClient
from finagent.core.protocol import Message, MessageRole, ModelDelta, ModelResponse, ToolCallRequest
from finagent.core.tool_registry import ToolRegistry


def tool_call(name: str, arguments: Optional[dict] = None, call_id: Optional[str] = None) -> ModelResponse:
    """A model response that asks for one tool call."""
    return ModelResponse(
        tool_calls=[ToolCallRequest(id=call_id or f"call_{name}", name=name, arguments=arguments or {})]
    )


def last_user_text(messages: Sequence[Message]) -> str:
    return next(m.content for m in reversed(messages) if m.role == MessageRole.USER)


class ScriptedModelClient(ModelClient):
    """
    Deterministic ModelClient for tests.

    Replays ``responses`` in order (strings become text responses, exceptions
    are raised), or delegates to ``responder(messages, tools)``. Streaming
    splits text into 4-character deltas.
    """

    def __init__(self, responses=None, responder: Optional[Callable] = None) -> None:
        self.responses = list(responses or [])
        self.responder = responder
        self.calls: List[dict] = []

    def complete(self, messages, tools=()):
        self.calls.append({"messages": list(messages), "tools": tuple(t.name for t in tools)})
        if self.responder is not None:
            response = self.responder(messages, tools)
        elif self.responses:
            response = self.responses.pop(0)
        else:
            raise AssertionError("ScriptedModelClient ran out of responses")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return ModelResponse(text=response)
        return response

    def stream(self, messages, tools=()):
        response = self.complete(messages, tools)
        text = response.text
        for i in range(0, len(text), 4):
            yield ModelDelta(text=text[i:i + 4])
        if response.tool_calls:
            yield ModelDelta(tool_calls=response.tool_calls)


@pytest.fixture
def upper_client():
    """Model that answers with the latest user message uppercased."""
    return ScriptedModelClient(responder=lambda messages, tools: last_user_text(messages).upper())


@pytest.fixture
def time_registry():
    """Registry with a single deterministic getTime tool; counts invocations."""
    calls = []

    def get_time():
        calls.append(1)
        return "12:00 UTC"

    registry = ToolRegistry()
    registry.register("getTime", None, get_time, description="Current time")
    registry.calls = calls
    return registry
