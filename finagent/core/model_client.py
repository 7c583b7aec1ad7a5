"""
ModelClient — the single capability the core needs from a language model.

Concrete clients (see ``finagent.models``) are built at process start from
settings and injected into agents; nothing in the core reads credentials or
environment variables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Sequence

from .protocol import Message, ModelDelta, ModelResponse
from .tool_registry import ToolDescriptor


class ModelClient(ABC):
    """
    Request/response contract with the model endpoint.

    Subclasses must implement :meth:`complete`. :meth:`stream` defaults to a
    single-delta replay of :meth:`complete`; override it for token streaming.
    """

    @abstractmethod
    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] = (),
    ) -> ModelResponse:
        """
        Send *messages* (system prompt first) and return text and/or tool calls.

        Raises
        ------
        ModelUnavailableError
            When the endpoint cannot be reached or rejects the request.
        """

    def stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] = (),
    ) -> Iterator[ModelDelta]:
        """
        Yield text deltas in generation order; a terminal delta carries any
        tool calls the model requested.
        """
        response = self.complete(messages, tools)
        if response.text:
            yield ModelDelta(text=response.text)
        if response.tool_calls:
            yield ModelDelta(tool_calls=response.tool_calls)
