"""
ChatAgent — a language-model agent bound to instructions, tools and a model client.

The agent drives a tool-calling loop: the model is called with the system
instructions, the thread history and the user input; whenever it asks for
tools, every requested call is validated and invoked in request order, the
results are appended as tool-result messages and the model is called again,
until it answers in plain text or the iteration cap is reached.

Usage
-----
    agent = ChatAgent.create(
        model_client,
        name="StockSentimentAgent",
        instructions=SYSTEM_PROMPT,
        tools=[get_current_utc_time, get_stock_price],
    )
    thread = agent.new_thread()
    print(agent.run("What do you think about MSFT?", thread).text)

    for segment in agent.run_streaming("And AAPL?", thread):
        print(segment.text, end="")
"""
from __future__ import annotations

import json
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Union

from langchain_core.tools import BaseTool
from pydantic import BaseModel

from .base_agent import BaseAgent, SegmentStream
from .cancellation import CancellationToken
from .errors import (
    AgentExecutionError,
    ConfigurationError,
    OperationCancelledError,
    SchemaMismatchError,
    ToolError,
    ToolLoopExceededError,
)
from .model_client import ModelClient
from .protocol import (
    DEFAULT_MAX_TOOL_ITERATIONS,
    AgentConfig,
    AgentResult,
    Message,
    ModelDelta,
    StreamSegment,
    ToolCallRequest,
)
from .thread import ConversationThread
from .tool_registry import ToolDescriptor, ToolRegistry
from finagent.utils.tracing import traceable

ToolLike = Union[ToolDescriptor, BaseTool]


class ChatAgent(BaseAgent):
    """Leaf agent: one system prompt, one model client, an optional tool set."""

    def __init__(
        self,
        config: AgentConfig,
        model_client: ModelClient,
        tools: Optional[Iterable[ToolLike]] = None,
    ) -> None:
        if not isinstance(config, AgentConfig):
            raise ConfigurationError("ChatAgent requires an AgentConfig.")
        if not isinstance(model_client, ModelClient):
            raise ConfigurationError(f"Agent '{config.name}' requires a ModelClient.")
        super().__init__(config.name, config.description)
        self._config = config
        self._model_client = model_client
        # private copy: later changes to the caller's registry do not leak in
        self._tools = ToolRegistry(tools)

    @classmethod
    def create(
        cls,
        model_client: ModelClient,
        *,
        name: str,
        instructions: str,
        description: str = "",
        tools: Optional[Iterable[ToolLike]] = None,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
    ) -> "ChatAgent":
        """Validate the configuration and build the agent."""
        config = AgentConfig.create(
            name=name,
            description=description,
            instructions=instructions,
            max_tool_iterations=max_tool_iterations,
        )
        return cls(config, model_client, tools)

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def instructions(self) -> str:
        return self._config.instructions

    @property
    def tools(self) -> tuple:
        return self._tools.descriptors()

    @property
    def model_client(self) -> ModelClient:
        return self._model_client

    # ── public API ────────────────────────────────────────────────────────────

    @traceable(name="chat_agent.run", run_type="chain", tags=["agent"])
    def run(
        self,
        input_text: str,
        thread: Optional[ConversationThread] = None,
        *,
        tools: Optional[Iterable[ToolDescriptor]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AgentResult:
        input_text = self._validate_input(input_text)
        self._check_thread(thread)
        registry = self._resolve_tools(tools)
        token = cancel_token or CancellationToken()

        self.logger.info("Running turn: %s", input_text[:80])
        exchange = self._build_context(input_text, thread)
        turn_start = len(exchange) - 1
        text = "".join(self._drive(exchange, registry, token, streaming=False))
        token.raise_if_cancelled()

        self._commit(thread, input_text, text)
        self.logger.info("Turn complete (%d chars)", len(text))
        return AgentResult(
            agent_id=self.id,
            agent_name=self.name,
            text=text,
            messages=exchange[turn_start:],
        )

    def run_streaming(
        self,
        input_text: str,
        thread: Optional[ConversationThread] = None,
        *,
        tools: Optional[Iterable[ToolDescriptor]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SegmentStream:
        # validate eagerly, before the caller starts iterating
        input_text = self._validate_input(input_text)
        self._check_thread(thread)
        registry = self._resolve_tools(tools)
        token = cancel_token or CancellationToken()
        return self._stream_turn(input_text, thread, registry, token)

    # ── turn internals ────────────────────────────────────────────────────────

    def _stream_turn(
        self,
        input_text: str,
        thread: Optional[ConversationThread],
        registry: ToolRegistry,
        token: CancellationToken,
    ) -> SegmentStream:
        self.logger.info("Streaming turn: %s", input_text[:80])
        exchange = self._build_context(input_text, thread)
        turn_start = len(exchange) - 1
        parts: List[str] = []
        steps = self._drive(exchange, registry, token, streaming=True)
        try:
            for fragment in steps:
                parts.append(fragment)
                yield StreamSegment(agent_id=self.id, agent_name=self.name, text=fragment)
                token.raise_if_cancelled()
        finally:
            steps.close()

        text = "".join(parts)
        self._commit(thread, input_text, text)
        self.logger.info("Streamed turn complete (%d chars)", len(text))
        yield StreamSegment(agent_id=self.id, agent_name=self.name, is_final_for_agent=True)
        return AgentResult(
            agent_id=self.id,
            agent_name=self.name,
            text=text,
            messages=exchange[turn_start:],
        )

    def _drive(
        self,
        exchange: List[Message],
        registry: ToolRegistry,
        token: CancellationToken,
        streaming: bool,
    ) -> Iterator[str]:
        """
        Run the tool loop over *exchange*, yielding assistant text in
        generation order. *exchange* is extended in place with tool-call,
        tool-result and the final assistant message.
        """
        cap = self._config.max_tool_iterations
        for iteration in range(cap + 1):
            token.raise_if_cancelled()
            calls: List[ToolCallRequest] = []
            parts: List[str] = []
            if streaming:
                for delta in self._stream_model(exchange, registry):
                    if delta.text:
                        parts.append(delta.text)
                        yield delta.text
                    calls.extend(delta.tool_calls)
            else:
                response = self._complete(exchange, registry)
                if response.text:
                    parts.append(response.text)
                    yield response.text
                calls.extend(response.tool_calls)
            text = "".join(parts)

            if not calls:
                exchange.append(Message.assistant(text, author=self.name))
                return
            if iteration >= cap:
                self.logger.error("Tool loop exceeded %d iterations", cap)
                raise ToolLoopExceededError(self.name, cap)

            exchange.append(Message.tool_call(calls, text, author=self.name))
            for call in calls:
                token.raise_if_cancelled()
                exchange.append(self._invoke_tool(call, registry))

    def _complete(self, exchange: Sequence[Message], registry: ToolRegistry):
        try:
            return self._model_client.complete(list(exchange), registry.descriptors())
        except OperationCancelledError:
            raise
        except Exception as exc:
            raise self._execution_error(exc) from exc

    def _stream_model(self, exchange: Sequence[Message], registry: ToolRegistry) -> Iterator[ModelDelta]:
        deltas = iter(self._model_client.stream(list(exchange), registry.descriptors()))
        try:
            while True:
                try:
                    delta = next(deltas)
                except StopIteration:
                    return
                except OperationCancelledError:
                    raise
                except Exception as exc:
                    raise self._execution_error(exc) from exc
                yield delta
        finally:
            close = getattr(deltas, "close", None)
            if close is not None:
                close()

    def _invoke_tool(self, call: ToolCallRequest, registry: ToolRegistry) -> Message:
        """Invoke one requested tool; tool failures become the result text."""
        try:
            if call.invalid_arguments is not None:
                raise SchemaMismatchError(f"invalid arguments: {call.invalid_arguments}", call.name)
            result = registry.get(call.name).invoke(call.arguments)
            content = _render_tool_result(result)
        except ToolError as exc:
            self.logger.warning("Tool %s failed: %s", call.name, exc)
            content = f"Tool error ({call.name}): {exc}"
        return Message.tool_result(call.id, content, author=self.name)

    def _execution_error(self, exc: Exception) -> AgentExecutionError:
        self.logger.error("Model call failed: %s", exc)
        return AgentExecutionError(f"Agent '{self.name}' failed: {exc}", agent_name=self.name)

    def _build_context(self, input_text: str, thread: Optional[ConversationThread]) -> List[Message]:
        context = [Message.system(self.instructions)]
        if thread is not None:
            context.extend(thread.history())
        context.append(Message.user(input_text))
        return context

    def _resolve_tools(self, tools: Optional[Iterable[ToolDescriptor]]) -> ToolRegistry:
        if not tools:
            return self._tools
        return self._tools.merged(tools)


def _render_tool_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, default=str)
