"""
LangChain-backed model client (OpenAI or Azure OpenAI chat models).

Translates the core's :class:`Message` objects into LangChain messages,
binds the agent's tools with ``bind_tools`` and converts the model's
``AIMessage`` back into text and :class:`ToolCallRequest` objects.

Usage
-----
    settings = load_settings()
    client = LangChainModelClient.from_settings(settings)
    response = client.complete([Message.system("..."), Message.user("Hi")])
"""
from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from finagent.core.errors import ModelUnavailableError
from finagent.core.model_client import ModelClient
from finagent.core.protocol import Message, MessageRole, ModelDelta, ModelResponse, ToolCallRequest
from finagent.core.tool_registry import ToolDescriptor
from finagent.utils.config import Settings
from finagent.utils.logging import get_logger

logger = get_logger(__name__)


# ── LLM factory ───────────────────────────────────────────────────────────────

def build_chat_model(settings: Settings) -> BaseChatModel:
    """Return a ChatOpenAI / AzureChatOpenAI instance configured from *settings*."""
    settings.require_credentials()
    if settings.provider == "azure":
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_endpoint,
            azure_deployment=settings.azure_deployment,
            api_version=settings.azure_api_version,
            api_key=settings.azure_api_key,
            temperature=settings.temperature,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )
    return ChatOpenAI(
        model=settings.model,
        temperature=settings.temperature,
        api_key=settings.openai_api_key,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )


# ── Message conversion ────────────────────────────────────────────────────────

def to_langchain_messages(messages: Sequence[Message]) -> List[BaseMessage]:
    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == MessageRole.SYSTEM:
            converted.append(SystemMessage(content=message.content))
        elif message.role == MessageRole.USER:
            converted.append(HumanMessage(content=message.content))
        elif message.role == MessageRole.ASSISTANT:
            converted.append(AIMessage(content=message.content))
        elif message.role == MessageRole.TOOL_CALL:
            converted.append(AIMessage(
                content=message.content,
                tool_calls=[
                    {"id": call.id, "name": call.name, "args": call.arguments}
                    for call in message.tool_calls
                ],
            ))
        else:
            converted.append(ToolMessage(content=message.content, tool_call_id=message.tool_call_id))
    return converted


def _text_of(content: Any) -> str:
    """Flatten AIMessage content, which may be a string or a list of parts."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or ():
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def _call_id(raw_id: Optional[str]) -> str:
    return raw_id or f"call_{uuid.uuid4().hex[:12]}"


def _decode_arguments(raw: Any) -> Tuple[Dict[str, Any], Optional[str]]:
    """Strictly decode a JSON argument string; returns (arguments, error)."""
    if isinstance(raw, dict):
        return raw, None
    if raw is None or not str(raw).strip():
        return {}, None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        return {}, f"malformed JSON ({exc.msg}) in {raw!r}"
    if not isinstance(value, dict):
        return {}, f"expected a JSON object, got {raw!r}"
    return value, None


def _tool_calls_of(message: AIMessage) -> List[ToolCallRequest]:
    calls = [
        ToolCallRequest(id=_call_id(tc.get("id")), name=tc["name"], arguments=tc.get("args") or {})
        for tc in getattr(message, "tool_calls", None) or []
    ]
    # LangChain moves calls whose arguments failed to parse here
    for tc in getattr(message, "invalid_tool_calls", None) or []:
        _, error = _decode_arguments(tc.get("args"))
        calls.append(ToolCallRequest(
            id=_call_id(tc.get("id")),
            name=tc.get("name") or "",
            invalid_arguments=error or tc.get("error") or f"unusable arguments {tc.get('args')!r}",
        ))
    return calls


def _streamed_tool_calls(gathered: AIMessageChunk) -> List[ToolCallRequest]:
    """
    Tool calls of a fully merged stream.

    The merged chunk parses arguments leniently (``"{bad"`` becomes ``{}``),
    so the raw argument strings are decoded again here.
    """
    calls = []
    for chunk in gathered.tool_call_chunks or []:
        arguments, error = _decode_arguments(chunk.get("args"))
        calls.append(ToolCallRequest(
            id=_call_id(chunk.get("id")),
            name=chunk.get("name") or "",
            arguments=arguments,
            invalid_arguments=error,
        ))
    return calls


# ── Client ────────────────────────────────────────────────────────────────────

class LangChainModelClient(ModelClient):
    """ModelClient over any LangChain chat model that supports ``bind_tools``."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    @classmethod
    def from_settings(cls, settings: Settings) -> "LangChainModelClient":
        return cls(build_chat_model(settings))

    def _runnable(self, tools: Sequence[ToolDescriptor]):
        if not tools:
            return self.llm
        return self.llm.bind_tools([descriptor.to_langchain_tool() for descriptor in tools])

    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] = (),
    ) -> ModelResponse:
        try:
            response: AIMessage = self._runnable(tools).invoke(to_langchain_messages(messages))
        except openai.APIError as exc:
            logger.error("Model request failed: %s", exc)
            raise ModelUnavailableError(f"Model request failed: {exc}") from exc
        return ModelResponse(text=_text_of(response.content), tool_calls=_tool_calls_of(response))

    def stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] = (),
    ) -> Iterator[ModelDelta]:
        gathered = None
        try:
            for chunk in self._runnable(tools).stream(to_langchain_messages(messages)):
                gathered = chunk if gathered is None else gathered + chunk
                text = _text_of(chunk.content)
                if text:
                    yield ModelDelta(text=text)
        except openai.APIError as exc:
            logger.error("Model stream failed: %s", exc)
            raise ModelUnavailableError(f"Model stream failed: {exc}") from exc

        # tool-call fragments are only complete once every chunk is merged
        if isinstance(gathered, AIMessageChunk):
            calls = _streamed_tool_calls(gathered)
            if calls:
                yield ModelDelta(tool_calls=calls)
