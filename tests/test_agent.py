"""Tests for finagent/core/agent.py: the ChatAgent turn and its tool loop"""
from __future__ import annotations

import pytest

from conftest import ScriptedModelClient, last_user_text, tool_call
from finagent.core.agent import ChatAgent
from finagent.core.cancellation import CancellationToken
from finagent.core.errors import (
    AgentExecutionError,
    ConfigurationError,
    DuplicateToolNameError,
    ModelUnavailableError,
    OperationCancelledError,
    ThreadOwnershipError,
    ToolLoopExceededError,
)
from finagent.core.protocol import Message, MessageRole, ModelResponse, ToolCallRequest
from finagent.core.thread import ConversationThread
from finagent.core.tool_registry import ToolRegistry


def _agent(client, tools=None, cap=8, name="Echo"):
    return ChatAgent.create(
        client,
        name=name,
        instructions="echo the input uppercased",
        tools=tools,
        max_tool_iterations=cap,
    )


# ── construction ──────────────────────────────────────────────────────────────

class TestConstruction:

    def test_blank_instructions_rejected(self, upper_client):
        with pytest.raises(ConfigurationError):
            ChatAgent.create(upper_client, name="A", instructions="  ")

    def test_blank_name_rejected(self, upper_client):
        with pytest.raises(ConfigurationError):
            ChatAgent.create(upper_client, name="", instructions="x")

    def test_non_positive_cap_rejected(self, upper_client):
        with pytest.raises(ConfigurationError):
            _agent(upper_client, cap=0)

    def test_model_client_required(self):
        with pytest.raises(ConfigurationError):
            ChatAgent.create(None, name="A", instructions="x")

    def test_duplicate_tools_rejected(self, upper_client, time_registry):
        tool = time_registry.get("getTime")
        with pytest.raises(DuplicateToolNameError):
            _agent(upper_client, tools=[tool, tool])

    def test_identity(self, upper_client):
        first, second = _agent(upper_client), _agent(upper_client)
        assert first.id != second.id
        assert first.name == "Echo"
        assert "Echo" in repr(first)

    def test_tools_copied_from_registry(self, upper_client, time_registry):
        agent = _agent(upper_client, tools=time_registry)
        time_registry.register("later", None, lambda: "x")
        assert [t.name for t in agent.tools] == ["getTime"]


# ── run ───────────────────────────────────────────────────────────────────────

class TestRun:

    def test_echo_scenario(self, upper_client):
        agent = _agent(upper_client)
        thread = agent.new_thread()
        result = agent.run("hello", thread)
        assert result.text == "HELLO"
        history = thread.history()
        assert len(history) == 2
        assert (history[0].role, history[0].content) == (MessageRole.USER, "hello")
        assert (history[1].role, history[1].content) == (MessageRole.ASSISTANT, "HELLO")
        assert history[1].author == "Echo"

    def test_context_is_system_then_history_then_input(self, upper_client):
        agent = _agent(upper_client)
        thread = agent.new_thread()
        agent.run("first", thread)
        agent.run("second", thread)
        sent = upper_client.calls[-1]["messages"]
        assert [m.role for m in sent] == [
            MessageRole.SYSTEM, MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER,
        ]
        assert sent[0].content == "echo the input uppercased"
        assert sent[-1].content == "second"
        assert len(thread) == 4

    def test_run_without_thread(self, upper_client):
        result = _agent(upper_client).run("abc")
        assert result.text == "ABC"
        assert [m.role for m in result.messages] == [MessageRole.USER, MessageRole.ASSISTANT]

    def test_unowned_thread_is_claimed(self, upper_client):
        agent = _agent(upper_client)
        thread = ConversationThread()
        agent.run("x", thread)
        assert thread.agent_id == agent.id

    def test_foreign_thread_rejected(self, upper_client):
        owner, other = _agent(upper_client), _agent(upper_client)
        thread = owner.new_thread()
        with pytest.raises(ThreadOwnershipError):
            other.run("x", thread)
        assert upper_client.calls == []

    def test_empty_input_rejected(self, upper_client):
        with pytest.raises(ValueError):
            _agent(upper_client).run("   ")


# ── tool loop ─────────────────────────────────────────────────────────────────

class TestToolLoop:

    def test_single_tool_call_scenario(self, time_registry):
        def responder(messages, tools):
            last = messages[-1]
            if last.role == MessageRole.TOOL_RESULT:
                return f"It is {last.content}"
            return tool_call("getTime")

        client = ScriptedModelClient(responder=responder)
        agent = _agent(client, tools=time_registry)
        thread = agent.new_thread()
        result = agent.run("what time is it?", thread)

        assert len(time_registry.calls) == 1
        assert result.text == "It is 12:00 UTC"
        assert client.calls[0]["tools"] == ("getTime",)
        assert [m.role for m in result.messages] == [
            MessageRole.USER, MessageRole.TOOL_CALL, MessageRole.TOOL_RESULT, MessageRole.ASSISTANT,
        ]
        # tool traffic stays out of the thread
        assert [m.role for m in thread] == [MessageRole.USER, MessageRole.ASSISTANT]

    def test_multiple_calls_invoked_in_requested_order(self):
        order = []
        registry = ToolRegistry()
        registry.register("first", None, lambda: order.append("first") or "1")
        registry.register("second", None, lambda: order.append("second") or "2")

        client = ScriptedModelClient([
            ModelResponse(tool_calls=[
                ToolCallRequest(id="b", name="second"),
                ToolCallRequest(id="a", name="first"),
            ]),
            "done",
        ])
        result = _agent(client, tools=registry).run("go")

        assert order == ["second", "first"]
        followup = client.calls[1]["messages"]
        results = [m for m in followup if m.role == MessageRole.TOOL_RESULT]
        assert [(m.tool_call_id, m.content) for m in results] == [("b", "2"), ("a", "1")]
        assert result.text == "done"

    def test_loop_exceeding_cap_raises(self, time_registry):
        client = ScriptedModelClient(responder=lambda messages, tools: tool_call("getTime"))
        agent = _agent(client, tools=time_registry, cap=3)
        thread = agent.new_thread()
        with pytest.raises(ToolLoopExceededError) as exc_info:
            agent.run("loop", thread)
        assert exc_info.value.iterations == 3
        assert len(time_registry.calls) == 3
        assert len(client.calls) == 4
        assert len(thread) == 0

    def test_cap_allows_exactly_cap_rounds(self, time_registry):
        client = ScriptedModelClient([tool_call("getTime")] * 3 + ["finally"])
        result = _agent(client, tools=time_registry, cap=3).run("loop")
        assert result.text == "finally"

    def test_unknown_tool_fed_back_to_model(self):
        client = ScriptedModelClient([tool_call("nope"), "sorry, no such tool"])
        result = _agent(client).run("use a tool")
        tool_result = client.calls[1]["messages"][-1]
        assert tool_result.role == MessageRole.TOOL_RESULT
        assert tool_result.content.startswith("Tool error (nope):")
        assert "Unknown tool" in tool_result.content
        assert result.text == "sorry, no such tool"

    def test_schema_mismatch_fed_back_to_model(self):
        registry = ToolRegistry()
        registry.register("price", {"symbol": str}, lambda symbol: "1.0")
        client = ScriptedModelClient([tool_call("price", {"ticker": "MSFT"}), "retrying failed"])
        _agent(client, tools=registry).run("price?")
        assert "Invalid arguments" in client.calls[1]["messages"][-1].content

    def test_undecodable_arguments_fed_back_to_model(self, time_registry):
        bad_call = ToolCallRequest(id="c1", name="getTime", invalid_arguments="malformed JSON in '{bad'")
        client = ScriptedModelClient([ModelResponse(tool_calls=[bad_call]), "let me retry"])
        thread = ConversationThread()
        result = _agent(client, tools=time_registry).run("time?", thread)

        assert time_registry.calls == []
        tool_result = client.calls[1]["messages"][-1]
        assert tool_result.tool_call_id == "c1"
        assert tool_result.content.startswith("Tool error (getTime): invalid arguments")
        assert result.text == "let me retry"
        assert [m.content for m in thread] == ["time?", "let me retry"]

    def test_tool_exception_fed_back_to_model(self):
        def broken():
            raise RuntimeError("quote service down")

        registry = ToolRegistry()
        registry.register("broken", None, broken)
        client = ScriptedModelClient([tool_call("broken"), "The quote service is down."])
        result = _agent(client, tools=registry).run("price?")
        assert "quote service down" in client.calls[1]["messages"][-1].content
        assert result.text == "The quote service is down."

    def test_structured_result_serialised(self):
        registry = ToolRegistry()
        registry.register("quote", None, lambda: {"symbol": "MSFT", "close": 410.5})
        client = ScriptedModelClient([tool_call("quote"), "ok"])
        _agent(client, tools=registry).run("q")
        assert client.calls[1]["messages"][-1].content == '{"symbol": "MSFT", "close": 410.5}'

    def test_per_call_tools_merged(self, time_registry):
        client = ScriptedModelClient(["ok"])
        agent = _agent(client)
        agent.run("x", tools=time_registry.descriptors())
        assert client.calls[0]["tools"] == ("getTime",)
        assert agent.tools == ()

    def test_per_call_duplicate_tool_rejected(self, upper_client, time_registry):
        agent = _agent(upper_client, tools=time_registry)
        with pytest.raises(DuplicateToolNameError):
            agent.run("x", tools=time_registry.descriptors())


# ── failures ──────────────────────────────────────────────────────────────────

class TestFailures:

    def test_model_error_wrapped(self):
        cause = ModelUnavailableError("endpoint unreachable")
        client = ScriptedModelClient([cause])
        agent = _agent(client)
        thread = agent.new_thread()
        with pytest.raises(AgentExecutionError) as exc_info:
            agent.run("hi", thread)
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.agent_name == "Echo"
        assert len(thread) == 0

    def test_timeout_wrapped(self):
        client = ScriptedModelClient([TimeoutError("read timed out")])
        with pytest.raises(AgentExecutionError, match="read timed out"):
            _agent(client).run("hi")

    def test_failure_after_tool_commits_nothing(self, time_registry):
        client = ScriptedModelClient([tool_call("getTime"), ModelUnavailableError("gone")])
        agent = _agent(client, tools=time_registry)
        thread = agent.new_thread()
        thread.append(Message.user("earlier"))
        with pytest.raises(AgentExecutionError):
            agent.run("time?", thread)
        assert [m.content for m in thread] == ["earlier"]


# ── streaming ─────────────────────────────────────────────────────────────────

class TestRunStreaming:

    def test_stream_matches_run(self, upper_client):
        agent = _agent(upper_client)
        buffered = agent.run("streaming and buffered agree").text
        segments = list(agent.run_streaming("streaming and buffered agree"))
        assert "".join(s.text for s in segments) == buffered
        assert len([s for s in segments if s.text]) > 1

    def test_stream_matches_run_with_tools(self, time_registry):
        script = [ModelResponse(text="Checking. ", tool_calls=[ToolCallRequest(id="c", name="getTime")]),
                  "It is noon."]
        buffered = _agent(ScriptedModelClient(list(script)), tools=time_registry).run("t").text
        streamed = "".join(
            s.text for s in _agent(ScriptedModelClient(list(script)), tools=time_registry).run_streaming("t")
        )
        assert buffered == streamed == "Checking. It is noon."

    def test_final_segment_and_return_value(self, upper_client):
        agent = _agent(upper_client)
        stream = agent.run_streaming("abc")
        segments = []
        while True:
            try:
                segments.append(next(stream))
            except StopIteration as stop:
                result = stop.value
                break
        assert segments[-1].is_final_for_agent
        assert segments[-1].text == ""
        assert not any(s.is_final_for_agent for s in segments[:-1])
        assert all(s.agent_id == agent.id and s.agent_name == "Echo" for s in segments)
        assert result.text == "ABC"

    def test_thread_committed_after_completion(self, upper_client):
        agent = _agent(upper_client)
        thread = agent.new_thread()
        stream = agent.run_streaming("hello", thread)
        next(stream)
        assert len(thread) == 0
        list(stream)
        assert [m.content for m in thread] == ["hello", "HELLO"]

    def test_abandoned_stream_commits_nothing(self, upper_client):
        agent = _agent(upper_client)
        thread = agent.new_thread()
        stream = agent.run_streaming("a long enough input", thread)
        next(stream)
        stream.close()
        assert len(thread) == 0

    def test_validation_is_eager(self, upper_client):
        owner, other = _agent(upper_client), _agent(upper_client)
        with pytest.raises(ThreadOwnershipError):
            other.run_streaming("x", owner.new_thread())

    def test_stream_error_wrapped(self):
        class BrokenStream(ScriptedModelClient):
            def stream(self, messages, tools=()):
                yield from ()
                raise ModelUnavailableError("stream dropped")

        agent = _agent(BrokenStream())
        with pytest.raises(AgentExecutionError) as exc_info:
            list(agent.run_streaming("hi"))
        assert isinstance(exc_info.value.__cause__, ModelUnavailableError)


# ── cancellation ──────────────────────────────────────────────────────────────

class TestCancellation:

    def test_cancelled_before_start(self, upper_client):
        token = CancellationToken()
        token.cancel()
        agent = _agent(upper_client)
        thread = agent.new_thread()
        with pytest.raises(OperationCancelledError):
            agent.run("x", thread, cancel_token=token)
        assert upper_client.calls == []
        assert len(thread) == 0

    def test_cancelled_between_tool_rounds(self):
        token = CancellationToken()
        registry = ToolRegistry()
        registry.register("stop", None, lambda: token.cancel("user pressed stop") or "stopped")
        client = ScriptedModelClient([tool_call("stop"), "never reached"])
        agent = _agent(client, tools=registry)
        thread = agent.new_thread()
        with pytest.raises(OperationCancelledError, match="user pressed stop"):
            agent.run("x", thread, cancel_token=token)
        assert len(client.calls) == 1
        assert len(thread) == 0

    def test_cancelled_mid_stream(self, upper_client):
        token = CancellationToken()
        agent = _agent(upper_client)
        thread = agent.new_thread()
        stream = agent.run_streaming("cancel me please", thread, cancel_token=token)
        next(stream)
        token.cancel()
        with pytest.raises(OperationCancelledError):
            next(stream)
        assert len(thread) == 0
