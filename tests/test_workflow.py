"""Tests for finagent/workflow/sequential.py"""
from __future__ import annotations

import pytest

from conftest import ScriptedModelClient, last_user_text
from finagent.core.agent import ChatAgent
from finagent.core.cancellation import CancellationToken
from finagent.core.errors import (
    AgentExecutionError,
    ConfigurationError,
    EmptyWorkflowError,
    ModelUnavailableError,
    OperationCancelledError,
    ThreadOwnershipError,
    ToolLoopExceededError,
    WorkflowStageFailedError,
    describe_error,
)
from finagent.core.protocol import MessageRole, ModelResponse, ToolCallRequest
from finagent.workflow.sequential import DEFAULT_HANDOFF_TEMPLATE, build_sequential


def _stage(name, transform, log=None):
    """Leaf agent whose model returns transform(latest user text)."""
    def responder(messages, tools):
        text = last_user_text(messages)
        if log is not None:
            log.append((name, text))
        return transform(text)

    client = ScriptedModelClient(responder=responder)
    return ChatAgent.create(client, name=name, instructions=f"You are {name}.")


def _failing_stage(name, error):
    return ChatAgent.create(ScriptedModelClient([error]), name=name, instructions="fail")


# ── build ─────────────────────────────────────────────────────────────────────

class TestBuild:

    def test_empty_sequence_rejected(self):
        with pytest.raises(EmptyWorkflowError):
            build_sequential([])

    def test_empty_workflow_error_is_configuration_error(self):
        assert issubclass(EmptyWorkflowError, ConfigurationError)

    def test_non_agent_stage_rejected(self):
        with pytest.raises(ConfigurationError):
            build_sequential(["not an agent"])

    def test_template_must_include_previous_output(self):
        stage = _stage("A", str.upper)
        with pytest.raises(ConfigurationError):
            build_sequential([stage], handoff_template="{request} only")

    def test_template_unknown_field_rejected(self):
        stage = _stage("A", str.upper)
        with pytest.raises(ConfigurationError):
            build_sequential([stage], handoff_template="{previous_output} {mood}")

    def test_single_stage_allowed(self):
        workflow = build_sequential([_stage("A", str.upper)], name="Solo")
        assert workflow.run("hi").text == "HI"

    def test_stages_exposed_in_order(self):
        a, b = _stage("A", str.upper), _stage("B", str.lower)
        assert build_sequential([a, b]).stages == (a, b)


# ── run ───────────────────────────────────────────────────────────────────────

class TestRun:

    def test_two_stage_scenario(self):
        stage1 = _stage("Collector", lambda text: "DATA:" + text)
        stage2 = _stage("Analyst", lambda text: "ANALYSIS OF " + text)
        workflow = build_sequential([stage1, stage2], name="Pipeline")

        result = workflow.run("X")

        assert result.text.startswith("ANALYSIS OF ")
        composed = result.text[len("ANALYSIS OF "):]
        assert "DATA:X" in composed
        assert composed == workflow.compose_input("X", "Collector", "DATA:X")
        assert result.agent_id == workflow.id
        assert result.agent_name == "Pipeline"

    def test_each_stage_runs_once_in_order(self):
        log = []
        stages = [_stage(name, lambda t, n=name: f"{n} saw {len(t)} chars", log) for name in ("A", "B", "C")]
        build_sequential(stages).run("request")
        assert [name for name, _ in log] == ["A", "B", "C"]

    def test_full_output_handed_over_untruncated(self):
        long_output = "x" * 50_000
        log = []
        stage1 = _stage("Big", lambda t: long_output)
        stage2 = _stage("Reader", lambda t: "ok", log)
        build_sequential([stage1, stage2]).run("go")
        assert long_output in log[0][1]

    def test_first_stage_gets_raw_request(self):
        log = []
        build_sequential([_stage("A", str.upper, log), _stage("B", str.lower)]).run("Analyze MSFT")
        assert log[0] == ("A", "Analyze MSFT")

    def test_later_stages_see_request(self):
        log = []
        build_sequential([_stage("A", lambda t: "research"), _stage("B", str.lower, log)]).run("Analyze MSFT")
        assert "Analyze MSFT" in log[0][1]
        assert "Output from A:" in log[0][1]

    def test_custom_handoff_template(self):
        log = []
        workflow = build_sequential(
            [_stage("A", lambda t: "facts"), _stage("B", str.upper, log)],
            handoff_template="Based on this research: {previous_output}, answer: {request}",
        )
        workflow.run("buy?")
        assert log[0][1] == "Based on this research: facts, answer: buy?"

    def test_result_messages_attribute_each_stage(self):
        workflow = build_sequential([_stage("A", lambda t: "a-out"), _stage("B", lambda t: "b-out")])
        messages = workflow.run("req").messages
        assert messages[0].role == MessageRole.USER
        assert [(m.author, m.content) for m in messages[1:]] == [("A", "a-out"), ("B", "b-out")]

    def test_workflow_thread_records_request_and_result(self):
        workflow = build_sequential([_stage("A", lambda t: "a"), _stage("B", lambda t: "final")])
        thread = workflow.new_thread()
        workflow.run("req", thread)
        assert [(m.role, m.content) for m in thread] == [
            (MessageRole.USER, "req"), (MessageRole.ASSISTANT, "final"),
        ]

    def test_default_template_shape(self):
        assert "{previous_output}" in DEFAULT_HANDOFF_TEMPLATE


# ── failures ──────────────────────────────────────────────────────────────────

class TestStageFailure:

    def test_failure_aborts_and_identifies_stage(self):
        log = []
        stages = [
            _stage("A", lambda t: "ok", log),
            _failing_stage("B", ModelUnavailableError("endpoint down")),
            _stage("C", lambda t: "never", log),
        ]
        with pytest.raises(WorkflowStageFailedError) as exc_info:
            build_sequential(stages).run("go")
        error = exc_info.value
        assert error.stage_index == 1
        assert error.stage_name == "B"
        assert isinstance(error.cause, AgentExecutionError)
        assert isinstance(error.cause.__cause__, ModelUnavailableError)
        assert [name for name, _ in log] == ["A"]

    def test_tool_loop_exceeded_fails_stage(self):
        looping = ChatAgent.create(
            ScriptedModelClient(responder=lambda m, t: ModelResponse(
                tool_calls=[ToolCallRequest(id="c", name="missing")]
            )),
            name="Looper",
            instructions="loop",
            max_tool_iterations=2,
        )
        with pytest.raises(WorkflowStageFailedError) as exc_info:
            build_sequential([looping]).run("go")
        assert isinstance(exc_info.value.cause, ToolLoopExceededError)

    def test_error_description_includes_cause_chain(self):
        stages = [_failing_stage("A", ModelUnavailableError("endpoint down"))]
        with pytest.raises(WorkflowStageFailedError) as exc_info:
            build_sequential(stages).run("go")
        text = describe_error(exc_info.value)
        assert "stage 0" in text
        assert "Inner exception:" in text
        assert "endpoint down" in text

    def test_stage_threads_untouched_on_failure(self):
        a = _stage("A", lambda t: "ok")
        b = _failing_stage("B", ModelUnavailableError("down"))
        thread_a, thread_b = a.new_thread(), b.new_thread()
        with pytest.raises(WorkflowStageFailedError):
            build_sequential([a, b]).run("go", stage_threads=[thread_a, thread_b])
        assert len(thread_a) == 0
        assert len(thread_b) == 0


# ── stage threads ─────────────────────────────────────────────────────────────

class TestStageThreads:

    def test_committed_on_success(self):
        a, b = _stage("A", lambda t: "a-out"), _stage("B", lambda t: "b-out")
        thread_a = a.new_thread()
        build_sequential([a, b]).run("go", stage_threads=[thread_a, None])
        assert [m.content for m in thread_a] == ["go", "a-out"]

    def test_length_must_match_stages(self):
        a, b = _stage("A", str.upper), _stage("B", str.upper)
        with pytest.raises(ConfigurationError):
            build_sequential([a, b]).run("go", stage_threads=[a.new_thread()])

    def test_foreign_stage_thread_rejected(self):
        a, b = _stage("A", str.upper), _stage("B", str.upper)
        with pytest.raises(ThreadOwnershipError):
            build_sequential([a, b]).run("go", stage_threads=[b.new_thread(), None])


# ── streaming ─────────────────────────────────────────────────────────────────

class TestRunStreaming:

    def _workflow(self):
        return build_sequential(
            [_stage("A", lambda t: "research notes " * 3), _stage("B", lambda t: "ADVICE: " + t[:12])],
            name="Flow",
        )

    def test_stream_text_matches_buffered_per_stage(self):
        buffered = self._workflow().run("req")
        workflow = self._workflow()
        segments = list(workflow.run_streaming("req"))
        by_stage = {}
        for s in segments:
            by_stage.setdefault(s.agent_name, []).append(s.text)
        assert "".join(by_stage["A"]) == buffered.messages[1].content
        assert "".join(by_stage["B"]) == buffered.text

    def test_stages_do_not_interleave(self):
        workflow = self._workflow()
        names = [s.agent_name for s in workflow.run_streaming("req")]
        changes = [n for i, n in enumerate(names) if i == 0 or names[i - 1] != n]
        assert changes == ["A", "B", "Flow"]

    def test_each_stage_ends_with_final_segment(self):
        workflow = self._workflow()
        finals = [s.agent_name for s in workflow.run_streaming("req") if s.is_final_for_agent]
        assert finals == ["A", "B", "Flow"]

    def test_stage_failure_while_streaming(self):
        workflow = build_sequential([_stage("A", str.upper), _failing_stage("B", ModelUnavailableError("x"))])
        with pytest.raises(WorkflowStageFailedError) as exc_info:
            list(workflow.run_streaming("go"))
        assert exc_info.value.stage_index == 1


# ── cancellation ──────────────────────────────────────────────────────────────

class TestCancellation:

    def test_cancel_mid_stage_commits_nothing(self):
        token = CancellationToken()
        a, b = _stage("A", lambda t: "first stage output"), _stage("B", lambda t: "second")
        thread_a, thread_b = a.new_thread(), b.new_thread()
        workflow = build_sequential([a, b])
        workflow_thread = workflow.new_thread()

        stream = workflow.run_streaming(
            "go", workflow_thread, cancel_token=token, stage_threads=[thread_a, thread_b]
        )
        for segment in stream:
            if segment.agent_name == "B":
                token.cancel()
                break
        with pytest.raises(OperationCancelledError):
            next(stream)

        assert len(thread_a) == 0
        assert len(thread_b) == 0
        assert len(workflow_thread) == 0

    def test_cancel_is_not_wrapped(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            build_sequential([_stage("A", str.upper)]).run("go", cancel_token=token)

    def test_cancel_before_later_stage(self):
        token = CancellationToken()
        log = []

        def cancelling(text):
            token.cancel()
            return "done"

        workflow = build_sequential([_stage("A", cancelling), _stage("B", str.upper, log)])
        with pytest.raises(OperationCancelledError):
            workflow.run("go", cancel_token=token)
        assert log == []


class TestNesting:

    def test_workflow_as_stage(self):
        inner = build_sequential([_stage("A", lambda t: "DATA:" + t)], name="Inner")
        outer = build_sequential([inner, _stage("B", lambda t: "ANALYSIS OF " + t)], name="Outer")
        result = outer.run("X")
        assert result.text.startswith("ANALYSIS OF X")
        assert "DATA:X" in result.text
