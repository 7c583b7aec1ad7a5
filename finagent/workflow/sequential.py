"""
Sequential workflow — an agent made of agents.

Runs an ordered list of stages, each exactly once. Stage 0 gets the caller's
request; every later stage gets the request restated together with the full,
untruncated output of the stage before it. The last stage's output is the
workflow's result.

Because :class:`SequentialWorkflowAgent` is itself a :class:`BaseAgent`, a
workflow can be a stage of another workflow, or be handed to any code that
runs agents (the CLI, the HTTP server, :class:`StreamRelay`).

Usage
-----
    workflow = build_sequential(
        [research_agent, risk_agent, advisor_agent],
        name="PortfolioWorkflow",
    )
    print(workflow.run("Analyze this portfolio of stocks: MSFT, AAPL").text)
"""

from __future__ import annotations

from string import Formatter
from typing import Iterable, List, Optional, Sequence

from finagent.core.base_agent import BaseAgent, SegmentStream
from finagent.core.cancellation import CancellationToken
from finagent.core.errors import (
    AgentError,
    ConfigurationError,
    EmptyWorkflowError,
    OperationCancelledError,
    ThreadOwnershipError,
    WorkflowStageFailedError,
)
from finagent.core.protocol import AgentResult, Message, StreamSegment
from finagent.core.thread import ConversationThread
from finagent.core.tool_registry import ToolDescriptor
from finagent.utils.tracing import traceable

DEFAULT_HANDOFF_TEMPLATE = (
    "{request}\n\n"
    "Output from {previous_agent}:\n"
    "{previous_output}"
)

_TEMPLATE_FIELDS = {"request", "previous_agent", "previous_output"}


def _validate_template(template: str) -> str:
    if not isinstance(template, str) or not template.strip():
        raise ConfigurationError("Handoff template must be a non-empty string.")
    try:
        fields = {name for _, name, _, _ in Formatter().parse(template) if name is not None}
    except ValueError as exc:
        raise ConfigurationError(f"Malformed handoff template: {exc}") from exc
    unknown = fields - _TEMPLATE_FIELDS
    if unknown:
        raise ConfigurationError(f"Unknown handoff template fields: {sorted(unknown)}")
    if "previous_output" not in fields:
        raise ConfigurationError("Handoff template must include {previous_output}.")
    return template


class SequentialWorkflowAgent(BaseAgent):
    """
    Ordered composition of agents exposed under the agent contract.

    Stage N+1 never starts before stage N has produced its complete output.
    """

    def __init__(
        self,
        stages: Sequence[BaseAgent],
        name: str,
        description: str = "",
        handoff_template: Optional[str] = None,
    ) -> None:
        stages = tuple(stages or ())
        if not stages:
            raise EmptyWorkflowError(f"Workflow '{name}' needs at least one stage.")
        for stage in stages:
            if not isinstance(stage, BaseAgent):
                raise ConfigurationError(
                    f"Workflow '{name}' stage must be an agent, got {type(stage).__name__}"
                )
        super().__init__(name, description)
        self._stages = stages
        self._handoff_template = _validate_template(handoff_template or DEFAULT_HANDOFF_TEMPLATE)

    @property
    def stages(self) -> tuple:
        return self._stages

    @property
    def handoff_template(self) -> str:
        return self._handoff_template

    def compose_input(self, request: str, previous_agent: str, previous_output: str) -> str:
        """Build the next stage's input from the request and the previous output."""
        return self._handoff_template.format(
            request=request,
            previous_agent=previous_agent,
            previous_output=previous_output,
        )

    # ── run ───────────────────────────────────────────────────────────────────

    @traceable(name="sequential_workflow.run", run_type="chain", tags=["workflow"])
    def run(
        self,
        input_text: str,
        thread: Optional[ConversationThread] = None,
        *,
        tools: Optional[Iterable[ToolDescriptor]] = None,
        cancel_token: Optional[CancellationToken] = None,
        stage_threads: Optional[Sequence[Optional[ConversationThread]]] = None,
    ) -> AgentResult:
        input_text = self._validate_input(input_text)
        self._check_thread(thread)
        staged = self._stage_forks(stage_threads)
        token = cancel_token or CancellationToken()
        tools = tuple(tools or ())

        self.logger.info("Starting workflow with %d stages", len(self._stages))
        stage_input = input_text
        outputs: List[AgentResult] = []
        for index, stage in enumerate(self._stages):
            token.raise_if_cancelled()
            self.logger.info("Stage %d: %s", index, stage.name)
            try:
                result = stage.run(
                    stage_input, staged[index], tools=tools, cancel_token=token
                )
            except OperationCancelledError:
                raise
            except AgentError as exc:
                self.logger.error("Stage %d (%s) failed: %s", index, stage.name, exc)
                raise WorkflowStageFailedError(index, stage.name, exc) from exc
            outputs.append(result)
            stage_input = self.compose_input(input_text, stage.name, result.text)

        return self._finish(input_text, thread, stage_threads, staged, outputs)

    def run_streaming(
        self,
        input_text: str,
        thread: Optional[ConversationThread] = None,
        *,
        tools: Optional[Iterable[ToolDescriptor]] = None,
        cancel_token: Optional[CancellationToken] = None,
        stage_threads: Optional[Sequence[Optional[ConversationThread]]] = None,
    ) -> SegmentStream:
        input_text = self._validate_input(input_text)
        self._check_thread(thread)
        staged = self._stage_forks(stage_threads)
        token = cancel_token or CancellationToken()
        return self._stream_stages(
            input_text, thread, stage_threads, staged, tuple(tools or ()), token
        )

    def _stream_stages(
        self,
        input_text: str,
        thread: Optional[ConversationThread],
        stage_threads: Optional[Sequence[Optional[ConversationThread]]],
        staged: List[Optional[ConversationThread]],
        tools: tuple,
        token: CancellationToken,
    ) -> SegmentStream:
        self.logger.info("Streaming workflow with %d stages", len(self._stages))
        stage_input = input_text
        outputs: List[AgentResult] = []
        for index, stage in enumerate(self._stages):
            token.raise_if_cancelled()
            self.logger.info("Stage %d: %s", index, stage.name)
            try:
                result = yield from stage.run_streaming(
                    stage_input, staged[index], tools=tools, cancel_token=token
                )
            except OperationCancelledError:
                raise
            except AgentError as exc:
                self.logger.error("Stage %d (%s) failed: %s", index, stage.name, exc)
                raise WorkflowStageFailedError(index, stage.name, exc) from exc
            outputs.append(result)
            stage_input = self.compose_input(input_text, stage.name, result.text)

        final = self._finish(input_text, thread, stage_threads, staged, outputs)
        yield StreamSegment(agent_id=self.id, agent_name=self.name, is_final_for_agent=True)
        return final

    # ── threads ───────────────────────────────────────────────────────────────

    def _stage_forks(
        self, stage_threads: Optional[Sequence[Optional[ConversationThread]]]
    ) -> List[Optional[ConversationThread]]:
        if stage_threads is None:
            return [None] * len(self._stages)
        if len(stage_threads) != len(self._stages):
            raise ConfigurationError(
                f"Workflow '{self.name}' has {len(self._stages)} stages "
                f"but got {len(stage_threads)} stage threads"
            )
        forks: List[Optional[ConversationThread]] = []
        for stage, stage_thread in zip(self._stages, stage_threads):
            if stage_thread is not None and stage_thread.agent_id not in (None, stage.id):
                raise ThreadOwnershipError(
                    f"Stage thread is owned by {stage_thread.agent_id}, not by '{stage.name}'"
                )
            forks.append(stage_thread.fork() if stage_thread is not None else None)
        return forks

    def _finish(
        self,
        input_text: str,
        thread: Optional[ConversationThread],
        stage_threads: Optional[Sequence[Optional[ConversationThread]]],
        staged: List[Optional[ConversationThread]],
        outputs: List[AgentResult],
    ) -> AgentResult:
        # every stage succeeded: publish the staged stage histories
        for original, fork in zip(stage_threads or (), staged):
            if original is None or fork is None:
                continue
            new_messages = fork.history()[len(original):]
            if fork.agent_id is not None:
                original.bind(fork.agent_id)
            original.extend(new_messages)

        text = outputs[-1].text
        self._commit(thread, input_text, text)
        self.logger.info("Workflow complete (%d chars)", len(text))
        messages = [Message.user(input_text)]
        messages.extend(Message.assistant(r.text, author=r.agent_name) for r in outputs)
        return AgentResult(agent_id=self.id, agent_name=self.name, text=text, messages=messages)

    def __repr__(self) -> str:
        names = ", ".join(stage.name for stage in self._stages)
        return f"{self.__class__.__name__}(name='{self.name}', stages=[{names}])"


def build_sequential(
    agents: Sequence[BaseAgent],
    *,
    name: str = "SequentialWorkflow",
    description: str = "",
    handoff_template: Optional[str] = None,
) -> SequentialWorkflowAgent:
    """
    Compose *agents* into a workflow that runs them in order.

    Raises
    ------
    EmptyWorkflowError
        If *agents* is empty.
    ConfigurationError
        If a stage is not an agent or the handoff template is invalid.
    """
    return SequentialWorkflowAgent(
        agents, name=name, description=description, handoff_template=handoff_template
    )
