"""
Error taxonomy for the agent orchestration core.

Everything derives from :class:`AgentError`. Tool-level errors
(:class:`ToolError` subclasses raised while the model is driving a tool loop)
are turned into tool-result messages and handed back to the model; every other
error aborts the current turn, commits nothing to any thread, and reaches the
caller with its cause chain intact.
"""

from __future__ import annotations

from typing import Optional


class AgentError(Exception):
    """Base class for every error raised by finagent."""


# ── Configuration ─────────────────────────────────────────────────────────────

class ConfigurationError(AgentError):
    """Missing or invalid agent / workflow / settings setup. Fatal at construction."""


class ThreadOwnershipError(ConfigurationError):
    """A conversation thread was handed to an agent that does not own it."""


class EmptyWorkflowError(ConfigurationError):
    """A sequential workflow was built with no stages."""


# ── Tools ─────────────────────────────────────────────────────────────────────

class ToolError(AgentError):
    """Base class for tool registration and invocation errors."""

    def __init__(self, message: str, tool_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class DuplicateToolNameError(ToolError):
    """Two tools with the same name were registered in one tool set."""


class UnknownToolError(ToolError):
    """The model asked for a tool that is not bound to the agent."""


class SchemaMismatchError(ToolError):
    """Tool arguments do not match the declared parameter schema."""


class ToolInvocationError(ToolError):
    """The wrapped tool function raised."""


# ── Model / agent execution ───────────────────────────────────────────────────

class ModelUnavailableError(AgentError):
    """The model endpoint could not be reached or returned an API error."""


class AgentExecutionError(AgentError):
    """A single agent turn failed. ``__cause__`` carries the underlying error."""

    def __init__(self, message: str, agent_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.agent_name = agent_name


class ToolLoopExceededError(AgentExecutionError):
    """The model kept requesting tools past the configured iteration cap."""

    def __init__(self, agent_name: str, iterations: int) -> None:
        super().__init__(
            f"Agent '{agent_name}' exceeded the tool-call limit of {iterations} iterations",
            agent_name=agent_name,
        )
        self.iterations = iterations


class WorkflowStageFailedError(AgentError):
    """A workflow stage failed; the whole workflow run is aborted."""

    def __init__(self, stage_index: int, stage_name: str, cause: BaseException) -> None:
        super().__init__(f"Workflow stage {stage_index} ('{stage_name}') failed: {cause}")
        self.stage_index = stage_index
        self.stage_name = stage_name
        self.cause = cause


class OperationCancelledError(AgentError):
    """The caller cancelled an in-flight run."""


# ── Presentation ──────────────────────────────────────────────────────────────

def describe_error(exc: BaseException, prefix: str = "Error processing request") -> str:
    """
    Render *exc* and its nested causes as a single user-facing message.

    The surfaces append this text as the assistant reply of a failed turn so
    the conversation can carry on.

    Example
    -------
    >>> describe_error(AgentExecutionError("model call failed"))
    'Error processing request: model call failed'
    """
    lines = [f"{prefix}: {exc}"]
    seen = {id(exc)}
    cause = exc.__cause__ or getattr(exc, "cause", None)
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"Inner exception: {cause}")
        cause = cause.__cause__
    return "\n".join(lines)
