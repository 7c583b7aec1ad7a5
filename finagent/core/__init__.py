"""Core components for the agent orchestration engine"""

from .agent import ChatAgent
from .base_agent import BaseAgent, SegmentStream
from .cancellation import CancellationToken
from .errors import (
    AgentError,
    AgentExecutionError,
    ConfigurationError,
    DuplicateToolNameError,
    EmptyWorkflowError,
    ModelUnavailableError,
    OperationCancelledError,
    SchemaMismatchError,
    ThreadOwnershipError,
    ToolError,
    ToolInvocationError,
    ToolLoopExceededError,
    UnknownToolError,
    WorkflowStageFailedError,
    describe_error,
)
from .model_client import ModelClient
from .protocol import (
    DEFAULT_MAX_TOOL_ITERATIONS,
    AgentConfig,
    AgentResult,
    Message,
    MessageRole,
    ModelDelta,
    ModelResponse,
    StreamSegment,
    ToolCallRequest,
)
from .thread import ConversationThread
from .tool_registry import ToolDescriptor, ToolRegistry, build_args_schema

__all__ = [
    "BaseAgent",
    "ChatAgent",
    "SegmentStream",
    "CancellationToken",
    "ConversationThread",
    "ModelClient",
    "ToolDescriptor",
    "ToolRegistry",
    "build_args_schema",
    # Protocol
    "DEFAULT_MAX_TOOL_ITERATIONS",
    "AgentConfig",
    "AgentResult",
    "Message",
    "MessageRole",
    "ModelDelta",
    "ModelResponse",
    "StreamSegment",
    "ToolCallRequest",
    # Errors
    "AgentError",
    "AgentExecutionError",
    "ConfigurationError",
    "DuplicateToolNameError",
    "EmptyWorkflowError",
    "ModelUnavailableError",
    "OperationCancelledError",
    "SchemaMismatchError",
    "ThreadOwnershipError",
    "ToolError",
    "ToolInvocationError",
    "ToolLoopExceededError",
    "UnknownToolError",
    "WorkflowStageFailedError",
    "describe_error",
]
