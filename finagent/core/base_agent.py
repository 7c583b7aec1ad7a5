"""
BaseAgent Abstract Class

Common contract for everything that can be run as an agent: leaf chat agents
and sequential workflows (which are agents made of agents). Both expose
``run`` and ``run_streaming`` with the same signature, so a workflow can be
used, or nested, anywhere a leaf agent can.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Generator, Iterable, Optional

from .cancellation import CancellationToken
from .errors import ConfigurationError, ThreadOwnershipError
from .protocol import AgentResult, Message, StreamSegment
from .thread import ConversationThread
from .tool_registry import ToolDescriptor
from finagent.utils.logging import get_logger

# Generator of attributed segments whose return value is the turn's AgentResult.
SegmentStream = Generator[StreamSegment, None, AgentResult]


class BaseAgent(ABC):
    """
    Abstract base class for all agents.

    Subclasses implement :meth:`run` and :meth:`run_streaming`. The base
    class provides:
    - an immutable identity (``id`` assigned at creation, ``name``, ``description``)
    - per-agent logging under ``agent.<name>``
    - thread ownership checks and the all-or-nothing thread commit
    """

    def __init__(self, name: str, description: str = "") -> None:
        """
        Initialize the base agent.

        Args:
            name: Agent name, used to attribute output
            description: Brief description of what this agent does
        """
        if not name or not name.strip():
            raise ConfigurationError("Agent name must be a non-empty string.")
        self._id = uuid.uuid4().hex
        self._name = name.strip()
        self._description = description
        self.logger = get_logger(f"agent.{self._name}")

    # ── identity ──────────────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    # ── contract ──────────────────────────────────────────────────────────────

    @abstractmethod
    def run(
        self,
        input_text: str,
        thread: Optional[ConversationThread] = None,
        *,
        tools: Optional[Iterable[ToolDescriptor]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AgentResult:
        """
        Run one turn and return its result.

        If *thread* is given, its prior messages are used as context and,
        on success only, the user input and the final reply are appended.
        """

    @abstractmethod
    def run_streaming(
        self,
        input_text: str,
        thread: Optional[ConversationThread] = None,
        *,
        tools: Optional[Iterable[ToolDescriptor]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SegmentStream:
        """
        Run one turn, yielding attributed text segments as they are produced.

        The generator is lazy, finite and not restartable. It ends with a
        segment flagged ``is_final_for_agent`` for this agent and returns the
        same :class:`AgentResult` that :meth:`run` would.
        """

    # ── threads ───────────────────────────────────────────────────────────────

    def new_thread(self) -> ConversationThread:
        """Create an empty conversation thread owned by this agent."""
        return ConversationThread(agent_id=self._id)

    def _check_thread(self, thread: Optional[ConversationThread]) -> None:
        if thread is not None and thread.agent_id not in (None, self._id):
            raise ThreadOwnershipError(
                f"Thread belongs to agent {thread.agent_id}, not to '{self._name}' ({self._id})"
            )

    def _commit(self, thread: Optional[ConversationThread], input_text: str, reply: str) -> None:
        """Append the completed turn to *thread*."""
        if thread is None:
            return
        thread.bind(self._id)
        thread.extend([Message.user(input_text), Message.assistant(reply, author=self._name)])

    @staticmethod
    def _validate_input(input_text: str) -> str:
        if not isinstance(input_text, str) or not input_text.strip():
            raise ValueError("Input must be a non-empty string.")
        return input_text

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name='{self._name}')"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self._name}', description='{self._description}')"
