"""
Main Entry Point for the finance agents

Wires the concrete agents to a model client and exposes the turn-level
operations shared by the console and the HTTP server: a chat turn against
caller-supplied history, and the portfolio workflow (buffered or streamed).
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, Field

from .agents import (
    create_financial_analysis_agent,
    create_portfolio_workflow,
    create_stock_sentiment_agent,
    portfolio_request,
)
from .core.cancellation import CancellationToken
from .core.errors import AgentError, describe_error
from .core.model_client import ModelClient
from .core.protocol import AgentResult, StreamSegment
from .core.thread import ConversationThread
from .models import create_model_client
from .utils.config import Settings, load_settings
from .utils.logging import get_logger
from .workflow.relay import StreamRelay

logger = get_logger(__name__)


class ChatTurn(BaseModel):
    """Outcome of one chat turn at the surface boundary."""
    full_message: str
    history: List[Dict[str, str]] = Field(default_factory=list)
    failed: bool = False


class StageOutput(BaseModel):
    agent: str
    text: str


class PortfolioReport(BaseModel):
    """Outcome of one portfolio workflow run."""
    full_message: str
    stages: List[StageOutput] = Field(default_factory=list)
    failed: bool = False


def _report(result: AgentResult) -> PortfolioReport:
    # messages: the request, then one assistant message per stage
    stages = [StageOutput(agent=m.author or "", text=m.content) for m in result.messages[1:]]
    return PortfolioReport(full_message=result.text, stages=stages)


class FinanceAssistant:
    """
    Main interface for the finance agents.

    Agents are built once and reused across requests; conversation state is
    carried per request in a thread built from the caller's history.
    """

    def __init__(self, model_client: ModelClient, settings: Optional[Settings] = None) -> None:
        """
        Initialize the assistant.

        Args:
            model_client: Model client shared by every agent
            settings: Resolved settings (defaults when omitted)
        """
        self.settings = settings or Settings()
        cap = self.settings.max_tool_iterations
        self.analyst = create_financial_analysis_agent(model_client, max_tool_iterations=cap)
        self.sentiment = create_stock_sentiment_agent(model_client, max_tool_iterations=cap)
        self.portfolio = create_portfolio_workflow(model_client, max_tool_iterations=cap)
        logger.info("Finance assistant initialized with %d agents", len(self.list_agents()["agents"]))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FinanceAssistant":
        """Load settings (if not given), build the model client and the agents."""
        settings = settings or load_settings()
        return cls(create_model_client(settings), settings)

    def list_agents(self) -> Dict[str, object]:
        """
        Get information about all available agents.

        Returns:
            Dictionary with agent information
        """
        agents = [self.analyst, self.sentiment, self.portfolio, *self.portfolio.stages]
        return {
            "total_agents": len(agents),
            "agents": [{"name": a.name, "description": a.description} for a in agents],
        }

    # ── chat ──────────────────────────────────────────────────────────────────

    def chat(self, message: str, history: Optional[List[Dict[str, str]]] = None) -> ChatTurn:
        """
        Run one analyst turn on top of *history*.

        A failed turn does not raise: the descriptive error becomes the
        assistant reply so the conversation can continue. History records
        with a role other than user or assistant fail the turn the same way.
        """
        history = list(history or [])
        if not message or not message.strip():
            return ChatTurn(full_message="", history=history)

        logger.info("Chat turn: %s", message[:80])
        try:
            thread = ConversationThread.from_history(history, agent_id=self.analyst.id)
            result = self.analyst.run(message, thread)
        except (AgentError, ValueError) as exc:
            logger.error("Chat turn failed: %s", exc, exc_info=True)
            return self._failed_turn(message, history, exc)
        return ChatTurn(full_message=result.text, history=thread.to_history())

    def chat_stream(
        self,
        message: str,
        history: Optional[List[Dict[str, str]]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[StreamSegment]:
        """
        Stream one analyst turn. The generator returns the :class:`ChatTurn`.

        Errors are not converted here: the consumer decides how to surface a
        stream that failed after some text was already sent. Raises
        ``ValueError`` up front when *history* holds an unsupported role.
        """
        thread = ConversationThread.from_history(history or [], agent_id=self.analyst.id)
        relay = StreamRelay(self.analyst, cancel_token)
        segments = relay.relay(message, thread)
        return self._relay_chat(relay, segments, thread)

    @staticmethod
    def _relay_chat(relay: StreamRelay, segments, thread: ConversationThread):
        yield from segments
        return ChatTurn(full_message=relay.result.text, history=thread.to_history())

    @staticmethod
    def _failed_turn(message: str, history: List[Dict[str, str]], exc: Exception) -> ChatTurn:
        reply = describe_error(exc)
        return ChatTurn(
            full_message=reply,
            history=history + [
                {"role": "user", "content": message},
                {"role": "assistant", "content": reply},
            ],
            failed=True,
        )

    # ── portfolio ─────────────────────────────────────────────────────────────

    def analyze_portfolio(self, symbols) -> PortfolioReport:
        """Run the research -> risk -> advice workflow over *symbols*."""
        request = portfolio_request(symbols)
        logger.info("Portfolio analysis: %s", request[:80])
        try:
            result = self.portfolio.run(request)
        except AgentError as exc:
            logger.error("Portfolio analysis failed: %s", exc, exc_info=True)
            return PortfolioReport(
                full_message=describe_error(exc, "Error analyzing portfolio"), failed=True
            )
        return _report(result)

    def analyze_portfolio_stream(
        self,
        symbols,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[StreamSegment]:
        """
        Stream the portfolio workflow. The generator returns the
        :class:`PortfolioReport`; stage failures propagate to the consumer.
        """
        request = portfolio_request(symbols)
        logger.info("Streaming portfolio analysis: %s", request[:80])
        relay = StreamRelay(self.portfolio, cancel_token)
        segments = relay.relay(request)
        return self._relay_portfolio(relay, segments)

    @staticmethod
    def _relay_portfolio(relay: StreamRelay, segments):
        yield from segments
        return _report(relay.result)
