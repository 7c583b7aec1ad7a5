"""
StreamRelay — forwards a run's attributed segments to a consumer.

Wraps any agent (leaf or workflow) and re-emits its streamed segments in
emission order, each tagged with the producing agent and numbered with an
increasing ``sequence``. Consumers detect stage transitions by watching
``agent_id`` change.

Usage
-----
    relay = StreamRelay(workflow)
    for segment in relay.relay("Analyze this portfolio of stocks: MSFT"):
        if relay.agent_changed:
            print(f"\\n[{segment.agent_name}]")
        print(segment.text, end="", flush=True)
    print(relay.result.text)

Closing the generator early (``break`` out of the loop, or ``close()``) or
calling :meth:`cancel` cancels the run: the executing stage stops at its next
checkpoint and no later stage starts.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from finagent.core.base_agent import BaseAgent
from finagent.core.cancellation import CancellationToken
from finagent.core.protocol import AgentResult, StreamSegment
from finagent.core.thread import ConversationThread
from finagent.utils.logging import get_logger

logger = get_logger(__name__)


class StreamRelay:
    """Single-use relay for one streaming run of *agent*."""

    def __init__(self, agent: BaseAgent, cancel_token: Optional[CancellationToken] = None) -> None:
        self.agent = agent
        self.cancel_token = cancel_token or CancellationToken()
        self.current_agent: Optional[str] = None
        self.agent_changed = False
        self.completed = False
        self.result: Optional[AgentResult] = None
        self._sequence = 0
        self._transcripts: Dict[str, List[str]] = {}
        self._started = False

    def relay(self, input_text: str, thread: Optional[ConversationThread] = None, **kwargs) -> Iterator[StreamSegment]:
        """
        Run *agent* in streaming mode and yield its segments.

        Extra keyword arguments (``tools``, ``stage_threads``) are passed to
        the agent's ``run_streaming``.
        """
        if self._started:
            raise RuntimeError("A StreamRelay can only be used for one run.")
        self._started = True
        upstream = self.agent.run_streaming(
            input_text, thread, cancel_token=self.cancel_token, **kwargs
        )
        return self._forward(upstream)

    def _forward(self, upstream) -> Iterator[StreamSegment]:
        try:
            while True:
                try:
                    segment = next(upstream)
                except StopIteration as stop:
                    self.result = stop.value
                    self.completed = True
                    logger.info("Relay complete after %d segments", self._sequence)
                    return
                if not segment.text and not segment.is_final_for_agent:
                    continue
                self.agent_changed = segment.agent_id != self.current_agent
                self.current_agent = segment.agent_id
                self._transcripts.setdefault(segment.agent_name, []).append(segment.text)
                self._sequence += 1
                yield segment.model_copy(update={"sequence": self._sequence})
        finally:
            if not self.completed:
                self.cancel_token.cancel("Stream closed by consumer")
            upstream.close()

    def cancel(self, reason: str = "Stream cancelled by consumer") -> None:
        self.cancel_token.cancel(reason)

    def transcripts(self) -> Dict[str, str]:
        """Text relayed so far, keyed by agent name, in first-seen order."""
        return {name: "".join(parts) for name, parts in self._transcripts.items()}
