"""
Stock Sentiment Agent — rates a stock from 1 (sell) to 10 (buy).

Uses the time and price tools only; the rating is based on price action and
the model's general market knowledge.
"""
from __future__ import annotations

from typing import Iterable, Optional

from finagent.core.agent import ChatAgent, ToolLike
from finagent.core.model_client import ModelClient
from finagent.core.protocol import DEFAULT_MAX_TOOL_ITERATIONS
from finagent.tools import STOCK_TOOLS, get_current_utc_time
from .prompts import SYSTEM_PROMPT

AGENT_NAME = "StockSentimentAgent"


def create_stock_sentiment_agent(
    model_client: ModelClient,
    tools: Optional[Iterable[ToolLike]] = None,
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
) -> ChatAgent:
    if tools is None:
        tools = [get_current_utc_time, *STOCK_TOOLS]
    return ChatAgent.create(
        model_client,
        name=AGENT_NAME,
        description="Analyzes stock sentiment using market data",
        instructions=SYSTEM_PROMPT,
        tools=tools,
        max_tool_iterations=max_tool_iterations,
    )
