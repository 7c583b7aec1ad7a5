"""
Financial Analysis Agent — free-form financial Q&A with live data tools.

Backs the console ``chat`` command and the HTTP ``/chat`` endpoints. It has
the full built-in tool set: current time, latest price, price for a date and
web search.

Usage
-----
    agent = create_financial_analysis_agent(model_client)
    thread = agent.new_thread()
    print(agent.run("What do you think about Microsoft?", thread).text)
"""
from __future__ import annotations

from typing import Iterable, Optional

from finagent.core.agent import ChatAgent, ToolLike
from finagent.core.model_client import ModelClient
from finagent.core.protocol import DEFAULT_MAX_TOOL_ITERATIONS
from finagent.tools import STOCK_TOOLS, get_current_utc_time, search_web
from .prompts import SYSTEM_PROMPT

AGENT_NAME = "FinancialAnalysisAgent"


def create_financial_analysis_agent(
    model_client: ModelClient,
    tools: Optional[Iterable[ToolLike]] = None,
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
) -> ChatAgent:
    """Build the agent; *tools* replaces the default tool set when given."""
    if tools is None:
        tools = [get_current_utc_time, *STOCK_TOOLS, search_web]
    return ChatAgent.create(
        model_client,
        name=AGENT_NAME,
        description="Answers financial questions using stock prices and web search",
        instructions=SYSTEM_PROMPT,
        tools=tools,
        max_tool_iterations=max_tool_iterations,
    )
