"""
Portfolio Analysis Workflow — research, then risk, then advice.

Three agents run in sequence, each receiving the request together with the
full output of the stage before it:

  PortfolioResearchAgent   prices + web search per symbol    (tools)
  RiskAssessmentAgent      concentration, balance, risk 1-10 (no tools)
  InvestmentAdvisorAgent   health score, buy/hold/sell       (no tools)

Usage
-----
    workflow = create_portfolio_workflow(model_client)
    result = workflow.run(portfolio_request("MSFT, AAPL, NVDA"))
"""
from __future__ import annotations

from typing import Iterable, Optional, Union

from finagent.core.agent import ChatAgent, ToolLike
from finagent.core.model_client import ModelClient
from finagent.core.protocol import DEFAULT_MAX_TOOL_ITERATIONS
from finagent.tools import get_current_utc_time, get_stock_price, search_web
from finagent.workflow.sequential import SequentialWorkflowAgent, build_sequential
from .prompts import ADVISOR_PROMPT, RESEARCH_PROMPT, RISK_PROMPT

WORKFLOW_NAME = "PortfolioAnalysisWorkflow"
REQUEST_PREFIX = "Analyze this portfolio of stocks: "


def portfolio_request(symbols: Union[str, Iterable[str]]) -> str:
    """
    Normalise user-entered symbols into the workflow request.

    >>> portfolio_request("msft, aapl ,")
    'Analyze this portfolio of stocks: MSFT, AAPL'
    """
    if isinstance(symbols, str):
        symbols = symbols.split(",")
    cleaned = [s.strip().upper() for s in symbols if s and s.strip()]
    if not cleaned:
        raise ValueError("At least one stock symbol is required.")
    return REQUEST_PREFIX + ", ".join(cleaned)


def create_research_agent(
    model_client: ModelClient,
    tools: Optional[Iterable[ToolLike]] = None,
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
) -> ChatAgent:
    if tools is None:
        tools = [get_stock_price, search_web, get_current_utc_time]
    return ChatAgent.create(
        model_client,
        name="PortfolioResearchAgent",
        description="Gathers market data and news for portfolio stocks",
        instructions=RESEARCH_PROMPT,
        tools=tools,
        max_tool_iterations=max_tool_iterations,
    )


def create_risk_agent(model_client: ModelClient) -> ChatAgent:
    return ChatAgent.create(
        model_client,
        name="RiskAssessmentAgent",
        description="Analyzes portfolio risk and diversification",
        instructions=RISK_PROMPT,
    )


def create_advisor_agent(model_client: ModelClient) -> ChatAgent:
    return ChatAgent.create(
        model_client,
        name="InvestmentAdvisorAgent",
        description="Provides investment recommendations based on research and risk analysis",
        instructions=ADVISOR_PROMPT,
    )


def create_portfolio_workflow(
    model_client: ModelClient,
    research_tools: Optional[Iterable[ToolLike]] = None,
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
    handoff_template: Optional[str] = None,
) -> SequentialWorkflowAgent:
    """Build the research -> risk -> advice workflow on one model client."""
    return build_sequential(
        [
            create_research_agent(model_client, research_tools, max_tool_iterations),
            create_risk_agent(model_client),
            create_advisor_agent(model_client),
        ],
        name=WORKFLOW_NAME,
        description="Research, risk assessment and recommendations for a stock portfolio",
        handoff_template=handoff_template,
    )
