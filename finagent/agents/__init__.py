"""Agents package — the concrete agents built on the orchestration core.

  create_financial_analysis_agent  financial_analysis_agent  Free-form Q&A (time, price, web search)
  create_stock_sentiment_agent     stock_sentiment_agent     1-10 sentiment rating (time, price)
  create_portfolio_workflow        portfolio_workflow        Research -> risk -> advice (sequential)
"""

from .financial_analysis_agent import create_financial_analysis_agent
from .portfolio_workflow import create_portfolio_workflow, portfolio_request
from .stock_sentiment_agent import create_stock_sentiment_agent

__all__ = [
    "create_financial_analysis_agent",
    "create_portfolio_workflow",
    "create_stock_sentiment_agent",
    "portfolio_request",
]
