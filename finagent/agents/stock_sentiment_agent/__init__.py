"""Stock Sentiment Agent — 1-10 buy/sell sentiment for a ticker."""
from .agent import AGENT_NAME, create_stock_sentiment_agent

__all__ = ["AGENT_NAME", "create_stock_sentiment_agent"]
