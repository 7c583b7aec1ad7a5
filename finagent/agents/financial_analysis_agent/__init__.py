"""Financial Analysis Agent — stocks, sectors and market questions."""
from .agent import AGENT_NAME, create_financial_analysis_agent

__all__ = ["AGENT_NAME", "create_financial_analysis_agent"]
