"""
Tools package — capabilities agents can call mid-turn.

    time_tools    get_current_utc_time
    stock_tools   get_stock_price, get_stock_price_for_date (yfinance)
    web_search    search_web (Tavily)
"""

from finagent.core.tool_registry import ToolDescriptor, ToolRegistry
from .stock_tools import STOCK_TOOLS, get_stock_price, get_stock_price_for_date
from .time_tools import get_current_utc_time
from .web_search import search_web, web_search


def default_tool_registry() -> ToolRegistry:
    """Registry with every built-in tool: time, price, price-for-date, web search."""
    return ToolRegistry([get_current_utc_time, *STOCK_TOOLS, search_web])


__all__ = [
    "ToolDescriptor",
    "ToolRegistry",
    "default_tool_registry",
    "get_current_utc_time",
    "get_stock_price",
    "get_stock_price_for_date",
    "search_web",
    "web_search",
]
