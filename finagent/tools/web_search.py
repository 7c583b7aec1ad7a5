"""
Tavily Web Search Tool

Gives agents real-time web search for recent news, analyst opinions and
market sentiment via the Tavily API.

Usage
-----
    from finagent.tools.web_search import web_search, search_web

    context = web_search("NVDA analyst sentiment this week")   # plain helper
    registry.add_tool(search_web)                              # model-callable tool

Graceful degradation
--------------------
If TAVILY_API_KEY is not set, or the search fails, ``web_search`` returns an
empty string and logs a warning, and the ``search_web`` tool tells the model
that no results were available, so agents can still answer from price data
and their training knowledge.
"""

from __future__ import annotations

import os
from functools import lru_cache

from langchain_core.tools import tool
from tavily import TavilyClient

from finagent.utils.logging import get_logger

logger = get_logger(__name__)

# ── Configuration ──────────────────────────────────────────────────────────────
_MAX_RESULTS = 5
_SEARCH_DEPTH = "basic"      # "basic" (faster) | "advanced" (deeper, costs more)
_MAX_CONTENT_CHARS = 500     # truncate each result's content snippet


# ── Client factory (cached) ─────────────────────────────────────────────────────

@lru_cache(maxsize=1)
def _get_tavily_client() -> TavilyClient:
    """Return a cached TavilyClient.  Raises EnvironmentError when no key is set."""
    api_key = os.getenv("TAVILY_API_KEY", "").strip()
    if not api_key:
        raise EnvironmentError(
            "TAVILY_API_KEY is not set. "
            "Add it to your .env file:  TAVILY_API_KEY=tvly-..."
        )
    return TavilyClient(api_key=api_key)


# ── Public helpers ──────────────────────────────────────────────────────────────

def web_search(
    query: str,
    max_results: int = _MAX_RESULTS,
    search_depth: str = _SEARCH_DEPTH,
) -> str:
    """
    Search the web using Tavily and return a formatted context string.

    Parameters
    ----------
    query : str
        Search query, e.g. "MSFT stock news" or "Fed rate decision".
    max_results : int
        Maximum number of results to include (default 5).
    search_depth : str
        "basic" (fast, cheaper) or "advanced" (deeper, costs more API credits).

    Returns
    -------
    str
        Numbered results with title, source URL and a content snippet, or an
        empty string if Tavily is unavailable or the search fails.
    """
    if not query or not query.strip():
        return ""

    try:
        client = _get_tavily_client()
        response = client.search(
            query=query.strip(),
            search_depth=search_depth,
            max_results=max_results,
        )

        results = response.get("results", [])
        if not results:
            logger.info("Tavily: no results for query=%s", query[:60])
            return ""

        lines: list[str] = [
            f"[Real-time web search results for: «{query}»]\n"
        ]
        for i, r in enumerate(results, start=1):
            title   = r.get("title", "No title").strip()
            url     = r.get("url", "").strip()
            content = r.get("content", "").strip()
            if len(content) > _MAX_CONTENT_CHARS:
                content = content[:_MAX_CONTENT_CHARS] + " … [truncated]"
            lines.append(f"[{i}] {title}")
            if url:
                lines.append(f"    Source: {url}")
            if content:
                lines.append(f"    {content}")
            lines.append("")

        result_text = "\n".join(lines)
        logger.info(
            "Tavily: returned %d results for query=%s", len(results), query[:60]
        )
        return result_text

    except EnvironmentError:
        # API key not configured — degrade gracefully
        logger.warning(
            "Tavily API key not configured; skipping web search. "
            "Set TAVILY_API_KEY in .env to enable live data."
        )
        return ""
    except Exception as exc:
        logger.warning("Tavily search failed [query=%s]: %s", query[:60], exc)
        return ""


@tool
def search_web(query: str) -> str:
    """
    Search the web for recent news, analyst opinions and market sentiment.

    Returns numbered results, each with a title, a source URL and a snippet.
    Cite the sources you use.
    """
    results = web_search(query)
    if not results:
        return f"No web search results were available for: {query}"
    return results
