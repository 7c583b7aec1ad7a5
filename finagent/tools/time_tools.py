"""LangChain @tool wrapper for the current time."""
from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime

from langchain_core.tools import tool


@tool
def get_current_utc_time() -> str:
    """Retrieves the current time in UTC."""
    # RFC 1123, e.g. "Mon, 19 Oct 2026 18:05:00 GMT"
    return format_datetime(datetime.now(timezone.utc), usegmt=True)
