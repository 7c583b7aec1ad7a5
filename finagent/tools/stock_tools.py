"""
LangChain @tool wrappers for daily stock prices via yfinance.

No API key required — uses Yahoo Finance directly.

Both tools return a one-row markdown table (symbol, close, open, low, high,
date) so agents can quote the numbers verbatim. A symbol or date with no
trading data raises ``ValueError``; the agent's tool loop reports that back
to the model as a tool error.

Exported collections
--------------------
STOCK_TOOLS = [get_stock_price, get_stock_price_for_date]
"""
from __future__ import annotations

import datetime as dt
from typing import Optional

import pandas as pd
import yfinance as yf
from langchain_core.tools import tool
from pydantic import BaseModel, Field

# Look back far enough to cover weekends and market holidays.
_LATEST_LOOKBACK = "5d"
_DATE_WINDOW_DAYS = 5


class StockQuote(BaseModel):
    """Daily OHLC bar for one symbol."""
    symbol: str
    open: float
    high: float
    low: float
    close: float
    date: dt.date


# ── helpers ───────────────────────────────────────────────────────────────────

def _safe_float(val) -> Optional[float]:
    """Coerce *val* to float, returning ``None`` for any non-numeric input."""
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _normalise_symbol(symbol: str) -> str:
    symbol = (symbol or "").upper().strip()
    if not symbol:
        raise ValueError("A ticker symbol is required.")
    return symbol


def _quote_from_row(symbol: str, when, row: pd.Series) -> StockQuote:
    return StockQuote(
        symbol=symbol,
        open=round(_safe_float(row["Open"]) or 0.0, 4),
        high=round(_safe_float(row["High"]) or 0.0, 4),
        low=round(_safe_float(row["Low"]) or 0.0, 4),
        close=round(_safe_float(row["Close"]) or 0.0, 4),
        date=pd.Timestamp(when).date(),
    )


def format_stock_data(quote: StockQuote) -> str:
    """Render *quote* as the markdown table agents are shown."""
    return "\n".join([
        "| Symbol | Price | Open | Low | High | Date |",
        "| ----- | ----- | ----- | ----- | ----- | ----- |",
        f"| {quote.symbol} | {quote.close} | {quote.open} | {quote.low} | {quote.high} | {quote.date.isoformat()} |",
    ])


def fetch_latest_quote(symbol: str) -> StockQuote:
    """Return the most recent daily bar for *symbol*."""
    symbol = _normalise_symbol(symbol)
    hist = yf.Ticker(symbol).history(period=_LATEST_LOOKBACK)
    if hist is None or hist.empty:
        raise ValueError(f"No price data found for {symbol}")
    return _quote_from_row(symbol, hist.index[-1], hist.iloc[-1])


def fetch_quote_for_date(symbol: str, date: dt.date) -> StockQuote:
    """
    Return the daily bar for *symbol* on *date*, or on the last trading day
    before it when *date* falls on a weekend or holiday.
    """
    symbol = _normalise_symbol(symbol)
    if date > dt.date.today():
        raise ValueError(f"{date.isoformat()} is in the future")
    start = date - dt.timedelta(days=_DATE_WINDOW_DAYS)
    hist = yf.Ticker(symbol).history(start=start.isoformat(), end=(date + dt.timedelta(days=1)).isoformat())
    if hist is None or hist.empty:
        raise ValueError(f"No price data found for {symbol} on or before {date.isoformat()}")
    return _quote_from_row(symbol, hist.index[-1], hist.iloc[-1])


# ── tools ─────────────────────────────────────────────────────────────────────

@tool
def get_stock_price(symbol: str) -> str:
    """
    Gets stock price data for the most recent trading day.

    Provide the ticker symbol (e.g. 'MSFT', 'AAPL', 'NVDA').
    Returns the close (current price), open, low, high and the trading date.
    """
    return format_stock_data(fetch_latest_quote(symbol))


class _PriceForDateArgs(BaseModel):
    symbol: str = Field(description="Ticker symbol, e.g. 'MSFT'")
    date: dt.date = Field(description="Trading date in ISO format, YYYY-MM-DD")


@tool(args_schema=_PriceForDateArgs)
def get_stock_price_for_date(symbol: str, date: dt.date) -> str:
    """
    Gets stock price data for a given date.

    Returns the close, open, low and high for that trading day (or the last
    trading day before it when the market was closed).
    """
    return format_stock_data(fetch_quote_for_date(symbol, date))


# ── exported collection ───────────────────────────────────────────────────────

STOCK_TOOLS = [get_stock_price, get_stock_price_for_date]
