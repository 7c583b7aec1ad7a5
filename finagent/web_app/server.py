"""FastAPI server for the finance agents."""

# Load .env FIRST — must happen before any other imports so that env vars
# (especially LANGCHAIN_TRACING_V2 / LANGCHAIN_API_KEY) are available when
# @traceable decorators are evaluated at module-import time.
from dotenv import load_dotenv
load_dotenv()

import json
from functools import lru_cache
from typing import Iterator, List, Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from finagent.core.errors import AgentError, ConfigurationError, describe_error
from finagent.main import FinanceAssistant
from finagent.utils.logging import get_logger
from finagent.utils.tracing import log_run

logger = get_logger(__name__)

app = FastAPI(
    title="Finance Agents",
    description=(
        "Financial analysis chat and sequential portfolio analysis on top of "
        "tool-calling agents. General information only, not personalised advice."
    ),
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],            # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def _get_assistant() -> FinanceAssistant:
    """Build the agents once per server process, on first use."""
    return FinanceAssistant.from_settings()


def _assistant() -> FinanceAssistant:
    try:
        return _get_assistant()
    except ConfigurationError as exc:
        logger.error("Assistant is not configured: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc


# ── Request / Response models ──────────────────────────────────────────────────

class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    input_message: str
    message_history: List[HistoryMessage] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "input_message": "What do you think about Microsoft?",
                "message_history": [],
            }
        }
    }


class ChatResponse(BaseModel):
    full_message: str
    message_history: List[HistoryMessage]


class PortfolioAnalyzeRequest(BaseModel):
    symbols: List[str]

    model_config = {
        "json_schema_extra": {"example": {"symbols": ["MSFT", "AAPL", "NVDA"]}}
    }


class StageResponse(BaseModel):
    agent: str
    text: str


class PortfolioAnalyzeResponse(BaseModel):
    full_message: str
    stages: List[StageResponse]


def _history(request: ChatRequest) -> List[dict]:
    return [m.model_dump() for m in request.message_history]


def _ndjson(event: str, **payload) -> str:
    return json.dumps({"event": event, **payload}) + "\n"


def _segment_line(segment) -> str:
    return _ndjson(
        "segment",
        agent_id=segment.agent_id,
        agent_name=segment.agent_name,
        text=segment.text,
        is_final_for_agent=segment.is_final_for_agent,
        sequence=segment.sequence,
    )


# ── Routes ─────────────────────────────────────────────────────────────────────

@app.get("/health", summary="Health check")
def health_check() -> dict:
    """Returns 200 OK when the service is running."""
    return {"status": "ok"}


@app.get("/agents", summary="List the available agents")
def list_agents() -> dict:
    return _assistant().list_agents()


@app.post("/chat", response_model=ChatResponse, summary="Chat with the financial analysis agent")
def chat(request: ChatRequest) -> ChatResponse:
    """
    Run one turn of the financial analysis agent on top of ``message_history``
    and return the reply together with the updated history.

    A turn that fails still returns 200: the error description is the reply,
    so the client can show it and carry on.
    """
    logger.info("POST /chat  message=%s", request.input_message[:80])
    turn = _assistant().chat(request.input_message, _history(request))
    log_run(
        name="chat_turn",
        inputs={"input_message": request.input_message},
        outputs={"full_message": turn.full_message},
        tags=["api", "chat"],
        error=turn.full_message if turn.failed else None,
    )
    return ChatResponse(
        full_message=turn.full_message,
        message_history=[HistoryMessage(**m) for m in turn.history],
    )


def _stream_events(segments: Iterator) -> Iterator[str]:
    try:
        while True:
            try:
                segment = next(segments)
            except StopIteration as stop:
                outcome = stop.value
                break
            yield _segment_line(segment)
    except AgentError as exc:
        logger.error("Stream failed: %s", exc, exc_info=True)
        yield _ndjson("error", message=describe_error(exc))
        return
    finally:
        segments.close()

    payload = outcome.model_dump()
    if "history" in payload:
        payload["message_history"] = payload.pop("history")
    payload.pop("failed", None)
    yield _ndjson("complete", **payload)


@app.post("/chat/stream", summary="Stream a chat turn as NDJSON")
def chat_stream(request: ChatRequest) -> StreamingResponse:
    """
    Stream the agent's reply as newline-delimited JSON: one ``segment`` event
    per fragment, then a ``complete`` event with the full message and the
    updated history (or an ``error`` event).
    """
    if not request.input_message.strip():
        raise HTTPException(status_code=422, detail="input_message must not be empty.")
    logger.info("POST /chat/stream  message=%s", request.input_message[:80])
    segments = _assistant().chat_stream(request.input_message, _history(request))
    return StreamingResponse(_stream_events(segments), media_type="application/x-ndjson")


@app.post(
    "/portfolio/analyze",
    response_model=PortfolioAnalyzeResponse,
    summary="Research, risk assessment and advice for a portfolio",
)
def portfolio_analyze(request: PortfolioAnalyzeRequest) -> PortfolioAnalyzeResponse:
    """
    Run the three-stage portfolio workflow. Each stage's output is returned
    under ``stages``; the advisor's recommendation is ``full_message``.
    """
    assistant = _assistant()
    try:
        report = assistant.analyze_portfolio(request.symbols)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    log_run(
        name="portfolio_analysis",
        inputs={"symbols": request.symbols},
        outputs={"full_message": report.full_message},
        tags=["api", "portfolio"],
        error=report.full_message if report.failed else None,
    )
    return PortfolioAnalyzeResponse(
        full_message=report.full_message,
        stages=[StageResponse(**s.model_dump()) for s in report.stages],
    )


@app.post("/portfolio/analyze/stream", summary="Stream the portfolio workflow as NDJSON")
def portfolio_analyze_stream(request: PortfolioAnalyzeRequest) -> StreamingResponse:
    assistant = _assistant()
    try:
        segments = assistant.analyze_portfolio_stream(request.symbols)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return StreamingResponse(_stream_events(segments), media_type="application/x-ndjson")
