"""
Command-line interface for the finance agents.

    finagent chat [--stream] [--session [ID]] financial analysis chat with memory
    finagent sessions                         saved chat sessions
    finagent sentiment                        1-10 stock sentiment chat
    finagent portfolio [--no-stream]          research -> risk -> advice workflow
    finagent serve [--host H] [--port P]      HTTP API (uvicorn)

``--session`` without an ID starts a new saved session.

Each interactive loop reads one line per turn; ``quit`` or end of input stops
it. A failed turn prints the error and the loop carries on.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Callable, Optional, Sequence

import uvicorn

from .core.base_agent import BaseAgent
from .core.errors import AgentError, ConfigurationError, describe_error
from .core.thread import ConversationThread
from .main import FinanceAssistant
from .memory.conversation_store import ConversationStore
from .utils.logging import get_logger, set_level

logger = get_logger(__name__)

TERMINATION_PHRASE = "quit"
RULE_WIDTH = 70

InputFn = Callable[[str], str]

# commands that run without the agents (and so without model credentials)
_NO_ASSISTANT = ("serve", "sessions")


def create_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="finagent", description="Financial analysis agents")
    parser.add_argument("--verbose", action="store_true", help="Show INFO logs in the console")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat_parser = subparsers.add_parser("chat", help="Chat with the financial analysis agent")
    chat_parser.add_argument("--stream", action="store_true", help="Print the reply as it is generated")
    chat_parser.add_argument(
        "--session",
        nargs="?",
        const="",
        default=None,
        help="Session ID to resume (and save to) in the conversation store; "
             "without an ID a new session is started",
    )
    chat_parser.set_defaults(handler=_handle_chat)

    sessions_parser = subparsers.add_parser("sessions", help="List saved chat sessions")
    sessions_parser.set_defaults(handler=_handle_sessions)

    sentiment_parser = subparsers.add_parser("sentiment", help="Rate stock sentiment from 1 (sell) to 10 (buy)")
    sentiment_parser.set_defaults(handler=_handle_sentiment)

    portfolio_parser = subparsers.add_parser("portfolio", help="Analyze a portfolio with three agents in sequence")
    portfolio_parser.add_argument(
        "--no-stream",
        dest="stream",
        action="store_false",
        help="Wait for each stage instead of streaming its output",
    )
    portfolio_parser.set_defaults(handler=_handle_portfolio)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.set_defaults(handler=_handle_serve)

    return parser


# ── helpers ────────────────────────────────────────────────────────────────────

def _banner(title: str, *lines: str) -> None:
    print(f"=== {title} ===")
    for line in lines:
        print(line)
    print(f"Type '{TERMINATION_PHRASE}' to exit.")
    print("=" * RULE_WIDTH)
    print()


def _read(input_fn: InputFn, prompt: str) -> Optional[str]:
    """Return the next line, or None when the loop should stop."""
    try:
        line = input_fn(prompt)
    except EOFError:
        print("Input ended. Exiting...")
        return None
    if line.strip().lower() == TERMINATION_PHRASE:
        return None
    return line.strip()


def _conversation_loop(
    agent: BaseAgent,
    thread: ConversationThread,
    input_fn: InputFn,
    stream: bool = False,
    store: Optional[ConversationStore] = None,
    session_id: Optional[str] = None,
) -> None:
    while True:
        text = _read(input_fn, "User > ")
        if text is None:
            break
        if not text:
            continue

        print("Assistant > ", end="", flush=True)
        try:
            if stream:
                parts = []
                for segment in agent.run_streaming(text, thread):
                    parts.append(segment.text)
                    print(segment.text, end="", flush=True)
                print()
                reply = "".join(parts)
            else:
                reply = agent.run(text, thread).text
                print(reply)
        except AgentError as exc:
            logger.error("Turn failed: %s", exc, exc_info=True)
            print(describe_error(exc))
            print()
            continue

        if store is not None:
            store.save_turn(session_id, text, reply, agent.name)
        print()


# ── handlers ───────────────────────────────────────────────────────────────────

def _handle_chat(args: argparse.Namespace, assistant: FinanceAssistant, input_fn: InputFn) -> int:
    agent = assistant.analyst
    store = None
    session_id = args.session
    session_lines = []
    if session_id is not None:
        store = ConversationStore()
        session_id = session_id or store.new_session_id()
        thread = store.load_thread(session_id, agent.id)
        session_lines.append(f"Session: {session_id} ({store.get_turn_count(session_id)} prior turns)")
    else:
        thread = agent.new_thread()

    _banner(
        "Financial Analysis Agent",
        "Ask about stocks, sectors or markets (e.g. 'What do you think about Microsoft?').",
        *session_lines,
    )
    _conversation_loop(agent, thread, input_fn, stream=args.stream, store=store, session_id=session_id)
    print("Thank you for using the Financial Analysis Agent!")
    return 0


def _handle_sessions(args: argparse.Namespace, assistant, input_fn: InputFn) -> int:
    store = ConversationStore()
    session_ids = store.list_sessions()
    if not session_ids:
        print("No saved sessions.")
        return 0
    for session_id in session_ids:
        print(f"{session_id}  {store.get_turn_count(session_id)} turns")
    return 0


def _handle_sentiment(args: argparse.Namespace, assistant: FinanceAssistant, input_fn: InputFn) -> int:
    agent = assistant.sentiment
    _banner(
        "Stock Sentiment Agent",
        "This agent rates stock sentiment using current market data.",
        "Enter a stock symbol (e.g., 'MSFT', 'AAPL') or ask questions about stocks.",
    )
    _conversation_loop(agent, agent.new_thread(), input_fn)
    print("Thank you for using the Stock Sentiment Agent!")
    return 0


def _print_stage_header(name: str, first: bool) -> None:
    if not first:
        print()
        print("-" * RULE_WIDTH)
        print()
    print(f"[{name}]")
    print("-" * RULE_WIDTH)


def _run_portfolio(assistant: FinanceAssistant, symbols: str, stream: bool) -> None:
    workflow_id = assistant.portfolio.id
    started = time.perf_counter()
    if stream:
        segments = assistant.analyze_portfolio_stream(symbols)
        print("\n" + "=" * RULE_WIDTH)
        print("PORTFOLIO ANALYSIS - SEQUENTIAL ORCHESTRATION")
        print("=" * RULE_WIDTH + "\n")
        last_agent = None
        for segment in segments:
            if segment.agent_id == workflow_id:
                continue
            if segment.agent_id != last_agent:
                _print_stage_header(segment.agent_name, last_agent is None)
                last_agent = segment.agent_id
            print(segment.text, end="", flush=True)
    else:
        print("\n" + "=" * RULE_WIDTH)
        print("PORTFOLIO ANALYSIS - SEQUENTIAL ORCHESTRATION")
        print("=" * RULE_WIDTH + "\n")
        report = assistant.analyze_portfolio(symbols)
        if report.failed:
            print(report.full_message)
            return
        for index, stage in enumerate(report.stages):
            _print_stage_header(stage.agent, index == 0)
            print(stage.text, end="")

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    print("\n" + "=" * RULE_WIDTH)
    print(f"✓ ANALYSIS COMPLETE - Duration: {elapsed_ms}ms")
    print("=" * RULE_WIDTH)


def _handle_portfolio(args: argparse.Namespace, assistant: FinanceAssistant, input_fn: InputFn) -> int:
    _banner(
        "Investment Portfolio Analyzer with Sequential Orchestration",
        "Three agents run in order: research, risk assessment, recommendations.",
        "Enter stock symbols separated by commas (e.g., 'MSFT, AAPL, TSLA, NVDA')",
    )
    while True:
        symbols = _read(input_fn, "Enter portfolio > ")
        if symbols is None:
            break
        if not symbols:
            continue
        try:
            _run_portfolio(assistant, symbols, args.stream)
        except ValueError as exc:
            print(f"Error: {exc}")
        except AgentError as exc:
            logger.error("Portfolio analysis failed: %s", exc, exc_info=True)
            print()
            print(describe_error(exc, "Error analyzing portfolio"))
        print()
    print("Thank you for using the Investment Portfolio Analyzer!")
    return 0


def _handle_serve(args: argparse.Namespace, assistant, input_fn: InputFn) -> int:
    uvicorn.run("finagent.web_app.server:app", host=args.host, port=args.port)
    return 0


# ── entry points ───────────────────────────────────────────────────────────────

def run_cli(
    argv: Optional[Sequence[str]] = None,
    assistant: Optional[FinanceAssistant] = None,
    input_fn: InputFn = input,
) -> int:
    """Parse *argv* and run the selected command. Returns the exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)
    if not args.verbose:
        set_level(logging.WARNING)

    if args.command not in _NO_ASSISTANT and assistant is None:
        try:
            assistant = FinanceAssistant.from_settings()
        except ConfigurationError as exc:
            print(f"Configuration error: {exc}")
            return 1
    return args.handler(args, assistant, input_fn)


def main() -> None:
    raise SystemExit(run_cli())
