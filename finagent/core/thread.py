"""
Conversation threads.

A thread is the ordered, append-only message log that gives one agent memory
across separate turns. It belongs to a single agent and is written by one
request at a time; callers serialise access (typically one thread per user
session).

Usage
-----
    thread = agent.new_thread()
    agent.run("What is MSFT trading at?", thread)
    agent.run("And a week ago?", thread)        # sees the first exchange
    thread.to_history()                         # [{"role": ..., "content": ...}, ...]
"""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .protocol import Message, MessageRole

_HISTORY_ROLES = {
    "user": MessageRole.USER,
    "assistant": MessageRole.ASSISTANT,
}


class ConversationThread:
    """Append-only message log owned by one agent."""

    def __init__(
        self,
        agent_id: Optional[str] = None,
        messages: Optional[Iterable[Message]] = None,
    ) -> None:
        self.agent_id = agent_id
        self._messages: List[Message] = list(messages or [])

    # ── mutation ──────────────────────────────────────────────────────────────

    def append(self, message: Message) -> None:
        if not isinstance(message, Message):
            raise TypeError(f"Expected Message, got {type(message).__name__}")
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.append(message)

    # ── views ─────────────────────────────────────────────────────────────────

    def history(self) -> Tuple[Message, ...]:
        """Return a read-only snapshot of the messages, oldest first."""
        return tuple(self._messages)

    def fork(self) -> "ConversationThread":
        """Return a staging copy with the same owner; writes do not touch this thread."""
        return ConversationThread(self.agent_id, self._messages)

    def bind(self, agent_id: str) -> None:
        """Claim an unowned thread for *agent_id*."""
        if self.agent_id is None:
            self.agent_id = agent_id

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.history())

    def __repr__(self) -> str:
        return f"ConversationThread(agent_id={self.agent_id!r}, messages={len(self._messages)})"

    # ── API boundary conversion ───────────────────────────────────────────────

    def to_history(self) -> List[Dict[str, str]]:
        """
        Return the user/assistant messages as ``{"role", "content"}`` dicts,
        the shape used by the chat API and the conversation store.
        """
        return [
            {"role": m.role.value, "content": m.content}
            for m in self._messages
            if m.role in (MessageRole.USER, MessageRole.ASSISTANT)
        ]

    @classmethod
    def from_history(
        cls,
        records: Iterable[Dict[str, str]],
        agent_id: Optional[str] = None,
    ) -> "ConversationThread":
        """
        Build a thread from prior ``{"role", "content"}`` records.

        Roles are matched case-insensitively; anything other than user or
        assistant is rejected with ``ValueError``.
        """
        thread = cls(agent_id)
        for record in records:
            role = str(record.get("role", "")).lower()
            if role not in _HISTORY_ROLES:
                raise ValueError(f"Unsupported history role: {record.get('role')!r}")
            thread.append(Message(role=_HISTORY_ROLES[role], content=record.get("content") or ""))
        return thread
