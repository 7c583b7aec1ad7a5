"""Persistent conversation memory backed by SQLite."""
from .conversation_store import ConversationStore

__all__ = ["ConversationStore"]
