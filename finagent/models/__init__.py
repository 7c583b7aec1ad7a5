"""Model clients: concrete ModelClient implementations"""

from finagent.core.model_client import ModelClient
from finagent.utils.config import Settings, load_settings
from .langchain_client import LangChainModelClient, build_chat_model


def create_model_client(settings: Settings = None) -> ModelClient:
    """Build the process-wide model client from *settings* (loaded if omitted)."""
    return LangChainModelClient.from_settings(settings or load_settings())


__all__ = [
    "LangChainModelClient",
    "ModelClient",
    "build_chat_model",
    "create_model_client",
]
