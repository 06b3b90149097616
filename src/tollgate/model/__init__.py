"""Model clients for the browser agent."""

from tollgate.model.base import FunctionCall, Message, ModelClient, ModelResponse
from tollgate.model.ollama import OllamaModelClient

__all__ = [
    "FunctionCall",
    "Message",
    "ModelClient",
    "ModelResponse",
    "OllamaModelClient",
]
