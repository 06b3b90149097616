"""
Base classes for model clients.

The agent loop talks to the generative model through ModelClient. A turn
sends the conversation so far plus the function declarations and gets back
either text (the task is finished) or one function call (the next action).

Security Note:
    All model output is UNTRUSTED. Every function call goes through the
    guards before the browser sees it.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FunctionCall:
    """An action requested by the model."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelResponse:
    """
    One model reply.

    Attributes:
        text: Free text from the model (may accompany a function call)
        function_call: The requested action, if any
    """

    text: str | None = None
    function_call: FunctionCall | None = None

    @property
    def is_text_only(self) -> bool:
        return self.function_call is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": "assistant"}
        if self.text:
            data["text"] = self.text
        if self.function_call:
            data["function_call"] = {
                "name": self.function_call.name,
                "args": self.function_call.args,
            }
        return data


@dataclass
class Message:
    """
    A conversation entry.

    Attributes:
        role: "system", "user", "assistant" or "tool"
        content: Message text (for "tool", the JSON function response)
        images: PNG screenshots attached to the message
        function_call: For assistant messages that requested an action
        tool_name: For "tool" messages, the action that produced it
    """

    role: str
    content: str = ""
    images: list[bytes] = field(default_factory=list)
    function_call: FunctionCall | None = None
    tool_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Loggable form; images are summarized, not embedded."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.images:
            data["images"] = [f"<png {len(img)} bytes>" for img in self.images]
        if self.function_call:
            data["function_call"] = {
                "name": self.function_call.name,
                "args": self.function_call.args,
            }
        if self.tool_name:
            data["tool_name"] = self.tool_name
        return data

    def encoded_images(self) -> list[str]:
        return [base64.b64encode(img).decode("ascii") for img in self.images]


class ModelClient(ABC):
    """
    Abstract base class for model backends.

    Implementations:
        - OllamaModelClient: Local Ollama server with a vision model
    """

    @abstractmethod
    def generate(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
    ) -> ModelResponse:
        """
        Ask the model for its next step.

        Args:
            messages: The conversation so far
            tools: Function declarations the model may call

        Raises:
            ModelError: The backend failed or replied with garbage
        """
        ...

    def get_name(self) -> str:
        """Return the client's name for logging."""
        return self.__class__.__name__

    def get_config(self) -> dict[str, Any]:
        return {}

    def close(self) -> None:
        """Release connections. Default does nothing."""

    def __enter__(self) -> "ModelClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
