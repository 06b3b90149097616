"""
Ollama model client.

Talks to a local Ollama server through its /api/chat endpoint with native
tool calling and image input, which lets a vision model drive the browser
agent without any hosted API.

Requirements:
    - Ollama must be installed and running (`ollama serve`)
    - A vision + tool-calling model must be pulled (`ollama pull qwen2.5vl:7b`)

Usage:
    from tollgate.model.ollama import OllamaModelClient
    from tollgate.schema import ModelSettings

    with OllamaModelClient(ModelSettings()) as client:
        response = client.generate(messages, BROWSER_ACTION_DECLARATIONS)
"""

import json
import logging
import time
from typing import Any

import httpx

from tollgate.errors import (
    ModelConnectionError,
    ModelNotFoundError,
    ModelResponseError,
    ModelTimeoutError,
)
from tollgate.model.base import FunctionCall, Message, ModelClient, ModelResponse
from tollgate.schema import ModelSettings

logger = logging.getLogger(__name__)


class OllamaModelClient(ModelClient):
    """
    ModelClient backed by Ollama.

    Features:
        - Automatic retry on connection errors and timeouts
        - Screenshots sent as base64 images
        - Tool calls parsed from the native tool_calls field
    """

    def __init__(self, settings: ModelSettings | None = None):
        self.settings = settings or ModelSettings()
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.settings.base_url,
                timeout=self.settings.timeout_seconds,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def generate(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
    ) -> ModelResponse:
        payload = {
            "model": self.settings.model,
            "messages": [self._format_message(m) for m in messages],
            "tools": [{"type": "function", "function": decl} for decl in tools],
            "stream": False,
            "options": {
                "temperature": self.settings.temperature,
                "num_predict": self.settings.max_tokens,
            },
        }
        data = self._call_with_retries(payload)
        return self._parse_response(data)

    def _format_message(self, message: Message) -> dict[str, Any]:
        formatted: dict[str, Any] = {"role": message.role, "content": message.content}
        if message.images:
            formatted["images"] = message.encoded_images()
        if message.function_call is not None:
            formatted["tool_calls"] = [
                {
                    "function": {
                        "name": message.function_call.name,
                        "arguments": message.function_call.args,
                    }
                }
            ]
        if message.tool_name:
            formatted["tool_name"] = message.tool_name
        return formatted

    def _call_with_retries(self, payload: dict[str, Any]) -> dict[str, Any]:
        attempts = self.settings.max_retries + 1
        attempt = 0

        while True:
            attempt += 1
            try:
                return self._call(payload)
            except (ModelConnectionError, ModelTimeoutError) as e:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Ollama call failed (attempt %d/%d): %s", attempt, attempts, e.message
                )
                time.sleep(self.settings.retry_delay_seconds)

    def _call(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()

        try:
            response = client.post("/api/chat", json=payload)
        except httpx.ConnectError as e:
            raise ModelConnectionError(
                client="ollama",
                model=self.settings.model,
                url=self.settings.base_url,
                underlying_error=str(e),
            ) from e
        except httpx.TimeoutException as e:
            raise ModelTimeoutError(
                client="ollama",
                model=self.settings.model,
                timeout_seconds=self.settings.timeout_seconds,
            ) from e

        if response.status_code == 404:
            raise ModelNotFoundError(
                client="ollama",
                model=self.settings.model,
                available_models=self._list_models(),
            )

        if response.status_code != 200:
            raise ModelConnectionError(
                client="ollama",
                model=self.settings.model,
                url=self.settings.base_url,
                underlying_error=f"HTTP {response.status_code}: {response.text}",
            )

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ModelResponseError(
                client="ollama",
                model=self.settings.model,
                raw_response=response.text[:500],
                parse_error=f"Invalid JSON from Ollama: {e}",
            ) from e

    def _parse_response(self, data: dict[str, Any]) -> ModelResponse:
        message = data.get("message") or {}
        text = message.get("content") or None
        tool_calls = message.get("tool_calls") or []

        if not tool_calls:
            if not text:
                raise ModelResponseError(
                    client="ollama",
                    model=self.settings.model,
                    raw_response=str(data)[:500],
                    parse_error="Empty response from model",
                )
            return ModelResponse(text=text)

        if len(tool_calls) > 1:
            logger.debug("Model returned %d tool calls; using the first", len(tool_calls))

        function = tool_calls[0].get("function") or {}
        name = function.get("name")
        args = function.get("arguments") or {}
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError as e:
                raise ModelResponseError(
                    client="ollama",
                    model=self.settings.model,
                    raw_response=str(data)[:500],
                    parse_error=f"Tool arguments are not valid JSON: {e}",
                ) from e

        if not isinstance(name, str) or not name or not isinstance(args, dict):
            raise ModelResponseError(
                client="ollama",
                model=self.settings.model,
                raw_response=str(data)[:500],
                parse_error="Malformed tool call",
            )

        return ModelResponse(text=text, function_call=FunctionCall(name=name, args=args))

    def _list_models(self) -> list[str]:
        try:
            response = self._get_client().get("/api/tags")
        except httpx.HTTPError:
            return []
        if response.status_code != 200:
            return []
        try:
            return [m["name"] for m in response.json().get("models", [])]
        except (json.JSONDecodeError, KeyError, TypeError):
            return []

    def get_name(self) -> str:
        return f"OllamaModelClient({self.settings.model})"

    def get_config(self) -> dict[str, Any]:
        return {
            "backend": "ollama",
            "base_url": self.settings.base_url,
            "model": self.settings.model,
            "timeout_seconds": self.settings.timeout_seconds,
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }

    def check_connection(self) -> tuple[bool, str]:
        """Check that Ollama is reachable and the model is pulled."""
        try:
            response = self._get_client().get("/api/tags")
        except httpx.ConnectError:
            return False, f"Cannot connect to Ollama at {self.settings.base_url}. Is it running?"
        except httpx.HTTPError as e:
            return False, f"Error checking Ollama: {e}"

        if response.status_code != 200:
            return False, f"Ollama returned HTTP {response.status_code}"

        models = [m["name"] for m in response.json().get("models", [])]
        if self.settings.model not in models:
            return False, f"Model '{self.settings.model}' not found. Available: {', '.join(models[:3])}"
        return True, f"Connected to Ollama, model '{self.settings.model}' available"
