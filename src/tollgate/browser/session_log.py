"""
Per-turn session logs for the browser agent.

For every model turn two files are written to the log directory:

    browser-agent-<timestamp>-full.json     prompt and response, indented JSON
    browser-agent-<timestamp>-summary.txt   the response as plain text

Writing a log never interrupts the agent: failures are reported through the
logging module and otherwise ignored.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from tollgate.model.base import Message, ModelResponse

logger = logging.getLogger(__name__)


def log_timestamp() -> str:
    """UTC timestamp safe for file names (':' and '.' replaced by '-')."""
    stamp = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return stamp.replace(":", "-").replace(".", "-")


def summarize_response(response: ModelResponse) -> str:
    summary = ""
    if response.text:
        summary += f"Text: {response.text}\n"
    if response.function_call:
        summary += f"Tool Call: {response.function_call.name}\n"
        summary += f"Args: {json.dumps(response.function_call.args, indent=2)}\n"
    return summary


class SessionLogger:
    """Writes browser-agent turn logs to a directory."""

    def __init__(self, log_dir: str | Path) -> None:
        self.log_dir = Path(log_dir)

    def _path(self, timestamp: str, suffix: str) -> Path:
        return self.log_dir / f"browser-agent-{timestamp}-{suffix}"

    def log_full_turn(self, prompt: list[Message], response: ModelResponse) -> Path | None:
        """Write the full prompt and response. Returns the file path, or None on failure."""
        path = self._path(log_timestamp(), "full.json")
        data = {
            "prompt": [m.to_dict() for m in prompt],
            "response": response.to_dict(),
        }
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write browser log %s: %s", path, e)
            return None
        return path

    def log_summary(self, response: ModelResponse) -> Path | None:
        """Write the response summary. Returns the file path, or None on failure."""
        path = self._path(log_timestamp(), "summary.txt")
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(summarize_response(response), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write browser summary log %s: %s", path, e)
            return None
        return path
