"""
Filesystem tools for Tollgate.

The two content-mutating tools the policy layer cares most about:
- write_file: Write (create or overwrite) a file
- replace: Replace an exact string inside an existing file

Security Note:
    Policy rules match the serialized arguments, so file_path is
    canonicalized to an absolute, normalized path before evaluation. A
    grant for /work/docs therefore matches whether the model says
    "docs/plan.md" or "/work/docs/plan.md".

    The tools still check the workspace boundary themselves (symlinks
    resolved) and report violations as an error result.
"""

import threading
from pathlib import Path
from typing import Any

from tollgate.policy.injector import resolve_path
from tollgate.tools.base import Tool, ToolInvocation, ToolResult


def _validate_file_path(args: dict[str, Any], errors: list[str]) -> None:
    if "file_path" not in args:
        errors.append("'file_path' is required")
    elif not isinstance(args["file_path"], str):
        errors.append("'file_path' must be a string")
    elif not args["file_path"].strip():
        errors.append("'file_path' cannot be empty")


class FileInvocation(ToolInvocation):
    """Shared path handling for the file tools."""

    @property
    def absolute_path(self) -> str:
        return resolve_path(self.args["file_path"], self.settings.target_dir)

    def policy_args(self) -> dict[str, Any]:
        return {**self.args, "file_path": self.absolute_path}

    def check_path(self) -> ToolResult | None:
        """Return an error result if the path is outside the workspace."""
        error = self.settings.validate_path_access(self.absolute_path)
        if error:
            return ToolResult.fail(error, path=self.absolute_path)
        return None


class WriteFileInvocation(FileInvocation):
    def get_description(self) -> str:
        return f"Write {self.absolute_path}"

    @property
    def confirmation_title(self) -> str:
        return "Confirm Write"

    def run(self, abort_signal: threading.Event | None) -> ToolResult:
        denied = self.check_path()
        if denied:
            return denied

        path = Path(self.absolute_path)
        content = self.args["content"]
        existed = path.exists()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except PermissionError:
            return ToolResult.fail(f"Permission denied: {self.args['file_path']}", path=str(path))
        except OSError as e:
            return ToolResult.fail(f"Error writing {self.args['file_path']}: {e}", path=str(path))

        verb = "Overwrote" if existed else "Created"
        return ToolResult.ok(
            f"Successfully wrote to {path}",
            display=f"{verb} {path}",
            path=str(path),
            size=len(content.encode("utf-8")),
        )


class WriteFileTool(Tool):
    """
    Write content to a file, creating parent directories as needed.

    Arguments:
        file_path (str): Target file, relative to the workspace or absolute
        content (str): The full new content
    """

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def display_name(self) -> str:
        return "WriteFile"

    @property
    def description(self) -> str:
        return "Write content to a file in the workspace"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string", "description": "Path of the file to write"},
                "content": {"type": "string", "description": "Content to write"},
            },
            "required": ["file_path", "content"],
        }

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        _validate_file_path(args, errors)
        if "content" not in args:
            errors.append("'content' is required")
        elif not isinstance(args["content"], str):
            errors.append("'content' must be a string")
        return errors

    def create_invocation(self, args: dict[str, Any], settings) -> WriteFileInvocation:
        return WriteFileInvocation(self, args, settings)


class ReplaceInvocation(FileInvocation):
    def get_description(self) -> str:
        return f"Edit {self.absolute_path}"

    @property
    def confirmation_title(self) -> str:
        return "Confirm Edit"

    def run(self, abort_signal: threading.Event | None) -> ToolResult:
        denied = self.check_path()
        if denied:
            return denied

        path = Path(self.absolute_path)
        old = self.args["old_string"]
        new = self.args["new_string"]
        expected = self.args.get("expected_replacements", 1)

        if not path.is_file():
            return ToolResult.fail(f"File not found: {self.args['file_path']}", path=str(path))

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult.fail(f"Error reading {self.args['file_path']}: {e}", path=str(path))

        occurrences = text.count(old)
        if occurrences == 0:
            return ToolResult.fail(
                f"Could not find the string to replace in {self.args['file_path']}",
                path=str(path),
            )
        if occurrences != expected:
            return ToolResult.fail(
                f"Expected {expected} occurrence(s) but found {occurrences} "
                f"in {self.args['file_path']}",
                path=str(path),
            )

        try:
            path.write_text(text.replace(old, new), encoding="utf-8")
        except OSError as e:
            return ToolResult.fail(f"Error writing {self.args['file_path']}: {e}", path=str(path))

        return ToolResult.ok(
            f"Successfully modified file: {path} ({occurrences} replacements).",
            display=f"Edited {path}",
            path=str(path),
            replacements=occurrences,
        )


class ReplaceTool(Tool):
    """
    Replace an exact string in a file.

    Arguments:
        file_path (str): Target file, relative to the workspace or absolute
        old_string (str): Exact text to replace (must be non-empty)
        new_string (str): Replacement text
        expected_replacements (int): How many occurrences must exist, default 1
    """

    @property
    def name(self) -> str:
        return "replace"

    @property
    def display_name(self) -> str:
        return "Edit"

    @property
    def description(self) -> str:
        return "Replace text within a file in the workspace"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string"},
                "old_string": {"type": "string"},
                "new_string": {"type": "string"},
                "expected_replacements": {"type": "integer", "minimum": 1},
            },
            "required": ["file_path", "old_string", "new_string"],
        }

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        _validate_file_path(args, errors)

        if "old_string" not in args:
            errors.append("'old_string' is required")
        elif not isinstance(args["old_string"], str) or not args["old_string"]:
            errors.append("'old_string' must be a non-empty string")

        if "new_string" not in args:
            errors.append("'new_string' is required")
        elif not isinstance(args["new_string"], str):
            errors.append("'new_string' must be a string")

        if "expected_replacements" in args:
            value = args["expected_replacements"]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                errors.append("'expected_replacements' must be a positive integer")

        return errors

    def create_invocation(self, args: dict[str, Any], settings) -> ReplaceInvocation:
        return ReplaceInvocation(self, args, settings)
