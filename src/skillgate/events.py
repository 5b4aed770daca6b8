"""Canonical event model and hook payload parsing.

Payloads arrive as one JSON object on stdin:

    prompt:   {"session_id": "...", "prompt": "..."}
    file-op:  {"session_id": "...", "tool_name": "Edit",
               "tool_input": {"file_path": "..."}}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from .enforcement_types import FILE_MODIFY_TOOLS, FileOperation
from .errors import InputError
from .path_utils import relative_to_project

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptEvent:
    """A user prompt about to be sent to the assistant."""
    session_id: str
    text: str


@dataclass(frozen=True)
class FileOpEvent:
    """A request to edit or write one file."""
    session_id: str
    operation: FileOperation
    file_path: str  # Relative to the project when inside it
    content: Optional[str] = None  # Snapshot; None when not read or unavailable


Event = Union[PromptEvent, FileOpEvent]


def parse_payload(raw: str) -> dict:
    """Decode the single JSON object a hook receives on stdin."""
    if not raw or not raw.strip():
        raise InputError("empty hook payload")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputError(f"malformed hook payload: {e}") from e
    if not isinstance(payload, dict):
        raise InputError("hook payload must be a JSON object")
    return payload


def _require_str(payload: dict, key: str, where: str = "payload") -> str:
    value = payload.get(key)
    if value is None:
        raise InputError(f"missing required field '{key}' in {where}")
    if not isinstance(value, str):
        raise InputError(f"field '{key}' in {where} must be a string")
    return value


def prompt_event_from_payload(payload: Any) -> PromptEvent:
    if not isinstance(payload, dict):
        raise InputError("hook payload must be a JSON object")
    return PromptEvent(
        session_id=_require_str(payload, "session_id"),
        text=_require_str(payload, "prompt"),
    )


def is_file_op_payload(payload: dict) -> bool:
    """True when tool_name names a file-affecting tool this adapter evaluates."""
    return payload.get("tool_name") in FILE_MODIFY_TOOLS


def read_snapshot(path: Path) -> Optional[str]:
    """Current file contents, or None when the file cannot be read."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Could not read %s for content matching: %s", path, e)
        return None


def file_op_event_from_payload(
    payload: Any,
    project_dir: Optional[Path] = None,
    read_content: bool = False,
) -> FileOpEvent:
    """Build a FileOpEvent.

    Args:
        payload: Decoded hook payload
        project_dir: Project root; paths under it become relative
        read_content: Load the file's current contents as the snapshot.
            A Write to a file that does not exist yet uses the content
            being written instead.

    Raises:
        InputError: payload is missing session_id, tool_name or
            tool_input.file_path, or tool_name is not a file operation
    """
    if not isinstance(payload, dict):
        raise InputError("hook payload must be a JSON object")

    session_id = _require_str(payload, "session_id")
    tool_name = _require_str(payload, "tool_name")
    try:
        operation = FileOperation(tool_name)
    except ValueError:
        raise InputError(f"tool '{tool_name}' is not a file operation") from None

    tool_input = payload.get("tool_input")
    if not isinstance(tool_input, dict):
        raise InputError("missing required object 'tool_input' in payload")
    raw_path = _require_str(tool_input, "file_path", where="tool_input")
    if not raw_path.strip():
        raise InputError("field 'file_path' in tool_input is empty")

    content = None
    if read_content:
        disk_path = Path(raw_path)
        if not disk_path.is_absolute() and project_dir is not None:
            disk_path = project_dir / disk_path
        content = read_snapshot(disk_path)
        if content is None and operation == FileOperation.WRITE:
            written = tool_input.get("content")
            if isinstance(written, str):
                content = written

    return FileOpEvent(
        session_id=session_id,
        operation=operation,
        file_path=relative_to_project(raw_path, project_dir),
        content=content,
    )
