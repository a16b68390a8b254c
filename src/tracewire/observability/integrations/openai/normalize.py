"""
Coercion of OpenAI message content and roles into normalized event fields.
"""
import json
from dataclasses import dataclass
from typing import Any

MESSAGE_ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class NormalizedContent:
    content: str
    format: str = "text"


def to_message_role(value: Any, fallback: str = "user") -> str:
    """Return ``value`` if it is a recognized message role, else ``fallback``."""
    return value if isinstance(value, str) and value in MESSAGE_ROLES else fallback


def _json_or_str(value: Any) -> NormalizedContent:
    try:
        return NormalizedContent(json.dumps(value), "json")
    except (TypeError, ValueError):
        return NormalizedContent(_best_effort_str(value), "json")


def _best_effort_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<{type(value).__name__} object>"


def normalize_content(content: Any) -> NormalizedContent:
    """
    Normalize chat content into a string plus a format hint.

    Strings pass through as text, structured parts (lists, dicts, pydantic
    models) become JSON. Never raises.
    """
    if isinstance(content, str):
        return NormalizedContent(content, "text")

    if content is None:
        return NormalizedContent("", "text")

    if isinstance(content, (list, tuple, dict)):
        return _json_or_str(content)

    if hasattr(content, "model_dump"):
        try:
            dumped = content.model_dump()
        except Exception:
            return NormalizedContent(_best_effort_str(content), "json")
        return _json_or_str(dumped)

    return NormalizedContent(_best_effort_str(content), "text")


def safe_parse_json(value: Any) -> Any:
    """Parse a JSON string (tool arguments), returning the input unchanged on failure."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value
