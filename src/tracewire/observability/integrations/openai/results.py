"""
Compact, serializable summaries of completions and errors for tool_result events.
"""
import json
import traceback
from typing import Any, Optional

from .completion import CompletionLike


def summarize_result(result: Optional[CompletionLike]) -> Optional[dict[str, Any]]:
    """
    Produce a reduced snapshot of a completion.

    Message text is left out on purpose; it is already recorded as message
    events. Returns None when there is no completion.
    """
    if result is None:
        return None
    return {
        "id": result.id,
        "model": result.model,
        "created": result.created,
        "choices": [
            {
                "index": choice.index,
                "finish_reason": choice.finish_reason,
                "has_message": choice.message is not None,
            }
            for choice in result.choices
        ],
        "usage": result.usage.to_dict() if result.usage is not None else None,
    }


def serialize_error(err: Any) -> dict[str, Any]:
    """Convert an arbitrary raised value into a structured, serializable description."""
    if isinstance(err, BaseException):
        return {
            "name": type(err).__name__,
            "message": to_error_message(err),
            "stack": "".join(traceback.format_exception(type(err), err, err.__traceback__)),
        }
    return {"message": to_error_message(err)}


def to_error_message(err: Any) -> str:
    """Best human-readable message for ``err``. Never raises."""
    try:
        if isinstance(err, BaseException):
            return str(err)
        if isinstance(err, str):
            return err
        return json.dumps(err)
    except Exception:
        try:
            return str(err)
        except Exception:
            return f"<{type(err).__name__} object>"
