"""JSON helpers for events on their way to a writer."""

import json
import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

logger = logging.getLogger(__name__)


def sanitize_for_json(obj: Any) -> Any:
    """
    Turn an event payload into plain JSON data.

    OpenAI SDK objects (pydantic models) are dumped. Binary payloads such as
    generated speech are summarized by size rather than inlined. Anything
    else unknown becomes its ``repr``.
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, Mapping):
        return {str(k): sanitize_for_json(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set, frozenset)):
        return [sanitize_for_json(item) for item in obj]

    if isinstance(obj, (bytes, bytearray)):
        return f"<{len(obj)} bytes>"

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        try:
            dumped = model_dump()
        except Exception as e:
            logger.debug(f"model_dump failed for {type(obj).__name__}: {e}")
        else:
            if isinstance(dumped, Mapping):
                return sanitize_for_json(dumped)

    return repr(obj)


def safe_json_dumps(obj: Any, **kwargs: Any) -> str:
    """``json.dumps`` for payloads that may still hold SDK objects."""
    return json.dumps(sanitize_for_json(obj), **kwargs)
