"""
The canonical completion shape every emitter works on.

OpenAI payloads arrive as SDK objects (pydantic models), plain dicts from
OpenAI-compatible servers, or ``responses`` results with a multi-part
``output`` array. They are resolved into ``CompletionLike`` once, here.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


def get_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping or an attribute-style object."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


@dataclass(frozen=True)
class ToolCall:
    id: Optional[str] = None
    type: str = "function"
    name: Optional[str] = None
    arguments: Any = None


@dataclass(frozen=True)
class FunctionCall:
    name: Optional[str] = None
    arguments: Any = None


@dataclass(frozen=True)
class ChatMessage:
    role: Optional[str] = None
    content: Any = None
    name: Optional[str] = None
    tool_calls: tuple = ()
    function_call: Optional[FunctionCall] = None


@dataclass(frozen=True)
class Choice:
    index: Optional[int] = None
    finish_reason: Optional[str] = None
    message: Optional[ChatMessage] = None


@dataclass(frozen=True)
class Usage:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    def to_dict(self) -> dict[str, Optional[int]]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class CompletionLike:
    id: Optional[str] = None
    model: Optional[str] = None
    created: Optional[int] = None
    choices: tuple = field(default_factory=tuple)
    usage: Optional[Usage] = None


def _coerce_usage(raw: Any) -> Optional[Usage]:
    if raw is None:
        return None
    # chat completions report prompt/completion tokens, responses report input/output
    input_tokens = get_field(raw, "prompt_tokens")
    if input_tokens is None:
        input_tokens = get_field(raw, "input_tokens")
    output_tokens = get_field(raw, "completion_tokens")
    if output_tokens is None:
        output_tokens = get_field(raw, "output_tokens")
    total_tokens = get_field(raw, "total_tokens")
    if input_tokens is None and output_tokens is None and total_tokens is None:
        return None
    return Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total_tokens)


def _coerce_tool_calls(raw: Any) -> tuple:
    if not isinstance(raw, (list, tuple)):
        return ()
    calls = []
    for call in raw:
        if call is None:
            continue
        function = get_field(call, "function")
        calls.append(ToolCall(
            id=get_field(call, "id"),
            type=get_field(call, "type", "function") or "function",
            name=get_field(function, "name"),
            arguments=get_field(function, "arguments"),
        ))
    return tuple(calls)


def coerce_message(raw: Any) -> Optional[ChatMessage]:
    if raw is None:
        return None
    function_call = get_field(raw, "function_call")
    return ChatMessage(
        role=get_field(raw, "role"),
        content=get_field(raw, "content"),
        name=get_field(raw, "name"),
        tool_calls=_coerce_tool_calls(get_field(raw, "tool_calls")),
        function_call=FunctionCall(
            name=get_field(function_call, "name"),
            arguments=get_field(function_call, "arguments"),
        ) if function_call is not None else None,
    )


def from_chat_completion(raw: Any) -> Optional[CompletionLike]:
    """Resolve a chat completion payload. Returns None for a missing payload."""
    if raw is None:
        return None
    if isinstance(raw, CompletionLike):
        return raw

    raw_choices = get_field(raw, "choices")
    choices = []
    if isinstance(raw_choices, (list, tuple)):
        for choice in raw_choices:
            if choice is None:
                continue
            choices.append(Choice(
                index=get_field(choice, "index"),
                finish_reason=get_field(choice, "finish_reason"),
                message=coerce_message(get_field(choice, "message")),
            ))

    return CompletionLike(
        id=get_field(raw, "id"),
        model=get_field(raw, "model"),
        created=get_field(raw, "created"),
        choices=tuple(choices),
        usage=_coerce_usage(get_field(raw, "usage")),
    )


def _output_part_text(part: Any) -> str:
    if isinstance(part, str):
        return part

    part_type = get_field(part, "type")
    text = get_field(part, "text")
    if part_type in ("output_text", "text") and isinstance(text, str):
        return text

    content = get_field(part, "content")
    if isinstance(content, str):
        return content
    # message items nest their own list of output_text parts
    if part_type == "message" and isinstance(content, (list, tuple)):
        return "".join(_output_part_text(p) for p in content)

    return ""


def from_responses_result(raw: Any) -> Optional[CompletionLike]:
    """
    Resolve a ``responses.create`` result into a single-choice completion.

    Multi-part ``output`` arrays are flattened to their text, falling back
    to ``output_text``. Returns None when the payload is missing or cannot
    be read.
    """
    if raw is None:
        return None

    try:
        output = get_field(raw, "output")
        if isinstance(output, (list, tuple)) and output:
            text = "".join(_output_part_text(part) for part in output)
        else:
            text = get_field(raw, "output_text") or ""

        created = get_field(raw, "created") or get_field(raw, "created_at") or int(time.time())
        return CompletionLike(
            id=get_field(raw, "id"),
            model=get_field(raw, "model"),
            created=int(created),
            choices=(
                Choice(
                    index=0,
                    finish_reason=get_field(raw, "status") or "stop",
                    message=ChatMessage(role="assistant", content=text),
                ),
            ),
            usage=_coerce_usage(get_field(raw, "usage")),
        )
    except Exception as e:
        logger.debug(f"[OpenAI] Could not coerce responses payload of type {type(raw).__name__}: {e}")
        return None
