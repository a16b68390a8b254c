"""
Translation of OpenAI requests and completions into recorder events.

Each helper covers one stage of a call (prompts, completion artifacts,
outcome) and checks its own emit switch, so call sites stay linear.
"""
import logging
from typing import Any, Optional

from ...context import TraceContext
from .completion import Choice, CompletionLike, get_field
from .normalize import NormalizedContent, normalize_content, safe_parse_json, to_message_role
from .options import ResolvedOptions
from .results import serialize_error, summarize_result

logger = logging.getLogger(__name__)


def _message_payload(
    *,
    provider: str,
    model: Optional[str],
    role: str,
    normalized: NormalizedContent,
    ctx: TraceContext,
    request_id: Optional[str] = None,
    name: Optional[str] = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "provider": provider,
        "model": model,
        "role": role,
        "content": normalized.content,
        "format": normalized.format,
        "ctx": ctx,
    }
    if request_id:
        payload["request_id"] = request_id
    if name:
        payload["ext"] = {"name": name}
    return payload


async def emit_prompt_messages(
    recorder: Any,
    opts: ResolvedOptions,
    messages: Any,
    ctx: TraceContext,
    model: Optional[str] = None,
) -> None:
    """Emit one ``message`` event per request message, in input order."""
    if not opts.emit_prompts or not isinstance(messages, (list, tuple)):
        return

    for msg in messages:
        await recorder.message(**_message_payload(
            provider=opts.provider,
            model=model,
            role=to_message_role(get_field(msg, "role"), "user"),
            normalized=normalize_content(get_field(msg, "content")),
            ctx=ctx,
            name=get_field(msg, "name"),
        ))


async def emit_completion_artifacts(
    recorder: Any,
    opts: ResolvedOptions,
    completion: Optional[CompletionLike],
    ctx: TraceContext,
    model: Optional[str] = None,
) -> None:
    """Emit assistant messages, tool calls and usage derived from a completion."""
    if completion is None:
        return

    resolved_model = completion.model or model
    request_id = completion.id

    for choice in completion.choices:
        await _emit_choice(recorder, opts, choice, ctx, resolved_model, request_id)

    usage = completion.usage
    if opts.emit_usage and usage is not None:
        payload: dict[str, Any] = {
            "provider": opts.provider,
            "model": resolved_model,
            "request_id": request_id,
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "ctx": ctx,
        }
        if usage.total_tokens is not None:
            payload["ext"] = {"total_tokens": usage.total_tokens}
        await recorder.usage(**payload)


async def _emit_choice(
    recorder: Any,
    opts: ResolvedOptions,
    choice: Choice,
    ctx: TraceContext,
    resolved_model: Optional[str],
    request_id: Optional[str],
) -> None:
    message = choice.message
    if message is None:
        return

    if opts.emit_responses:
        normalized = normalize_content(message.content)
        if normalized.content:
            await recorder.message(**_message_payload(
                provider=opts.provider,
                model=resolved_model,
                role=to_message_role(message.role, "assistant"),
                normalized=normalized,
                ctx=ctx,
                request_id=request_id,
            ))

    if not opts.emit_tool_calls:
        return

    for call in message.tool_calls:
        if not call.name:
            continue
        await recorder.tool_call(
            provider=opts.provider,
            model=resolved_model,
            tool=call.name,
            input=safe_parse_json(call.arguments),
            ctx=ctx,
            request_id=request_id,
            ext={"id": call.id, "finish_reason": choice.finish_reason},
        )

    # legacy single function_call, reported alongside any tool_calls
    legacy = message.function_call
    if legacy is not None and legacy.name:
        await recorder.tool_call(
            provider=opts.provider,
            model=resolved_model,
            tool=legacy.name,
            input=safe_parse_json(legacy.arguments),
            ctx=ctx,
            request_id=request_id,
            ext={"finish_reason": choice.finish_reason},
        )


async def emit_success_result(
    recorder: Any,
    opts: ResolvedOptions,
    completion: Optional[CompletionLike],
    ctx: TraceContext,
    latency_ms: int,
    model: Optional[str] = None,
    tool: Optional[str] = None,
) -> None:
    """Emit the successful ``tool_result`` for a call, summarizing its completion."""
    if not opts.emit_tool_results:
        return

    await recorder.tool_result(
        provider=opts.provider,
        model=(completion.model if completion is not None else None) or model,
        request_id=completion.id if completion is not None else None,
        tool=tool or opts.operation_name,
        output=summarize_result(completion),
        ok=True,
        latency_ms=latency_ms,
        ctx=ctx,
    )


async def emit_failure_result(
    recorder: Any,
    opts: ResolvedOptions,
    error: Any,
    ctx: TraceContext,
    latency_ms: int,
    model: Optional[str] = None,
    tool: Optional[str] = None,
) -> None:
    """Emit the failed ``tool_result`` describing ``error``. No request id is known."""
    if not opts.emit_tool_results:
        return

    await recorder.tool_result(
        provider=opts.provider,
        model=model,
        tool=tool or opts.operation_name,
        output=serialize_error(error),
        ok=False,
        latency_ms=latency_ms,
        ctx=ctx,
    )


async def emit_auxiliary_success(
    recorder: Any,
    opts: ResolvedOptions,
    tool: str,
    ctx: TraceContext,
    latency_ms: int,
    model: Optional[str] = None,
    completion: Optional[CompletionLike] = None,
) -> None:
    """Successful ``tool_result`` for responses/images/audio operations."""
    await emit_success_result(recorder, opts, completion, ctx, latency_ms, model=model, tool=tool)
