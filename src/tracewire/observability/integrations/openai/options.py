"""
Option resolution for the OpenAI adapter.
"""
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Union

from ....errors import UnknownOptionError


@dataclass(frozen=True)
class ResolvedOptions:
    """
    Flattened adapter configuration, built once per ``instrument()`` call.

    Attributes:
        provider: Provider label attached to every event. Override it when
            OpenAI is proxied behind another service.
        operation_name: Operation recorded on chat ``tool_result``/``span`` events.
        emit_prompts: Emit ``message`` events for the request messages.
        emit_responses: Emit ``message`` events for assistant completions.
        emit_tool_calls: Emit ``tool_call`` events for requested tool/function calls.
        emit_usage: Emit ``usage`` events when token accounting is reported.
        emit_tool_results: Emit one ``tool_result`` event per call outcome.
        emit_span: Open and close a timing span around each call.
        enable_responses_api: Instrument ``client.responses.create``.
        enable_images_api: Instrument ``client.images.generate``.
        enable_audio_api: Instrument ``client.audio.{speech,transcriptions,translations}.create``.
    """
    provider: str = "openai"
    operation_name: str = "openai.chat.completions.create"
    emit_prompts: bool = True
    emit_responses: bool = True
    emit_tool_calls: bool = True
    emit_usage: bool = True
    emit_tool_results: bool = True
    emit_span: bool = True
    enable_responses_api: bool = False
    enable_images_api: bool = False
    enable_audio_api: bool = False


DEFAULT_OPTIONS = ResolvedOptions()

_OPTION_NAMES = frozenset(f.name for f in fields(ResolvedOptions))


def resolve_options(
    options: Optional[Union[ResolvedOptions, Mapping[str, Any]]] = None,
    **overrides: Any,
) -> ResolvedOptions:
    """Overlay caller options (a mapping and/or keyword overrides) on the defaults."""
    if isinstance(options, ResolvedOptions):
        base = options
        merged: dict[str, Any] = {}
    else:
        base = DEFAULT_OPTIONS
        merged = dict(options or {})
    merged.update(overrides)

    unknown = [name for name in merged if name not in _OPTION_NAMES]
    if unknown:
        raise UnknownOptionError(unknown)

    # None means "not supplied", mirroring an absent key
    merged = {k: v for k, v in merged.items() if v is not None}
    return replace(base, **merged)
