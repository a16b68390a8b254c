"""
OpenAI client instrumentation.

    import openai
    import tracewire

    tracer = tracewire.init()
    client = tracewire.instrument(openai.AsyncOpenAI(), tracer)

    await client.chat.completions.create(model="gpt-4o-mini", messages=[...])

The returned wrapper behaves like the client. Each call to
``chat.completions.create`` (and, when enabled, ``responses.create``,
``images.generate`` and ``audio.*.create``) records its events on the
recorder. Results and exceptions reach the caller unchanged.
"""
import logging
from typing import Any, Mapping, Optional, Union

from .auxiliary import AudioProxy, ImagesProxy, ResponsesProxy
from .chat import ChatProxy
from .options import ResolvedOptions, resolve_options
from .proxy import DelegatingProxy
from .registry import get_existing_proxy, mark_proxy

logger = logging.getLogger(__name__)


class InstrumentedClient(DelegatingProxy):
    """Top-level wrapper around an OpenAI client instance."""

    def _tw_intercept(self, name: str, value: Any) -> Any:
        opts = self._tw_options
        if name == "chat":
            return ChatProxy(value, self._tw_recorder, opts)
        if name == "responses" and opts.enable_responses_api:
            return ResponsesProxy(value, self._tw_recorder, opts)
        if name == "images" and opts.enable_images_api:
            return ImagesProxy(value, self._tw_recorder, opts)
        if name == "audio" and opts.enable_audio_api:
            return AudioProxy(value, self._tw_recorder, opts)
        return value

    def _tw_same_or_result(self, result: Any) -> Any:
        return self if result is self._tw_target else result

    async def __aenter__(self):
        return self._tw_same_or_result(await self._tw_target.__aenter__())

    async def __aexit__(self, exc_type, exc, tb):
        return await self._tw_target.__aexit__(exc_type, exc, tb)

    def __enter__(self):
        return self._tw_same_or_result(self._tw_target.__enter__())

    def __exit__(self, exc_type, exc, tb):
        return self._tw_target.__exit__(exc_type, exc, tb)


def _build(client: Any, recorder: Any, opts: ResolvedOptions) -> InstrumentedClient:
    return InstrumentedClient(client, recorder, opts)


def instrument(
    client: Any,
    recorder: Any,
    options: Optional[Union[ResolvedOptions, Mapping[str, Any]]] = None,
    **overrides: Any,
) -> Any:
    """
    Wrap ``client`` so its API calls are recorded on ``recorder``.

    Args:
        client: An ``openai.AsyncOpenAI``- or ``openai.OpenAI``-shaped client.
        recorder: Any object implementing ``EventRecorder`` (e.g. a ``Tracer``).
        options: ``ResolvedOptions`` or a mapping of option names to values.
        **overrides: Individual options, applied on top of ``options``.

    Returns:
        The wrapper for ``client``. Instrumenting the same client again returns
        the same wrapper; the recorder and options of the first call are kept.

    Raises:
        UnknownOptionError: If an option name is not recognised.
    """
    opts = resolve_options(options, **overrides)

    existing = get_existing_proxy(client, rebuild=_build)
    if existing is not None:
        logger.debug(f"[OpenAI] {type(client).__name__} already instrumented, reusing wrapper")
        return existing

    proxy = _build(client, recorder, opts)
    mark_proxy(client, proxy, recorder, opts)
    logger.debug(f"[OpenAI] Instrumented {type(client).__name__} (provider={opts.provider})")
    return proxy
