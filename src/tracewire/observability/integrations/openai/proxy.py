"""
Attribute-forwarding proxies used to intercept parts of an OpenAI client.

A proxy never copies or mutates its target. Anything it does not intercept
is read from, written to, or deleted on the target itself.
"""
import inspect
from collections.abc import Mapping
from typing import Any

from .options import ResolvedOptions


class DelegatingProxy:
    """
    Forwards attribute access to ``target``.

    Subclasses override ``_tw_intercept`` to replace selected attributes
    with instrumented counterparts. Replacements are built on every access,
    so changes made to the target later are always observed.
    """

    def __init__(self, target: Any, recorder: Any, opts: ResolvedOptions):
        object.__setattr__(self, "_tw_target", target)
        object.__setattr__(self, "_tw_recorder", recorder)
        object.__setattr__(self, "_tw_options", opts)

    def _tw_intercept(self, name: str, value: Any) -> Any:
        return value

    # isinstance(proxy, type(target)) holds; type(proxy) stays the proxy class
    @property
    def __class__(self):
        return type(self._tw_target)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_tw_"):
            raise AttributeError(name)
        value = getattr(self._tw_target, name)
        if value is None:
            return value
        return self._tw_intercept(name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._tw_target, name, value)

    def __delattr__(self, name: str) -> None:
        delattr(self._tw_target, name)

    def __dir__(self):
        return dir(self._tw_target)

    def __repr__(self) -> str:
        return repr(self._tw_target)


def request_params(args: tuple, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Request parameters from a leading mapping argument and/or keyword arguments."""
    params: dict[str, Any] = {}
    if args and isinstance(args[0], Mapping):
        params.update(args[0])
    params.update(kwargs)
    return params


async def call_original(original: Any, args: tuple, kwargs: dict[str, Any]) -> Any:
    """Invoke ``original`` with the caller's arguments, awaiting the result if needed."""
    result = original(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
