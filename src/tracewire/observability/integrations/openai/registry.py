"""
Identity-keyed side table memoizing the wrapper built for each client instance.

Nothing is stored on the client itself, so code inspecting the client's own
attributes is unaffected. Entries hold the client weakly and are dropped when
it is garbage collected. Clients that cannot be weakly referenced are held
strongly instead, for the life of the process.
"""
import logging
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class _StrongRef:
    """Same call interface as ``weakref.ref``, but keeps its referent alive."""

    __slots__ = ("_obj",)

    def __init__(self, obj: Any):
        self._obj = obj

    def __call__(self) -> Any:
        return self._obj


@dataclass
class _Entry:
    client_ref: Callable[[], Any]
    proxy_ref: weakref.ref
    recorder: Any
    options: Any


_entries: dict[int, _Entry] = {}


def _forget(key: int, client_ref: weakref.ref) -> None:
    entry = _entries.get(key)
    if entry is not None and entry.client_ref is client_ref:
        del _entries[key]


def _client_ref(client: Any, key: int) -> Callable[[], Any]:
    try:
        return weakref.ref(client, lambda ref, key=key: _forget(key, ref))
    except TypeError:
        logger.debug(f"{type(client).__name__} does not support weak references; holding it strongly")
        return _StrongRef(client)


def get_existing_proxy(client: Any, rebuild: Optional[Callable[[Any, Any, Any], Any]] = None) -> Optional[Any]:
    """
    Return the wrapper memoized for ``client``, or None.

    When the wrapper itself was collected while the client lives on and
    ``rebuild`` is given, a new wrapper is built from the first recorder and
    options, so later configuration is still never applied.
    """
    entry = _entries.get(id(client))
    if entry is None or entry.client_ref() is not client:
        return None

    proxy = entry.proxy_ref()
    if proxy is None and rebuild is not None:
        proxy = rebuild(client, entry.recorder, entry.options)
        entry.proxy_ref = weakref.ref(proxy)
        logger.debug(f"Rebuilt collected wrapper for {type(client).__name__} instance")
    return proxy


def mark_proxy(client: Any, proxy: Any, recorder: Any, options: Any) -> None:
    """Associate ``proxy`` with ``client``. The first association wins."""
    key = id(client)
    existing = _entries.get(key)
    if existing is not None and existing.client_ref() is client:
        return

    _entries[key] = _Entry(
        client_ref=_client_ref(client, key),
        proxy_ref=weakref.ref(proxy),
        recorder=recorder,
        options=options,
    )
