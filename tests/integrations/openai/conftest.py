"""Fake OpenAI clients and canned payloads for the adapter tests."""

import functools
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from tracewire.observability.context import new_trace_ctx
from tracewire.observability.span import SpanToken


class FakeEndpoint:
    """Records its calls and returns (or raises) a canned value."""

    def __init__(self, response: Any = None, error: Optional[BaseException] = None):
        self.response = response
        self.error = error
        self.calls: list[tuple[tuple, dict]] = []

    async def _respond(self, args, kwargs):
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


class FakeCompletions(FakeEndpoint):
    async def create(self, *args, **kwargs):
        return await self._respond(args, kwargs)

    def list(self):
        return ["stored-completion"]


class FakeChat:
    def __init__(self, completions: FakeCompletions):
        self.completions = completions


class FakeResponses(FakeEndpoint):
    async def create(self, *args, **kwargs):
        return await self._respond(args, kwargs)


class FakeImages(FakeEndpoint):
    async def generate(self, *args, **kwargs):
        return await self._respond(args, kwargs)


class FakeAudioEndpoint(FakeEndpoint):
    async def create(self, *args, **kwargs):
        return await self._respond(args, kwargs)


class FakeAudio:
    def __init__(self):
        self.speech = FakeAudioEndpoint(response=b"mp3-bytes")
        self.transcriptions = FakeAudioEndpoint(response={"text": "hello there"})
        self.translations = FakeAudioEndpoint(response={"text": "bonjour"})


class FakeModels:
    async def list(self):
        return ["gpt-4o-mini"]


class FakeAsyncOpenAI:
    """Shaped like ``openai.AsyncOpenAI`` as far as the adapter is concerned."""

    def __init__(self, response: Any = None, error: Optional[BaseException] = None):
        self.api_key = "sk-test"
        self.base_url = "https://api.openai.test/v1"
        self.chat = FakeChat(FakeCompletions(response=response, error=error))
        self.responses = FakeResponses()
        self.images = FakeImages(response={"created": 1700000000, "data": [{"url": "https://img.test/cat.png"}]})
        self.audio = FakeAudio()
        self.models = FakeModels()
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True

    def __repr__(self):
        return "<FakeAsyncOpenAI>"


class SyncCompletions(FakeEndpoint):
    def create(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


class SyncImages(FakeEndpoint):
    def generate(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self.response


class FakeOpenAI:
    """Shaped like the synchronous ``openai.OpenAI`` client."""

    def __init__(self, response: Any = None, error: Optional[BaseException] = None):
        self.api_key = "sk-test"
        self.chat = FakeChat(SyncCompletions(response=response, error=error))
        self.images = SyncImages(response={"created": 1700000000, "data": []})
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True


def required_args(func):
    """Plain decorator around a coroutine function, as the SDK applies to ``create``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


class DecoratedCompletions(FakeEndpoint):
    @required_args
    async def create(self, *args, **kwargs):
        return await self._respond(args, kwargs)


class SlottedClient:
    """A client that cannot be weakly referenced."""

    __slots__ = ("chat",)

    def __init__(self, response: Any = None):
        self.chat = FakeChat(FakeCompletions(response=response))


class FinalCompletionStream:
    """A stream exposing ``get_final_completion()`` like the SDK's stream helpers."""

    def __init__(self, final: Any = None, error: Optional[BaseException] = None, awaitable: bool = True):
        self._final = final
        self._error = error
        self._awaitable = awaitable
        self.final_calls = 0

    def get_final_completion(self):
        self.final_calls += 1
        if not self._awaitable:
            return self._final
        return self._resolve()

    async def _resolve(self):
        if self._error is not None:
            raise self._error
        return self._final


class ChunkStream:
    """An async-iterable chunk stream that can be split with ``tee()``."""

    def __init__(self, chunks: list, tee_error: Optional[BaseException] = None):
        self.chunks = chunks
        self.tee_error = tee_error

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk

    def tee(self):
        if self.tee_error is not None:
            raise self.tee_error
        return ChunkStream(self.chunks), ChunkStream(self.chunks)


class PlainStream:
    """Async-iterable without tee(), like the SDK's AsyncStream."""

    def __init__(self, chunks: list, error: Optional[BaseException] = None):
        self.chunks = chunks
        self.error = error
        self.response = {"status_code": 200}
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


class SyncChunkStream:
    """Iterable chunk stream like the SDK's sync ``Stream``."""

    def __init__(self, chunks: list, error: Optional[BaseException] = None):
        self.chunks = chunks
        self.error = error
        self.response = {"status_code": 200}
        self.closed = False

    def __iter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


def make_chat_completion(
    content: Optional[str] = "It is sunny in Paris.",
    tool_calls: Optional[list] = None,
    usage: Optional[dict] = None,
    finish_reason: str = "stop",
    model: str = "gpt-4o-mini-2024-07-18",
) -> dict[str, Any]:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    completion: dict[str, Any] = {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [{"index": 0, "finish_reason": finish_reason, "message": message}],
    }
    if usage is not None:
        completion["usage"] = usage
    return completion


WEATHER_TOOL_CALL = {
    "id": "call_1",
    "type": "function",
    "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
}

USAGE = {"prompt_tokens": 12, "completion_tokens": 7, "total_tokens": 19}

CHUNKS = [
    {"id": "chatcmpl-s1", "model": "gpt-4o-mini", "created": 1700000001,
     "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hello"}, "finish_reason": None}]},
    {"id": "chatcmpl-s1", "model": "gpt-4o-mini", "created": 1700000001,
     "choices": [{"index": 0, "delta": {"content": " world"}, "finish_reason": None}]},
    {"id": "chatcmpl-s1", "model": "gpt-4o-mini", "created": 1700000001,
     "choices": [{"index": 0, "delta": {"tool_calls": [
         {"index": 0, "id": "call_9", "type": "function", "function": {"name": "lookup", "arguments": '{"q": '}},
     ]}, "finish_reason": None}]},
    {"id": "chatcmpl-s1", "model": "gpt-4o-mini", "created": 1700000001,
     "choices": [{"index": 0, "delta": {"tool_calls": [
         {"index": 0, "function": {"arguments": '"x"}'}},
     ]}, "finish_reason": "tool_calls"}]},
    {"id": "chatcmpl-s1", "model": "gpt-4o-mini", "created": 1700000001, "choices": [],
     "usage": {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8}},
]


@pytest.fixture
def fake_client():
    """Factory for fake async clients."""
    return FakeAsyncOpenAI


@pytest.fixture
def sync_client():
    """Factory for fake sync clients."""
    return FakeOpenAI


@pytest.fixture
def chat_completion():
    """Factory for chat completion payloads."""
    return make_chat_completion


@pytest.fixture
def weather_tool_call():
    return dict(WEATHER_TOOL_CALL)


@pytest.fixture
def usage_payload():
    return dict(USAGE)


@pytest.fixture
def final_stream():
    return FinalCompletionStream


@pytest.fixture
def chunk_stream():
    return ChunkStream


@pytest.fixture
def plain_stream():
    return PlainStream


@pytest.fixture
def sync_chunk_stream():
    return SyncChunkStream


@pytest.fixture
def stream_chunks():
    return list(CHUNKS)


@pytest.fixture
def mock_recorder():
    """Recorder double whose async methods are AsyncMocks."""
    recorder = MagicMock()
    recorder.new_context.side_effect = lambda: new_trace_ctx()
    recorder.span_start.side_effect = lambda operation, attrs=None: SpanToken(
        operation=operation, ctx=new_trace_ctx(), attrs=dict(attrs or {})
    )
    recorder.span_end = AsyncMock()
    recorder.message = AsyncMock()
    recorder.tool_call = AsyncMock()
    recorder.usage = AsyncMock()
    recorder.tool_result = AsyncMock()
    return recorder


@pytest.fixture
def decorated_completions():
    return DecoratedCompletions


@pytest.fixture
def slotted_client():
    return SlottedClient
