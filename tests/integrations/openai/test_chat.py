"""Tests for chat.completions.create instrumentation."""

import pytest

from tracewire.errors import UnknownOptionError
from tracewire.observability.integrations.openai import InstrumentedClient, instrument
from tracewire.observability.tracer import Tracer
from tracewire.observability.writer import MemoryEventWriter

MESSAGES = [
    {"role": "system", "content": "You are a weather bot."},
    {"role": "user", "content": "Weather in Paris?", "name": "alice"},
]


def _ctx_pairs(events):
    return {(e["ctx"]["trace_id"], e["ctx"]["span_id"]) for e in events}


@pytest.mark.asyncio
async def test_chat_call_records_full_event_set(tracer, memory_writer, fake_client, chat_completion, weather_tool_call, usage_payload):
    """A tool call with usage yields prompts, assistant message, tool call, usage, result and span."""
    response = chat_completion(content="Let me check.", tool_calls=[weather_tool_call],
                               usage=usage_payload, finish_reason="tool_calls")
    client = instrument(fake_client(response=response), tracer)

    result = await client.chat.completions.create(model="gpt-4o-mini", messages=MESSAGES)

    assert result is response
    events = memory_writer.events
    assert [e["type"] for e in events] == [
        "message", "message", "message", "tool_call", "usage", "tool_result", "span",
    ]
    assert len(_ctx_pairs(events)) == 1

    system, user, assistant = memory_writer.of_type("message")
    assert (system["role"], system["content"], system["format"]) == ("system", "You are a weather bot.", "text")
    assert user["ext"] == {"name": "alice"}
    assert user["model"] == "gpt-4o-mini"
    assert assistant["role"] == "assistant"
    assert assistant["content"] == "Let me check."
    assert assistant["request_id"] == "chatcmpl-123"
    assert assistant["model"] == "gpt-4o-mini-2024-07-18"

    tool_call = memory_writer.of_type("tool_call")[0]
    assert tool_call["tool"] == "get_weather"
    assert tool_call["input"] == {"city": "Paris"}
    assert tool_call["ext"] == {"id": "call_1", "finish_reason": "tool_calls"}

    usage = memory_writer.of_type("usage")[0]
    assert (usage["input_tokens"], usage["output_tokens"]) == (12, 7)
    assert usage["ext"] == {"total_tokens": 19}

    tool_result = memory_writer.of_type("tool_result")[0]
    assert tool_result["ok"] is True
    assert tool_result["tool"] == "openai.chat.completions.create"
    assert tool_result["request_id"] == "chatcmpl-123"
    assert isinstance(tool_result["latency_ms"], int)
    assert tool_result["output"] == {
        "id": "chatcmpl-123",
        "model": "gpt-4o-mini-2024-07-18",
        "created": 1700000000,
        "choices": [{"index": 0, "finish_reason": "tool_calls", "has_message": True}],
        "usage": {"input_tokens": 12, "output_tokens": 7, "total_tokens": 19},
    }

    span = memory_writer.of_type("span")[0]
    assert span["operation"] == "openai.chat.completions.create"
    assert span["status"] == "ok"
    assert span["provider"] == "openai"
    assert span["attrs"]["stream"] is False
    assert span["attrs"]["model"] == "gpt-4o-mini-2024-07-18"
    assert span["attrs"]["latency_ms"] == tool_result["latency_ms"]


@pytest.mark.asyncio
async def test_no_usage_or_tool_call_events_when_absent(tracer, memory_writer, fake_client, chat_completion):
    client = instrument(fake_client(response=chat_completion()), tracer)

    await client.chat.completions.create(model="gpt-4o-mini", messages=[{"role": "user", "content": "Hi"}])

    assert [e["type"] for e in memory_writer.events] == ["message", "message", "tool_result", "span"]


@pytest.mark.asyncio
async def test_disabled_switches_leave_assistant_message_and_result(tracer, memory_writer, fake_client, chat_completion, usage_payload):
    client = instrument(
        fake_client(response=chat_completion(usage=usage_payload)),
        tracer,
        emit_prompts=False,
        emit_usage=False,
        emit_span=False,
    )

    await client.chat.completions.create(model="gpt-4o-mini", messages=MESSAGES)

    assert [e["type"] for e in memory_writer.events] == ["message", "tool_result"]
    assert memory_writer.events[0]["role"] == "assistant"
    assert len(_ctx_pairs(memory_writer.events)) == 1


@pytest.mark.asyncio
async def test_empty_assistant_content_is_not_recorded(tracer, memory_writer, fake_client, chat_completion, weather_tool_call):
    response = chat_completion(content=None, tool_calls=[weather_tool_call], finish_reason="tool_calls")
    client = instrument(fake_client(response=response), tracer, emit_prompts=False)

    await client.chat.completions.create(model="gpt-4o-mini", messages=MESSAGES)

    assert [e["type"] for e in memory_writer.events] == ["tool_call", "tool_result", "span"]


@pytest.mark.asyncio
async def test_legacy_function_call_is_recorded(tracer, memory_writer, fake_client):
    response = {
        "id": "chatcmpl-legacy",
        "model": "gpt-3.5-turbo",
        "choices": [{
            "index": 0,
            "finish_reason": "function_call",
            "message": {
                "role": "assistant",
                "content": None,
                "function_call": {"name": "get_time", "arguments": "not json"},
            },
        }],
    }
    client = instrument(fake_client(response=response), tracer, emit_prompts=False)

    await client.chat.completions.create(model="gpt-3.5-turbo", messages=[])

    tool_call = memory_writer.of_type("tool_call")[0]
    assert tool_call["tool"] == "get_time"
    assert tool_call["input"] == "not json"
    assert tool_call["ext"] == {"finish_reason": "function_call"}


@pytest.mark.asyncio
async def test_failure_is_recorded_and_reraised(tracer, memory_writer, fake_client):
    error = RuntimeError("rate limit exceeded")
    client = instrument(fake_client(error=error), tracer)

    with pytest.raises(RuntimeError) as excinfo:
        await client.chat.completions.create(model="gpt-4o-mini", messages=[{"role": "user", "content": "Hi"}])

    assert excinfo.value is error
    assert str(excinfo.value) == "rate limit exceeded"
    assert [e["type"] for e in memory_writer.events] == ["message", "tool_result", "span"]

    tool_result = memory_writer.of_type("tool_result")[0]
    assert tool_result["ok"] is False
    assert tool_result["request_id"] is None
    assert tool_result["model"] == "gpt-4o-mini"
    assert tool_result["output"]["name"] == "RuntimeError"
    assert tool_result["output"]["message"] == "rate limit exceeded"
    assert "rate limit exceeded" in tool_result["output"]["stack"]

    span = memory_writer.of_type("span")[0]
    assert span["status"] == "error"
    assert span["attrs"]["error"] == "rate limit exceeded"
    assert span["attrs"]["model"] == "gpt-4o-mini"
    assert len(_ctx_pairs(memory_writer.events)) == 1


@pytest.mark.asyncio
async def test_each_call_gets_its_own_context(tracer, memory_writer, fake_client, chat_completion):
    client = instrument(fake_client(response=chat_completion()), tracer)

    await client.chat.completions.create(model="gpt-4o-mini", messages=[])
    first = list(memory_writer.events)
    memory_writer.clear()
    await client.chat.completions.create(model="gpt-4o-mini", messages=[])

    assert _ctx_pairs(first) != _ctx_pairs(memory_writer.events)


@pytest.mark.asyncio
async def test_arguments_reach_the_client_unchanged(tracer, fake_client, chat_completion):
    raw = fake_client(response=chat_completion())
    client = instrument(raw, tracer)

    await client.chat.completions.create(model="gpt-4o-mini", messages=MESSAGES, temperature=0.2)

    args, kwargs = raw.chat.completions.calls[0]
    assert args == ()
    assert kwargs == {"model": "gpt-4o-mini", "messages": MESSAGES, "temperature": 0.2}


@pytest.mark.asyncio
async def test_positional_request_mapping(tracer, memory_writer, fake_client, chat_completion):
    raw = fake_client(response=chat_completion())
    client = instrument(raw, tracer)
    params = {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "Hi"}]}

    await client.chat.completions.create(params)

    assert raw.chat.completions.calls[0] == ((params,), {})
    assert memory_writer.of_type("message")[0]["content"] == "Hi"


@pytest.mark.asyncio
async def test_recorder_failure_propagates(mock_recorder, fake_client, chat_completion):
    mock_recorder.message.side_effect = ConnectionError("sink unavailable")
    raw = fake_client(response=chat_completion())
    client = instrument(raw, mock_recorder)

    with pytest.raises(ConnectionError):
        await client.chat.completions.create(model="gpt-4o-mini", messages=[{"role": "user", "content": "Hi"}])

    assert raw.chat.completions.calls == []

    mock_recorder.tool_result.assert_awaited_once()
    assert mock_recorder.tool_result.await_args.kwargs["ok"] is False
    mock_recorder.span_end.assert_awaited_once()
    _, status, attrs = mock_recorder.span_end.await_args.args
    assert status == "error"
    assert attrs["error"] == "sink unavailable"


@pytest.mark.asyncio
async def test_custom_provider_and_operation_name(tracer, memory_writer, fake_client, chat_completion):
    client = instrument(
        fake_client(response=chat_completion()),
        tracer,
        {"provider": "azure-openai", "operation_name": "azure.chat"},
    )

    await client.chat.completions.create(model="gpt-4o", messages=[])

    assert {e["provider"] for e in memory_writer.events} == {"azure-openai"}
    assert memory_writer.of_type("tool_result")[0]["tool"] == "azure.chat"
    assert memory_writer.of_type("span")[0]["operation"] == "azure.chat"


def test_instrument_is_idempotent(fake_client):
    raw = fake_client()
    first_tracer = Tracer(writer=MemoryEventWriter())

    first = instrument(raw, first_tracer)
    second = instrument(raw, Tracer(writer=MemoryEventWriter()), emit_prompts=False)

    assert first is second
    assert first._tw_recorder is first_tracer
    assert first._tw_options.emit_prompts is True


def test_instrument_is_idempotent_without_weakref_support(tracer, slotted_client, chat_completion):
    raw = slotted_client(response=chat_completion())

    first = instrument(raw, tracer)
    second = instrument(raw, tracer, emit_prompts=False)

    assert first is second
    assert first._tw_options.emit_prompts is True


def test_distinct_clients_get_distinct_wrappers(tracer, fake_client):
    assert instrument(fake_client(), tracer) is not instrument(fake_client(), tracer)


def test_unknown_option_is_rejected(tracer, fake_client):
    with pytest.raises(UnknownOptionError) as excinfo:
        instrument(fake_client(), tracer, emit_everything=True)

    assert isinstance(excinfo.value, TypeError)
    assert "emit_everything" in str(excinfo.value)


def test_unknown_option_rejected_for_already_wrapped_client(tracer, fake_client):
    raw = fake_client()
    instrument(raw, tracer)

    with pytest.raises(UnknownOptionError):
        instrument(raw, tracer, {"bogus": 1})


@pytest.mark.asyncio
async def test_pass_through_of_uninstrumented_attributes(tracer, fake_client):
    raw = fake_client()
    client = instrument(raw, tracer)

    assert client.api_key == "sk-test"
    assert client.base_url == raw.base_url
    assert await client.models.list() == ["gpt-4o-mini"]
    assert client.chat.completions.list() == ["stored-completion"]
    # disabled namespaces come back untouched
    assert client.images is raw.images
    assert client.responses is raw.responses
    assert client.audio is raw.audio
    assert repr(client) == repr(raw)
    assert "chat" in dir(client)
    with pytest.raises(AttributeError):
        client.does_not_exist


def test_wrapper_passes_isinstance_checks(tracer, fake_client):
    raw = fake_client()
    client = instrument(raw, tracer)

    assert isinstance(client, type(raw))
    assert client.__class__ is type(raw)
    assert isinstance(client.chat, type(raw.chat))
    assert isinstance(client.chat.completions, type(raw.chat.completions))
    assert type(client) is InstrumentedClient


def test_attribute_writes_and_deletes_reach_the_client(tracer, fake_client):
    raw = fake_client()
    client = instrument(raw, tracer)

    client.organization = "org-123"
    assert raw.organization == "org-123"

    del client.organization
    assert not hasattr(raw, "organization")

    client.chat.completions.timeout = 30
    assert raw.chat.completions.timeout == 30


@pytest.mark.asyncio
async def test_namespaces_are_resolved_lazily(tracer, memory_writer, fake_client, chat_completion):
    raw = fake_client(response=chat_completion(content="first"))
    client = instrument(raw, tracer, emit_prompts=False)

    replacement = fake_client(response=chat_completion(content="second"))
    raw.chat = replacement.chat
    await client.chat.completions.create(model="gpt-4o-mini", messages=[])

    assert memory_writer.of_type("message")[0]["content"] == "second"
    assert len(replacement.chat.completions.calls) == 1


def test_non_callable_create_is_returned_unchanged(tracer, fake_client):
    raw = fake_client()
    raw.chat.completions.create = None
    client = instrument(raw, tracer)

    assert client.chat.completions.create is None


def test_none_namespace_is_returned_unchanged(tracer, fake_client):
    raw = fake_client()
    raw.chat = None
    client = instrument(raw, tracer)

    assert client.chat is None


@pytest.mark.asyncio
async def test_async_context_manager_returns_wrapper(tracer, fake_client):
    raw = fake_client()
    client = instrument(raw, tracer)

    async with client as entered:
        assert entered is client

    assert raw.closed is True


@pytest.mark.asyncio
async def test_model_objects_are_accepted(tracer, memory_writer, fake_client):
    """Attribute-style payloads (like the SDK's pydantic models) work as well as dicts."""

    class Obj:
        def __init__(self, **kwargs):
            self.__dict__.update(kwargs)

    response = Obj(
        id="chatcmpl-obj",
        model="gpt-4o-mini",
        created=1700000002,
        choices=[Obj(index=0, finish_reason="stop",
                     message=Obj(role="assistant", content="From an object", tool_calls=None, function_call=None))],
        usage=Obj(prompt_tokens=1, completion_tokens=2, total_tokens=3),
    )
    client = instrument(fake_client(response=response), tracer)

    result = await client.chat.completions.create(
        model="gpt-4o-mini", messages=[Obj(role="user", content="Hi", name=None)]
    )

    assert result is response
    assert [e["content"] for e in memory_writer.of_type("message")] == ["Hi", "From an object"]
    assert memory_writer.of_type("usage")[0]["ext"] == {"total_tokens": 3}
