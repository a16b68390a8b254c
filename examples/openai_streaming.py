#!/usr/bin/env python3
"""
Streaming OpenAI Tracing Example
================================

Completion, usage and span events for a streamed call are recorded in the
background once the stream has finished; flush_pending() waits for them.

Run:
  pip install -e ".[openai]"
  export OPENAI_API_KEY="..."
  python examples/openai_streaming.py
"""

import asyncio

import openai

import tracewire


async def main():
    tracer = tracewire.init(writer="console")
    client = tracewire.instrument(openai.AsyncOpenAI(), tracer)

    stream = await client.chat.completions.create(
        model="gpt-4o-mini",
        messages=[{"role": "user", "content": "Count to five."}],
        stream=True,
        stream_options={"include_usage": True},
    )
    async for chunk in stream:
        if chunk.choices and chunk.choices[0].delta.content:
            print(chunk.choices[0].delta.content, end="", flush=True)
    print()

    await tracewire.flush_pending()
    tracer.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
