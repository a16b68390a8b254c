#!/usr/bin/env python3
"""
Simple OpenAI Tracing Example
=============================

Wraps an AsyncOpenAI client and prints every recorded event to the console.

Run:
  pip install -e ".[openai]"
  export OPENAI_API_KEY="..."
  python examples/openai_basic.py
"""

import asyncio

import openai

import tracewire


async def main():
    tracer = tracewire.init(writer="console", debug=True)
    client = tracewire.instrument(openai.AsyncOpenAI(), tracer)

    response = await client.chat.completions.create(
        model="gpt-4o-mini",
        messages=[
            {"role": "system", "content": "Answer in one sentence."},
            {"role": "user", "content": "What is the capital of France?"},
        ],
    )
    print("Response:", response.choices[0].message.content)


if __name__ == "__main__":
    asyncio.run(main())
