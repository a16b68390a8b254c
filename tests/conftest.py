"""Global test configuration for tracewire tests."""

import pytest

from tracewire.observability.tracer import Tracer
from tracewire.observability.writer import MemoryEventWriter


@pytest.fixture
def memory_writer():
    """A writer that keeps every event in memory for inspection."""
    writer = MemoryEventWriter()
    yield writer
    writer.clear()


@pytest.fixture
def tracer(memory_writer):
    """Fixture for a clean tracer instance writing to memory."""
    t = Tracer(writer=memory_writer, session_id="test-session")
    yield t
    t.shutdown()


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "core: Core functionality tests")
