"""Global test configuration and fixtures."""

import os

import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"

from deckstream.domain.entities.slide import Slide
from deckstream.infra.config.logging_config import setup_logging
from deckstream.infra.storage.in_memory_session_store import InMemorySessionStore
from tests._helpers.fakes import RecordingCallbacks, RecordingListener

setup_logging()


# Slide fixtures
@pytest.fixture
def make_slides():
    """Factory for a numbered deck with predictable titles."""

    def _make(count: int):
        return [
            Slide(slide_number=n, title=f"Slide {n}", content=f"- point {n}")
            for n in range(1, count + 1)
        ]

    return _make


@pytest.fixture
def three_slides(make_slides):
    return make_slides(3)


@pytest.fixture
def five_slides(make_slides):
    return make_slides(5)


# Collaborator fixtures
@pytest.fixture
def callbacks() -> RecordingCallbacks:
    return RecordingCallbacks()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest_asyncio.fixture
async def store() -> InMemorySessionStore:
    store = InMemorySessionStore()
    await store.create_session("project-1", title="Test deck")
    return store


@pytest.fixture
def project_id() -> str:
    return "project-1"
