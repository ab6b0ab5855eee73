"""Pytest configuration and fixtures."""

import os

import pytest

from scoutcrm.core.local_storage import MemoryLocalStore
from scoutcrm.core.offline_queue import OfflineQueue
from scoutcrm.core.pipeline_board import ProspectBoard
from tests.fakes.fake_store import FakeStore


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    os.environ["SCOUT_ENV"] = "test"


@pytest.fixture
def local_store() -> MemoryLocalStore:
    return MemoryLocalStore()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def queue(local_store) -> OfflineQueue:
    return OfflineQueue(local_store)


@pytest.fixture
def events() -> list:
    """Everything the board dispatches to its listener, in order."""
    return []


@pytest.fixture
def board(fake_store, queue, events) -> ProspectBoard:
    return ProspectBoard(fake_store, queue, owner_id="scout-1", listener=events.append)

