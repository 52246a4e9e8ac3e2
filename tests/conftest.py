"""Shared fixtures for chimpflow tests."""

import pytest

from chimpflow.config.schema import Config, KnowledgeConfig
from chimpflow.graph.persistent_store import PersistentSharedStore
from chimpflow.runtime import RuntimeState

NOW = 1_700_000_000.0


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "data" / "knowledge-store.json"


@pytest.fixture
def runtime(store_path):
    """Runtime whose knowledge store lives in the test's tmp dir."""
    config = Config(
        knowledge=KnowledgeConfig(
            store_path=str(store_path),
            owner_id="owner-1",
            save_debounce_seconds=0.05,
            source_timeout=0.5,
        )
    )
    return RuntimeState.create(config=config)


@pytest.fixture
def store(store_path):
    return PersistentSharedStore(store_path, save_delay=0.05)
