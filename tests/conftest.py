"""Shared fixtures for Warden unit tests."""
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from warden.core.interfaces import InMemoryStateStore
from warden.core.types import RequestSnapshot
from warden.storage import FileStateStore

START = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock; call it to read the current time."""

    def __init__(self, start: float = START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_request(**overrides: object) -> RequestSnapshot:
    """A benign browser request from 203.0.113.10, with *overrides* applied."""
    fields: dict[str, object] = {
        "source_address": "203.0.113.10",
        "path": "/products",
        "raw_uri": "/products?page=2",
        "method": "GET",
        "user_agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0",
        "query_params": {"page": "2"},
    }
    fields.update(overrides)
    return RequestSnapshot.model_validate(fields)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture()
def file_store(tmp_path: Path) -> FileStateStore:
    return FileStateStore(tmp_path / "state")


@pytest.fixture(params=["memory", "file"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> InMemoryStateStore | FileStateStore:
    """Every StateStore implementation, for contract tests."""
    if request.param == "memory":
        return InMemoryStateStore()
    return FileStateStore(tmp_path / "state")


@pytest.fixture()
def make_request() -> Callable[..., RequestSnapshot]:
    """Factory for request snapshots; keyword arguments override fields."""
    return build_request
