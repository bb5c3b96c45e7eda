"""Shared fixtures for Warden conformance tests.

Provides a controllable clock, request builders and engine factories
reused by every conformance module.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from warden.core.interfaces import InMemoryEventSink, InMemoryStateStore
from warden.core.types import RequestSnapshot
from warden.engine import DecisionEngine, build_engine

# ---------------------------------------------------------------------------
# Common addresses used across tests
# ---------------------------------------------------------------------------
CLIENT_IP = "192.0.2.10"
ATTACKER_IP = "198.51.100.66"
OFFICE_RANGE = "10.0.0.0/8"
BROWSER_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) Safari/605.1.15"


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------
class FakeClock:
    """Simulated epoch clock advanced explicitly by the test."""

    def __init__(self, start: float = 1_800_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture()
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture()
def engine_factory(
    state_store: InMemoryStateStore, event_sink: InMemoryEventSink, clock: FakeClock
) -> Callable[..., DecisionEngine]:
    """Build engines sharing the fixture store, sink and clock."""

    def _factory(overrides: dict[str, Any] | None = None, **kwargs: Any) -> DecisionEngine:
        return build_engine(
            overrides, store=state_store, event_sink=event_sink, clock=clock, **kwargs
        )

    return _factory


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------
def make_request(
    source_address: str = CLIENT_IP,
    raw_uri: str = "/",
    *,
    user_agent: str = BROWSER_UA,
    **fields: Any,
) -> RequestSnapshot:
    """Build a RequestSnapshot with sensible defaults."""
    path = raw_uri.split("?", 1)[0]
    return RequestSnapshot(
        source_address=source_address,
        path=path,
        raw_uri=raw_uri,
        user_agent=user_agent,
        **fields,
    )


def make_attack(source_address: str = ATTACKER_IP) -> RequestSnapshot:
    """A request tripping the blocked-path check and nothing earlier."""
    return make_request(source_address, "/.git/config")
