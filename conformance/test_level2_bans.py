"""Level 2 -- Ban lifecycle conformance tests.

Verifies permanent and temporary bans under simulated time, lazy removal
of expired records and whitelist precedence over the ban gate.
"""
from __future__ import annotations

from collections.abc import Callable

from warden.access import AccessList
from warden.core.interfaces import InMemoryStateStore
from warden.core.types import Category
from warden.engine import DecisionEngine

from .conftest import ATTACKER_IP, FakeClock, make_request

EngineFactory = Callable[..., DecisionEngine]


class TestBanLifecycle:
    """Temporary bans end, permanent bans do not."""

    def test_MUST_keep_permanent_ban_indefinitely(
        self, state_store: InMemoryStateStore, clock: FakeClock
    ) -> None:
        access = AccessList(state_store, clock=clock)
        access.ban(ATTACKER_IP, "manual", 0)
        for _ in range(5):
            clock.advance(10 * 365 * 86400)
            assert access.is_banned(ATTACKER_IP)

    def test_MUST_lift_temporary_ban_after_duration(
        self, state_store: InMemoryStateStore, clock: FakeClock
    ) -> None:
        access = AccessList(state_store, clock=clock)
        access.ban(ATTACKER_IP, "manual", 60)
        assert access.is_banned(ATTACKER_IP)

        clock.advance(61)

        assert not access.is_banned(ATTACKER_IP)
        assert state_store.get(Category.BANS, ATTACKER_IP) is None

    def test_MUST_still_ban_until_expiry_passes(
        self, state_store: InMemoryStateStore, clock: FakeClock
    ) -> None:
        access = AccessList(state_store, clock=clock)
        access.ban(ATTACKER_IP, "manual", 60)
        clock.advance(60)
        assert access.is_banned(ATTACKER_IP)

    def test_MUST_forget_ban_on_unban(
        self, state_store: InMemoryStateStore, clock: FakeClock
    ) -> None:
        access = AccessList(state_store, clock=clock)
        access.ban_permanent(ATTACKER_IP, "manual")
        access.unban(ATTACKER_IP)
        assert not access.is_banned(ATTACKER_IP)
        assert access.get_ban_count(ATTACKER_IP) == 0


class TestWhitelistPrecedence:
    """The whitelist check runs before the ban gate."""

    def test_MUST_allow_banned_whitelisted_address(
        self, engine_factory: EngineFactory
    ) -> None:
        engine = engine_factory({"whitelist": {"addresses": ["198.51.100.0/24"]}})
        engine.access.ban_permanent(ATTACKER_IP, "manual")

        assert engine.access.is_banned(ATTACKER_IP)
        assert not engine.evaluate(make_request(ATTACKER_IP)).blocked

    def test_MUST_block_banned_address_without_whitelist(
        self, engine_factory: EngineFactory
    ) -> None:
        engine = engine_factory()
        engine.access.ban_permanent(ATTACKER_IP, "manual")
        decision = engine.evaluate(make_request(ATTACKER_IP))
        assert decision.blocked
        assert decision.reason == "IP is banned"
