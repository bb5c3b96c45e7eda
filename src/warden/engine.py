"""Warden decision engine -- the per-request orchestrator.

This module implements :class:`DecisionEngine`, the primary entry point.
It composes the access list, violation tracker, rate window, pattern
matcher and custom rule set, and runs every request through a fixed
pipeline.

Pipeline
--------

0. **Mode gate** -- ``off`` allows everything.
1. **Whitelist** -- whitelisted address or URI prefix is allowed outright,
   before the ban check.
2. **Ban gate** -- a banned address is blocked, in learning mode too.
3. **Rate limit** -- sliding-window count above ``max_requests``.
4. **Blocked path** -- suspicious URI substring.
5. **User agent** -- blank or suspicious agent.
6. **Payload** -- first matching payload rule.
7. **Custom rules** -- ``block`` is a violation, ``log`` only emits an event.

Checks 3-7 each run only when enabled.  A violation is always emitted to
the event sink; in production mode it also blocks the request and, with
auto-ban on, counts towards a ban.  Every ``violations_threshold``
violations produce a ban, temporary at first and permanent from the
``permanent_after_bans``-th ban on.

Usage
-----
::

    from warden import RequestSnapshot, build_engine

    engine = build_engine({"storage": {"path": "/var/lib/warden"}})

    decision = engine.evaluate(RequestSnapshot(source_address="203.0.113.9", raw_uri="/"))
    if decision.blocked:
        return Response(decision.body, status=decision.status_code)

Build one engine at start-up and pass it to request handlers explicitly.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from warden.access.access_list import AccessList
from warden.access.violations import ViolationTracker
from warden.core.config import StorageFailurePolicy, WardenConfig, load_config
from warden.core.errors import ConfigurationError, StorageError
from warden.core.interfaces import InMemoryStateStore
from warden.core.types import (
    Check,
    Decision,
    EventType,
    Mode,
    RequestSnapshot,
    ViolationEvent,
)
from warden.events import LoggingEventSink
from warden.patterns.matcher import PatternMatcher
from warden.ratelimit.window import RateWindow
from warden.rules.ruleset import PolicyRuleSet
from warden.storage.file_store import FileStateStore

if TYPE_CHECKING:
    from warden.core.interfaces import BanSync, EventSink, StateStore

logger = logging.getLogger(__name__)

_AGENT_REASON_LENGTH = 100


class DecisionEngine:
    """Allow/block decisions with persistent escalation state.

    Parameters
    ----------
    config:
        Validated engine configuration.
    store:
        Backend for bans, violations, rate windows and ban history.
    patterns:
        Path/agent/payload detectors; defaults to the bundled rules.
    rules:
        Custom rule set; defaults to an empty one.
    event_sink:
        Receives violation events; defaults to :class:`LoggingEventSink`.
    ban_sync:
        Receives the full ban list whenever a permanent ban is issued.
        Required when ``config.sync.enabled`` is set.
    clock:
        Returns the current time in epoch seconds.

    Raises
    ------
    ConfigurationError
        If ban sync is enabled without a ``ban_sync`` collaborator.
    """

    def __init__(
        self,
        config: WardenConfig,
        store: StateStore,
        *,
        patterns: PatternMatcher | None = None,
        rules: PolicyRuleSet | None = None,
        event_sink: EventSink | None = None,
        ban_sync: BanSync | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if config.sync.enabled and ban_sync is None:
            raise ConfigurationError(
                "Ban sync is enabled but no sync collaborator was supplied",
                details={"setting": "sync.enabled"},
            )

        self._config = config
        self._store = store
        self._clock = clock
        self._mode = config.mode
        self._checks: dict[Check, bool] = {check: True for check in Check}
        self._checks.update(config.checks)
        self._whitelist_paths: list[str] = list(config.whitelist.paths)
        self._events: EventSink = event_sink or LoggingEventSink()
        self._ban_sync = ban_sync

        self.access = AccessList(store, whitelist=config.whitelist.addresses, clock=clock)
        self.violations = ViolationTracker(store, clock=clock)
        self.rate_limit = RateWindow(
            store,
            max_requests=config.rate_limit.max_requests,
            window_seconds=config.rate_limit.window_seconds,
            clock=clock,
        )
        self.patterns = patterns if patterns is not None else PatternMatcher.with_defaults()
        self.rules = rules if rules is not None else PolicyRuleSet()

    # -- public properties --------------------------------------------------

    @property
    def config(self) -> WardenConfig:
        return self._config

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def mode(self) -> Mode:
        return self._mode

    @mode.setter
    def mode(self, value: Mode | str) -> None:
        self._mode = Mode(value)

    def set_mode(self, mode: Mode | str) -> None:
        self.mode = mode

    # -- check toggles ------------------------------------------------------

    def enable_check(self, check: Check | str) -> None:
        self._checks[Check(check)] = True

    def disable_check(self, check: Check | str) -> None:
        self._checks[Check(check)] = False

    def is_check_enabled(self, check: Check | str) -> bool:
        return self._checks.get(Check(check), True)

    def whitelist_path(self, prefix: str) -> None:
        """Let every URI starting with *prefix* bypass all checks."""
        self._whitelist_paths.append(prefix)

    # -- evaluation ---------------------------------------------------------

    def evaluate(self, request: RequestSnapshot) -> Decision:
        """Decide whether *request* is allowed.

        Raises
        ------
        RuleExecutionError
            If a custom rule fails; never absorbed.
        StorageError
            If the state store fails and ``storage.on_failure`` is
            ``raise``.
        """
        if self._mode is Mode.OFF:
            return Decision.allow()

        try:
            return self._run_pipeline(request)
        except StorageError as exc:
            policy = self._config.storage.on_failure
            if policy is StorageFailurePolicy.RAISE:
                raise
            logger.exception(
                "State store failure while evaluating %s (%s); failing %s",
                request.source_address,
                exc.code,
                policy.value,
            )
            if policy is StorageFailurePolicy.OPEN:
                return Decision.allow()
            return self._block(EventType.STORAGE_FAILURE, exc.message)

    def _run_pipeline(self, request: RequestSnapshot) -> Decision:
        ip = request.source_address

        if self.access.is_whitelisted(ip) or self._is_whitelisted_path(request.raw_uri):
            return Decision.allow()

        if self.access.is_banned(ip):
            return self._block(EventType.BANNED_IP, "IP is banned")

        if self.is_check_enabled(Check.RATE_LIMIT) and self.rate_limit.is_exceeded(ip):
            decision = self._handle_violation(request, EventType.RATE_LIMIT, "Rate limit exceeded")
            if decision is not None:
                return decision

        if self.is_check_enabled(Check.BLOCKED_PATH) and self.patterns.is_suspicious_path(
            request.raw_uri
        ):
            decision = self._handle_violation(
                request, EventType.BLOCKED_PATH, f"Suspicious URI: {request.raw_uri}"
            )
            if decision is not None:
                return decision

        if self.is_check_enabled(Check.USER_AGENT) and self.patterns.is_suspicious_agent(
            request.user_agent
        ):
            decision = self._handle_violation(
                request,
                EventType.USER_AGENT,
                f"Suspicious UA: {request.user_agent[:_AGENT_REASON_LENGTH]}",
            )
            if decision is not None:
                return decision

        if self.is_check_enabled(Check.PAYLOAD):
            label = self.patterns.detect_payload(request.raw_input())
            if label is not None:
                decision = self._handle_violation(
                    request, EventType.PAYLOAD, f"Payload match: {label}"
                )
                if decision is not None:
                    return decision

        if self.is_check_enabled(Check.CUSTOM_RULES):
            verdict = self.rules.evaluate(request)
            if verdict.is_block:
                decision = self._handle_violation(request, EventType.CUSTOM_RULE, verdict.reason)
                if decision is not None:
                    return decision
            elif verdict.is_log:
                self._emit(EventType.CUSTOM_RULE_LOG, request, verdict.reason)

        return Decision.allow()

    # -- violation handling -------------------------------------------------

    def _handle_violation(
        self, request: RequestSnapshot, event_type: EventType, reason: str
    ) -> Decision | None:
        """Emit, count and block.  Returns ``None`` in learning mode."""
        self._emit(event_type, request, reason)

        if self._mode is Mode.LEARNING:
            return None

        auto_ban = self._config.auto_ban
        if auto_ban.enabled:
            ip = request.source_address
            count, tripped = self.violations.record(ip, auto_ban.violations_threshold)
            if tripped:
                self._escalate(ip, event_type, reason, count)
                return self._block(
                    event_type, f"Auto-banned after {count} violations: {reason}"
                )

        return self._block(event_type, reason)

    def _escalate(self, ip: str, event_type: EventType, reason: str, count: int) -> None:
        auto_ban = self._config.auto_ban
        try:
            record = self.access.escalate(
                ip,
                f"{event_type}: {reason}",
                auto_ban.ban_duration,
                auto_ban.permanent_after_bans,
            )
        except StorageError:
            # the trip cleared the count; put it back so the next
            # violation trips again
            self._restore_violations(ip, count)
            raise
        logger.info(
            "Auto-ban of %s after %d violations (ban #%d, %s)",
            record.identity,
            count,
            record.ban_count,
            "permanent" if record.is_permanent else f"{auto_ban.ban_duration}s",
        )
        if record.is_permanent and self._config.sync.enabled and self._ban_sync is not None:
            self._ban_sync.sync(sorted(self.access.get_all_bans()))

    def _restore_violations(self, ip: str, count: int) -> None:
        try:
            self.violations.restore(ip, count)
        except StorageError:
            logger.warning("Could not restore %d violation(s) for %s", count, ip)

    def _emit(self, event_type: EventType, request: RequestSnapshot, reason: str) -> None:
        if not self._config.log.enabled:
            return
        event = ViolationEvent.from_request(
            event_type, request, reason, timestamp=self._clock()
        )
        self._events.emit(event)

    def _block(self, event_type: EventType, reason: str) -> Decision:
        response = self._config.block_response
        return Decision.block(
            response.status_code,
            response.body,
            check=str(event_type),
            reason=reason,
        )

    def _is_whitelisted_path(self, uri: str) -> bool:
        return any(uri.startswith(prefix) for prefix in self._whitelist_paths)


def build_engine(
    overrides: Mapping[str, Any] | WardenConfig | None = None,
    *,
    store: StateStore | None = None,
    patterns: PatternMatcher | None = None,
    rules: PolicyRuleSet | None = None,
    event_sink: EventSink | None = None,
    ban_sync: BanSync | None = None,
    clock: Callable[[], float] = time.time,
) -> DecisionEngine:
    """Validate configuration and construct a :class:`DecisionEngine`.

    *overrides* is deep-merged onto the defaults (see
    :func:`~warden.core.config.load_config`).  Without an explicit *store*
    a :class:`FileStateStore` is opened at ``storage.path``, or an
    in-memory store is used when no path is configured.

    Raises
    ------
    ConfigurationError
        If the configuration is invalid or the storage directory cannot
        be prepared.
    """
    config = overrides if isinstance(overrides, WardenConfig) else load_config(overrides)

    if store is None:
        if config.storage.path is not None:
            try:
                store = FileStateStore(
                    config.storage.path, strict_reads=config.storage.strict_reads
                )
            except StorageError as exc:
                raise ConfigurationError(
                    f"Storage path is not usable: {config.storage.path}",
                    details={"setting": "storage.path", **exc.details},
                ) from exc
        else:
            store = InMemoryStateStore()

    return DecisionEngine(
        config,
        store,
        patterns=patterns,
        rules=rules,
        event_sink=event_sink,
        ban_sync=ban_sync,
        clock=clock,
    )
