"""Whitelist membership and ban management.

Bans expire lazily: an expired temporary ban is removed the first time it
is looked at, and its ``ban_count`` is carried into a history record so
the next ban for the same address continues the escalation.
:meth:`AccessList.sweep_expired` performs the same cleanup for every
record and is meant for periodic housekeeping only.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from warden.access.cidr import ip_matches, normalize_address
from warden.core.types import BanHistoryRecord, BanRecord, Category
from warden.storage.records import dump_record, parse_record

if TYPE_CHECKING:
    from warden.core.interfaces import StateStore

logger = logging.getLogger(__name__)

DEFAULT_BAN_DURATION = 86400


class AccessList:
    """Whitelist checks plus persistent bans keyed by normalised address.

    Parameters
    ----------
    store:
        Backend holding the ``bans``, ``violations`` and ``history``
        categories.
    whitelist:
        Initial exact addresses or CIDR ranges.
    clock:
        Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        whitelist: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self._whitelist: list[str] = list(whitelist)

    # -- Whitelist ----------------------------------------------------------

    def whitelist(self, entry: str) -> None:
        """Add an exact address or CIDR range to the whitelist."""
        self._whitelist.append(entry)

    @property
    def whitelist_entries(self) -> list[str]:
        return list(self._whitelist)

    def is_whitelisted(self, ip: str) -> bool:
        return any(ip_matches(ip, entry) for entry in self._whitelist)

    # -- Banning ------------------------------------------------------------

    def ban(self, ip: str, reason: str = "", duration: int = DEFAULT_BAN_DURATION) -> BanRecord:
        """Ban *ip* for *duration* seconds (``0`` = permanent).

        Overwrites any existing ban; ``ban_count`` continues from the
        existing ban or, failing that, from the ban history.
        """
        return self._issue(ip, reason, lambda previous: duration)

    def escalate(
        self,
        ip: str,
        reason: str,
        duration: int,
        permanent_after_bans: int,
    ) -> BanRecord:
        """Ban *ip*, making the ban permanent once it is the
        *permanent_after_bans*-th one.

        Earlier bans last *duration* seconds.  The ban count is read and
        the duration chosen inside the same atomic update, so concurrent
        escalations of one address each see the count left by the other.
        """

        def _choose(previous: int) -> int:
            return 0 if previous >= permanent_after_bans - 1 else duration

        return self._issue(ip, reason, _choose)

    def ban_permanent(self, ip: str, reason: str = "") -> BanRecord:
        return self.ban(ip, reason, 0)

    def unban(self, ip: str) -> None:
        """Lift the ban on *ip* and forget its violations and ban history."""
        key = normalize_address(ip)
        self._store.delete(Category.BANS, key)
        self._store.delete(Category.VIOLATIONS, key)
        self._store.delete(Category.HISTORY, key)
        logger.info("Unbanned %s", key)

    def is_banned(self, ip: str) -> bool:
        key = normalize_address(ip)
        record = self._read_ban(key)
        if record is None:
            return False
        if record.is_expired(self._clock()):
            self._expire(key)
            return False
        return True

    def get_ban_info(self, ip: str) -> BanRecord | None:
        """Return the stored ban record for *ip* without expiring it."""
        return self._read_ban(normalize_address(ip))

    def get_ban_count(self, ip: str) -> int:
        """Number of bans issued to *ip* so far (``0`` if never banned)."""
        key = normalize_address(ip)
        return self._previous_count(key, self._store.get(Category.BANS, key))

    def get_all_bans(self) -> dict[str, BanRecord]:
        """Return every active ban keyed by address; expired bans are removed."""
        now = self._clock()
        active: dict[str, BanRecord] = {}
        for key, raw in self._store.list_all(Category.BANS):
            record = parse_record(BanRecord, raw, strict=self._store.strict_reads)
            if record is None:
                continue
            if record.is_expired(now):
                self._expire(key)
                continue
            active[record.identity] = record
        return active

    def sweep_expired(self) -> int:
        """Remove every expired ban and return how many were removed."""
        now = self._clock()
        removed = 0
        for key, raw in self._store.list_all(Category.BANS):
            record = parse_record(BanRecord, raw, strict=self._store.strict_reads)
            if record is not None and record.is_expired(now) and self._expire(key):
                removed += 1
        if removed:
            logger.debug("Swept %d expired ban(s)", removed)
        return removed

    # -- Internal helpers ---------------------------------------------------

    def _issue(self, ip: str, reason: str, choose: Callable[[int], int]) -> BanRecord:
        """Write a ban whose duration is ``choose(previous ban count)``."""
        key = normalize_address(ip)
        now = self._clock()
        result: dict[str, Any] = {}

        def _apply(raw: dict[str, Any] | None) -> dict[str, Any]:
            previous = self._previous_count(key, raw)
            duration = choose(previous)
            record = BanRecord(
                identity=key,
                reason=reason,
                banned_at=now,
                expires_at=0.0 if duration == 0 else now + duration,
                ban_count=previous + 1,
            )
            result["record"] = record
            result["duration"] = duration
            return dump_record(record)

        self._store.update(Category.BANS, key, _apply)
        record = result["record"]
        logger.info(
            "Banned %s (%s, ban #%d): %s",
            key,
            "permanent" if record.is_permanent else f"{result['duration']}s",
            record.ban_count,
            reason,
        )
        return record

    def _read_ban(self, key: str) -> BanRecord | None:
        raw = self._store.get(Category.BANS, key)
        return parse_record(BanRecord, raw, strict=self._store.strict_reads)

    def _previous_count(self, key: str, raw_ban: dict[str, Any] | None) -> int:
        current = parse_record(BanRecord, raw_ban, strict=self._store.strict_reads)
        if current is not None:
            return current.ban_count
        history = parse_record(
            BanHistoryRecord,
            self._store.get(Category.HISTORY, key),
            strict=self._store.strict_reads,
        )
        return history.ban_count if history is not None else 0

    def _expire(self, key: str) -> bool:
        """Delete the ban on *key* if it is still expired; keep its count."""
        now = self._clock()
        expired: dict[str, BanRecord] = {}

        def _apply(raw: dict[str, Any] | None) -> dict[str, Any] | None:
            record = parse_record(BanRecord, raw, strict=self._store.strict_reads)
            if record is None or not record.is_expired(now):
                return raw
            history = BanHistoryRecord(
                identity=record.identity,
                ban_count=record.ban_count,
                last_banned_at=record.banned_at,
            )
            # bans -> history is the only nested lock order
            self._store.put(Category.HISTORY, key, dump_record(history))
            expired["record"] = record
            return None

        self._store.update(Category.BANS, key, _apply)
        record = expired.get("record")
        if record is None:
            return False
        logger.debug("Ban on %s expired (ban #%d)", key, record.ban_count)
        return True
