"""Per-address violation counting.

Violation counts accumulate until a ban is issued, at which point the
record is removed so the next ban cycle starts from zero.  If the ban
cannot be written the count is put back with :meth:`ViolationTracker.restore`.
"""
from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from warden.access.cidr import normalize_address
from warden.core.types import Category, ViolationRecord
from warden.storage.records import dump_record, parse_record

if TYPE_CHECKING:
    from warden.core.interfaces import StateStore


class ViolationTracker:
    """Count violations per address in a :class:`StateStore`.

    Parameters
    ----------
    store:
        Backend holding the ``violations`` category.
    clock:
        Returns the current time in epoch seconds.
    """

    def __init__(self, store: StateStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    def increment(self, ip: str) -> int:
        """Add one violation for *ip* and return the new count."""
        count, _ = self.record(ip, threshold=None)
        return count

    def record(self, ip: str, threshold: int | None) -> tuple[int, bool]:
        """Add one violation and check it against *threshold*.

        When the new count reaches *threshold* the record is cleared in the
        same atomic update and ``(count, True)`` is returned.  Of several
        concurrent callers, exactly one observes the threshold being hit.
        """
        now = self._clock()
        outcome: dict[str, Any] = {}

        def _apply(raw: dict[str, Any] | None) -> dict[str, Any] | None:
            key = normalize_address(ip)
            current = parse_record(ViolationRecord, raw, strict=self._store.strict_reads)
            if current is None:
                current = ViolationRecord(identity=key, count=0, first_seen=now, last_seen=now)
            count = current.count + 1
            outcome["count"] = count
            outcome["tripped"] = threshold is not None and count >= threshold
            if outcome["tripped"]:
                return None
            return dump_record(current.model_copy(update={"count": count, "last_seen": now}))

        self._store.update(Category.VIOLATIONS, normalize_address(ip), _apply)
        return outcome["count"], outcome["tripped"]

    def restore(self, ip: str, count: int) -> int:
        """Add *count* violations back to *ip* and return the new total.

        Used when a ban could not be written after :meth:`record` cleared
        the count, so that the next violation trips the threshold again.
        """
        now = self._clock()
        outcome: dict[str, int] = {}

        def _apply(raw: dict[str, Any] | None) -> dict[str, Any]:
            key = normalize_address(ip)
            current = parse_record(ViolationRecord, raw, strict=self._store.strict_reads)
            if current is None:
                current = ViolationRecord(identity=key, count=0, first_seen=now, last_seen=now)
            outcome["count"] = current.count + count
            return dump_record(
                current.model_copy(update={"count": outcome["count"], "last_seen": now})
            )

        self._store.update(Category.VIOLATIONS, normalize_address(ip), _apply)
        return outcome["count"]

    def get(self, ip: str) -> ViolationRecord | None:
        raw = self._store.get(Category.VIOLATIONS, normalize_address(ip))
        return parse_record(ViolationRecord, raw, strict=self._store.strict_reads)

    def get_count(self, ip: str) -> int:
        record = self.get(ip)
        return record.count if record is not None else 0

    def reset(self, ip: str) -> None:
        self._store.delete(Category.VIOLATIONS, normalize_address(ip))
