"""Sliding-window request counting.

The window always ends *now*: a timestamp counts while its age is below
``window_seconds`` and is pruned as soon as it reaches it.  Every stored
timestamp inside the window is kept, so a record holds at most
``max_requests + 1`` entries for a client that stops once it is blocked,
but grows with the request rate of a client that keeps sending.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from warden.access.cidr import normalize_address
from warden.core.types import Category, RateWindowRecord
from warden.storage.records import dump_record, parse_record

if TYPE_CHECKING:
    from warden.core.interfaces import StateStore

logger = logging.getLogger(__name__)


class RateWindow:
    """Per-address sliding-window rate limiter backed by a :class:`StateStore`.

    Parameters
    ----------
    store:
        Backend holding the ``rate`` category.
    max_requests:
        Requests allowed inside one window.
    window_seconds:
        Length of the window.
    clock:
        Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        max_requests: int = 60,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @max_requests.setter
    def max_requests(self, value: int) -> None:
        if value < 1:
            msg = f"max_requests must be >= 1, got {value}"
            raise ValueError(msg)
        self._max_requests = value

    @property
    def window_seconds(self) -> int:
        return self._window

    @window_seconds.setter
    def window_seconds(self, value: int) -> None:
        if value < 1:
            msg = f"window_seconds must be >= 1, got {value}"
            raise ValueError(msg)
        self._window = value

    def track_request(self, ip: str) -> int:
        """Record one request from *ip* now and return the count in the window."""
        key = normalize_address(ip)
        now = self._clock()
        result: dict[str, int] = {}

        def _apply(raw: dict[str, Any] | None) -> dict[str, Any]:
            timestamps = self._fresh(self._load(raw), now)
            timestamps.append(now)
            result["count"] = len(timestamps)
            return dump_record(RateWindowRecord(identity=key, timestamps=timestamps))

        self._store.update(Category.RATE, key, _apply)
        return result["count"]

    def get_count(self, ip: str) -> int:
        """Return the count in the window without recording a request."""
        raw = self._store.get(Category.RATE, normalize_address(ip))
        return len(self._fresh(self._load(raw), self._clock()))

    def is_exceeded(self, ip: str) -> bool:
        """Record one request and report whether it pushed *ip* over the limit."""
        return self.track_request(ip) > self._max_requests

    def sweep(self) -> int:
        """Delete windows with no timestamp left inside the window."""
        now = self._clock()
        removed = 0
        for key, _ in self._store.list_all(Category.RATE):
            outcome: dict[str, bool] = {}

            def _apply(raw: dict[str, Any] | None, outcome: dict[str, bool] = outcome) -> dict[str, Any] | None:
                if raw is not None and self._fresh(self._load(raw), now):
                    return raw
                outcome["removed"] = raw is not None
                return None

            self._store.update(Category.RATE, key, _apply)
            if outcome.get("removed"):
                removed += 1
        if removed:
            logger.debug("Swept %d idle rate window(s)", removed)
        return removed

    # -- Internal helpers ---------------------------------------------------

    def _load(self, raw: dict[str, Any] | None) -> list[float]:
        record = parse_record(RateWindowRecord, raw, strict=self._store.strict_reads)
        return list(record.timestamps) if record is not None else []

    def _fresh(self, timestamps: list[float], now: float) -> list[float]:
        return [t for t in timestamps if now - t < self._window]
