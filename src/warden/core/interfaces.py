"""Warden abstract interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
the collaborators consumed by the decision engine, plus lightweight
in-memory implementations suitable for testing and local development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.

The in-memory state store honours the same per-key atomicity contract
as :class:`~warden.storage.FileStateStore` but keeps nothing across
process restarts.
"""
from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from warden.core.types import Category, RequestSnapshot, Verdict, ViolationEvent
from warden.storage.locks import KeyedLockRegistry

Record = dict[str, Any]
Updater = Callable[[Record | None], Record | None]

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class StateStore(Protocol):
    """Durable keyed record storage.

    Records are plain JSON-compatible mappings grouped by
    :class:`~warden.core.types.Category` and keyed by normalised address.
    """

    @property
    def strict_reads(self) -> bool:
        """``True`` if unreadable records raise instead of reading as absent."""
        ...

    def get(self, category: Category, key: str) -> Record | None:
        """Return the record, or ``None`` if it is missing or unreadable."""
        ...

    def put(self, category: Category, key: str, record: Record) -> None:
        """Create or overwrite a record.

        Raises :class:`StorageWriteError` if it cannot be persisted.
        """
        ...

    def delete(self, category: Category, key: str) -> None:
        """Remove a record.  Deleting a missing record is not an error."""
        ...

    def list_all(self, category: Category) -> list[tuple[str, Record]]:
        """Return ``(key, record)`` pairs for every readable record."""
        ...

    def update(self, category: Category, key: str, fn: Updater) -> Record | None:
        """Atomically read, transform and write one record.

        *fn* receives the current record (or ``None``) and returns the new
        record, or ``None`` to delete it.  Concurrent updates of the same
        key are serialised; updates of different keys never wait on each
        other.  Returns whatever *fn* returned.
        """
        ...


@runtime_checkable
class EventSink(Protocol):
    """Receiver for violation and custom-rule log events."""

    def emit(self, event: ViolationEvent) -> None:
        """Record *event*.  Rotation and retention belong to the sink."""
        ...


@runtime_checkable
class BanSync(Protocol):
    """Collaborator that mirrors permanent bans into e.g. a web-server config."""

    def sync(self, addresses: Sequence[str]) -> None:
        """Replace the mirrored ban set with *addresses*."""
        ...


@runtime_checkable
class Rule(Protocol):
    """A custom policy rule evaluated after the built-in checks."""

    def evaluate(self, request: RequestSnapshot) -> Verdict:
        """Return :meth:`Verdict.pass_`, :meth:`Verdict.block` or :meth:`Verdict.log`."""
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryStateStore:
    """In-memory state store for testing and development.

    Records are deep-copied on the way in and out so callers cannot
    mutate stored state by accident, mirroring a real persistence layer.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], Record] = {}
        self._locks = KeyedLockRegistry()
        self._dict_lock = threading.Lock()

    @property
    def strict_reads(self) -> bool:
        return False

    def get(self, category: Category, key: str) -> Record | None:
        with self._dict_lock:
            record = self._records.get((str(category), key))
        return copy.deepcopy(record)

    def put(self, category: Category, key: str, record: Record) -> None:
        with self._locks.hold((str(category), key)):
            self._write(category, key, record)

    def delete(self, category: Category, key: str) -> None:
        with self._locks.hold((str(category), key)):
            self._write(category, key, None)

    def list_all(self, category: Category) -> list[tuple[str, Record]]:
        cat = str(category)
        with self._dict_lock:
            items = [(k, v) for (c, k), v in self._records.items() if c == cat]
        return [(k, copy.deepcopy(v)) for k, v in sorted(items)]

    def update(self, category: Category, key: str, fn: Updater) -> Record | None:
        with self._locks.hold((str(category), key)):
            new = fn(self.get(category, key))
            self._write(category, key, new)
            return new

    # -- test helpers (not part of the Protocol) ------------------------

    def __len__(self) -> int:
        with self._dict_lock:
            return len(self._records)

    def _write(self, category: Category, key: str, record: Record | None) -> None:
        with self._dict_lock:
            if record is None:
                self._records.pop((str(category), key), None)
            else:
                self._records[(str(category), key)] = copy.deepcopy(record)


class InMemoryEventSink:
    """Collects events in a list (test helper)."""

    def __init__(self) -> None:
        self.events: list[ViolationEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: ViolationEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, check_type: str) -> list[ViolationEvent]:
        """Return the recorded events whose ``check_type`` equals *check_type*."""
        return [e for e in self.events if e.check_type == check_type]


class InMemoryBanSync:
    """Remembers every ban set handed to it (test helper)."""

    def __init__(self) -> None:
        self.snapshots: list[list[str]] = []

    def sync(self, addresses: Sequence[str]) -> None:
        self.snapshots.append(list(addresses))

    @property
    def latest(self) -> list[str] | None:
        return self.snapshots[-1] if self.snapshots else None
