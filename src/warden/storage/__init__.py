"""Warden persistent state.

* **FileStateStore** -- durable one-JSON-file-per-record store with
  per-key atomic read-modify-write.
* **KeyedLockRegistry** -- reference-counted per-key locks shared by the
  store implementations.
* **parse_record** / **dump_record** -- conversion between raw records and
  the Pydantic record models, treating schema failures as corruption.
"""
from __future__ import annotations

from warden.storage.file_store import FileStateStore, key_from_filename, safe_filename
from warden.storage.locks import KeyedLockRegistry
from warden.storage.records import dump_record, parse_record

__all__ = [
    "FileStateStore",
    "KeyedLockRegistry",
    "dump_record",
    "key_from_filename",
    "parse_record",
    "safe_filename",
]
