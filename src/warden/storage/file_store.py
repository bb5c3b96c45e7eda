"""File-backed state store.

Layout::

    <base>/bans/<key>.json
    <base>/violations/<key>.json
    <base>/rate/<key>.json
    <base>/history/<key>.json

Keys are percent-encoded into filenames (see :func:`safe_filename`).
Each record is one small JSON document.  Writes go to a temporary file in
the same directory and are moved into place with :func:`os.replace`, so a
reader sees either the old or the new record, never a partial one.
Read-modify-write cycles are serialised per ``(category, key)`` by a
:class:`~warden.storage.locks.KeyedLockRegistry`; the locks are
process-local, so several processes sharing one directory must not
update the same key concurrently.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from warden.core.errors import StorageReadError, StorageWriteError
from warden.core.types import Category
from warden.storage.locks import KeyedLockRegistry

logger = logging.getLogger(__name__)


def safe_filename(key: str) -> str:
    """Map *key* to a filename stem (``2001:db8::1`` -> ``2001%3Adb8%3A%3A1``).

    Percent-encoding keeps the mapping reversible, so distinct keys never
    share a file and :meth:`FileStateStore.list_all` can return the
    original key.
    """
    return quote(key, safe="")


def key_from_filename(stem: str) -> str:
    """Inverse of :func:`safe_filename`."""
    return unquote(stem)


class FileStateStore:
    """Durable :class:`~warden.core.interfaces.StateStore` on the local filesystem.

    Parameters
    ----------
    base_path:
        Root directory; one sub-directory per :class:`Category` is created
        on construction.
    strict_reads:
        When ``False`` (the default) a missing, empty or undecodable record
        reads as absent.  When ``True`` an unreadable or undecodable record
        raises :class:`StorageReadError`.
    """

    def __init__(self, base_path: str | os.PathLike[str], *, strict_reads: bool = False) -> None:
        self._base = Path(base_path)
        self._strict = strict_reads
        self._locks = KeyedLockRegistry()
        for category in Category:
            try:
                self._dir(category).mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageWriteError(
                    f"Cannot create storage directory {self._dir(category)}",
                    details={"path": str(self._dir(category))},
                ) from exc

    @property
    def base_path(self) -> Path:
        return self._base

    @property
    def strict_reads(self) -> bool:
        return self._strict

    # -- Protocol implementation ---------------------------------------

    def get(self, category: Category, key: str) -> dict[str, Any] | None:
        return self._read(self._file(category, key))

    def put(self, category: Category, key: str, record: dict[str, Any]) -> None:
        with self._locks.hold((str(category), safe_filename(key))):
            self._write(self._file(category, key), record)

    def delete(self, category: Category, key: str) -> None:
        with self._locks.hold((str(category), safe_filename(key))):
            self._unlink(self._file(category, key))

    def list_all(self, category: Category) -> list[tuple[str, dict[str, Any]]]:
        result: list[tuple[str, dict[str, Any]]] = []
        for path in sorted(self._dir(category).glob("*.json")):
            record = self._read(path)
            if record is not None:
                result.append((key_from_filename(path.stem), record))
        return result

    def update(
        self,
        category: Category,
        key: str,
        fn: Callable[[dict[str, Any] | None], dict[str, Any] | None],
    ) -> dict[str, Any] | None:
        path = self._file(category, key)
        with self._locks.hold((str(category), safe_filename(key))):
            new = fn(self._read(path))
            if new is None:
                self._unlink(path)
            else:
                self._write(path, new)
            return new

    # -- internal helpers ---------------------------------------------

    def _dir(self, category: Category) -> Path:
        return self._base / str(category)

    def _file(self, category: Category, key: str) -> Path:
        return self._dir(category) / f"{safe_filename(key)}.json"

    def _read(self, path: Path) -> dict[str, Any] | None:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            if self._strict:
                raise StorageReadError(details={"path": str(path)}) from exc
            logger.warning("Unreadable state record %s: %s", path, exc)
            return None

        if not content:
            return None
        try:
            data = json.loads(content)
        except ValueError as exc:
            if self._strict:
                raise StorageReadError(
                    "State record is not valid JSON", details={"path": str(path)}
                ) from exc
            logger.warning("Corrupt state record %s ignored", path)
            return None
        if not isinstance(data, dict):
            if self._strict:
                raise StorageReadError(
                    "State record is not a JSON object", details={"path": str(path)}
                )
            logger.warning("Corrupt state record %s ignored", path)
            return None
        return data

    def _write(self, path: Path, record: dict[str, Any]) -> None:
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record, fh, separators=(",", ":"))
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageWriteError(details={"path": str(path)}) from exc

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageWriteError(
                "State record could not be deleted", details={"path": str(path)}
            ) from exc
