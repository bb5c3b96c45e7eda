"""Regex backend for payload rules.

Payload rules run against attacker-controlled input, so ``google-re2``
(linear-time, no backtracking) is used when installed; the standard
library ``re`` module is the backend otherwise.  Rules carry their flags
inline (``(?i)...``) and therefore behave the same under either backend.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from typing import Any

from warden.patterns.defaults import PayloadRule

try:
    import re2
except ImportError:
    re2 = None

RE2_AVAILABLE = re2 is not None

_BACKEND_NAMES = {"re2": "google-re2", "re": "re (stdlib)"}


@lru_cache(maxsize=1024)
def _compiled(pattern: str, backend: str) -> Any:
    module = re2 if backend == "re2" else re
    return module.compile(pattern)


class PatternEngine:
    """Compile and run payload regexes on the selected backend.

    Compiled patterns are cached per ``(pattern, backend)`` at module
    level, so matchers sharing rules compile each one once.

    Parameters
    ----------
    prefer_re2:
        Use ``google-re2`` when it is installed.  ``False`` forces ``re``.
    """

    __slots__ = ("_backend",)

    def __init__(self, prefer_re2: bool = True) -> None:
        self._backend = "re2" if prefer_re2 and RE2_AVAILABLE else "re"

    @property
    def engine_name(self) -> str:
        return _BACKEND_NAMES[self._backend]

    def compile(self, pattern: str) -> Any:
        """Return the compiled form of *pattern*.

        Raises ``re.error`` (or the ``re2`` equivalent) for an invalid
        pattern.
        """
        return _compiled(pattern, self._backend)

    def search(self, pattern: str, text: str) -> bool:
        return self.compile(pattern).search(text) is not None

    def first_match(self, rules: Iterable[PayloadRule], text: str) -> PayloadRule | None:
        """Return the first of *rules* whose pattern occurs in *text*."""
        for rule in rules:
            if self.search(rule.pattern, text):
                return rule
        return None

    @staticmethod
    def clear_cache() -> None:
        _compiled.cache_clear()

    @staticmethod
    def cache_info() -> Any:
        return _compiled.cache_info()
