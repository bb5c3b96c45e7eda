"""Warden pattern detection.

* **PatternMatcher** -- suspicious path, user-agent and payload detectors
  with runtime add/remove.
* **PayloadRule** -- a labelled payload regex; order is precedence.
* **PatternEngine** -- cached regex compilation, ``google-re2`` when
  available.
* **DEFAULT_PATHS** / **DEFAULT_AGENTS** / **DEFAULT_PAYLOADS** -- bundled
  seed rules.
"""
from __future__ import annotations

from warden.patterns.defaults import (
    DEFAULT_AGENTS,
    DEFAULT_PATHS,
    DEFAULT_PAYLOADS,
    PayloadRule,
)
from warden.patterns.engine import PatternEngine
from warden.patterns.matcher import PatternMatcher

__all__ = [
    "DEFAULT_AGENTS",
    "DEFAULT_PATHS",
    "DEFAULT_PAYLOADS",
    "PatternEngine",
    "PatternMatcher",
    "PayloadRule",
]
