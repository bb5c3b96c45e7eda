"""Warden rate limiting.

* **RateWindow** -- per-address sliding-window counter persisted in the
  state store.
"""
from __future__ import annotations

from warden.ratelimit.window import RateWindow

__all__ = ["RateWindow"]
