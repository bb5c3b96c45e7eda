"""Warden access control.

* **AccessList** -- whitelist membership and persistent bans with lazy
  expiry and escalating ``ban_count``.
* **ViolationTracker** -- per-address violation counters that reset when a
  ban is issued.
* **ip_matches** / **normalize_address** -- exact and CIDR matching for
  IPv4 and IPv6, and canonical address keys.
"""
from __future__ import annotations

from warden.access.access_list import DEFAULT_BAN_DURATION, AccessList
from warden.access.cidr import ip_matches, normalize_address
from warden.access.violations import ViolationTracker

__all__ = [
    "DEFAULT_BAN_DURATION",
    "AccessList",
    "ViolationTracker",
    "ip_matches",
    "normalize_address",
]
