"""Address normalisation and CIDR matching.

An entry without a ``/`` is an exact address; an entry with one is a
network whose prefix length masks the address bytes (0-32 for IPv4,
0-128 for IPv6).  Host bits set in the network part are ignored, so
``10.1.2.3/8`` behaves like ``10.0.0.0/8``.  IPv4 entries never match
IPv6 addresses and vice versa, and anything that does not parse never
matches.
"""
from __future__ import annotations

import ipaddress
from functools import lru_cache

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def normalize_address(address: str) -> str:
    """Return the canonical text form of *address*.

    ``2001:DB8:0::1`` becomes ``2001:db8::1``.  Text that is not an IP
    address is returned stripped but otherwise unchanged, so it still
    works as a storage key.
    """
    text = address.strip()
    parsed = _parse_address(text)
    return str(parsed) if parsed is not None else text


def ip_matches(address: str, entry: str) -> bool:
    """Return ``True`` if *address* equals or falls inside *entry*."""
    entry = entry.strip()
    if "/" not in entry:
        parsed_entry = _parse_address(entry)
        parsed = _parse_address(address.strip())
        if parsed_entry is None or parsed is None:
            return address.strip() == entry
        return parsed == parsed_entry

    network = _parse_network(entry)
    parsed = _parse_address(address.strip())
    if network is None or parsed is None:
        return False
    if network.version != parsed.version:
        return False
    return parsed in network


@lru_cache(maxsize=4096)
def _parse_address(text: str) -> IPAddress | None:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


@lru_cache(maxsize=1024)
def _parse_network(text: str) -> IPNetwork | None:
    try:
        return ipaddress.ip_network(text, strict=False)
    except ValueError:
        return None
