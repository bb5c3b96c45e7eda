#!/usr/bin/env python3
"""Warden quickstart -- block a scanner, then ban it.

Demonstrates the core workflow of the Warden request firewall:

1. Build an engine with an in-memory store and a short escalation policy.
2. Register a custom rule.
3. Evaluate a benign browser request.
4. Evaluate scanner requests until it is auto-banned.
5. Inspect the ban record and the recorded violation events.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import logging

from warden import (
    InMemoryEventSink,
    RequestSnapshot,
    Verdict,
    build_engine,
)

BROWSER = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # -- Step 1: Build the engine --------------------------------------------
    events = InMemoryEventSink()
    engine = build_engine(
        {
            "auto_ban": {"violations_threshold": 3, "ban_duration": 600},
            "whitelist": {"addresses": ["127.0.0.1"], "paths": ["/healthz"]},
        },
        event_sink=events,
    )
    print(f"[1] Engine ready (mode={engine.mode}, store={type(engine.store).__name__})")

    # -- Step 2: Register a custom rule --------------------------------------
    def no_trace(request: RequestSnapshot) -> Verdict:
        if request.method == "TRACE":
            return Verdict.block("TRACE is disabled")
        return Verdict.pass_()

    engine.rules.add("no-trace", no_trace, priority=10)
    print(f"[2] Custom rules: {[entry.name for entry in engine.rules]}")

    # -- Step 3: A normal visitor --------------------------------------------
    visitor = RequestSnapshot(
        source_address="192.0.2.44",
        path="/shop",
        raw_uri="/shop?category=shoes",
        user_agent=BROWSER,
        query_params={"category": "shoes"},
    )
    decision = engine.evaluate(visitor)
    print(f"[3] Visitor: {decision.action}")

    # -- Step 4: A scanner ---------------------------------------------------
    scan_paths = ["/.env", "/wp-login.php", "/phpmyadmin/", "/admin"]
    for uri in scan_paths:
        attempt = RequestSnapshot(
            source_address="198.51.100.7",
            path=uri,
            raw_uri=uri,
            user_agent="Mozilla/5.0 zgrab/0.x",
        )
        decision = engine.evaluate(attempt)
        print(f"[4] Scanner {uri:<16} -> {decision.action} {decision.status_code} ({decision.reason})")

    # -- Step 5: Inspect state -----------------------------------------------
    ban = engine.access.get_ban_info("198.51.100.7")
    if ban is not None:
        print(f"[5] Ban #{ban.ban_count} until {ban.expires_at:.0f}: {ban.reason}")
    print(f"    {len(events.events)} violation event(s) recorded")
    for event in events.events:
        print(f"    - {event.check_type}: {event.reason}")


if __name__ == "__main__":
    main()
