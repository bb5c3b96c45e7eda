"""Path, user-agent and payload detectors.

The rule lists live for the lifetime of the matcher.  The ``add_*`` and
``remove_*`` methods are administrative: call them at start-up or under
external synchronisation, not while requests are being evaluated.
"""
from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import unquote_plus

from warden.patterns.defaults import (
    DEFAULT_AGENTS,
    DEFAULT_PATHS,
    DEFAULT_PAYLOADS,
    PayloadRule,
)
from warden.patterns.engine import PatternEngine


class PatternMatcher:
    """Substring and regex detectors for one engine.

    Parameters
    ----------
    paths:
        Suspicious URI substrings.
    agents:
        Suspicious user-agent substrings.
    payloads:
        Ordered payload rules; earlier rules take precedence.
    engine:
        Regex engine used for payload rules.
    """

    def __init__(
        self,
        paths: Iterable[str] = (),
        agents: Iterable[str] = (),
        payloads: Iterable[PayloadRule] = (),
        *,
        engine: PatternEngine | None = None,
    ) -> None:
        self._engine = engine or PatternEngine()
        self._paths: list[str] = []
        self._agents: list[str] = []
        self._payloads: list[PayloadRule] = []
        self.add_paths(paths)
        for agent in agents:
            self.add_agent(agent)
        for rule in payloads:
            self.add_payload(rule.pattern, rule.label)

    @classmethod
    def with_defaults(cls, *, engine: PatternEngine | None = None) -> PatternMatcher:
        """Build a matcher seeded with the bundled rule data."""
        return cls(DEFAULT_PATHS, DEFAULT_AGENTS, DEFAULT_PAYLOADS, engine=engine)

    # -- Paths --------------------------------------------------------------

    def is_suspicious_path(self, uri: str) -> bool:
        """Return ``True`` if the decoded, lower-cased *uri* contains a path rule."""
        decoded = unquote_plus(uri).lower()
        return any(p.lower() in decoded for p in self._paths)

    def add_path(self, pattern: str) -> None:
        self._paths.append(pattern)

    def add_paths(self, patterns: Iterable[str]) -> None:
        for pattern in patterns:
            self.add_path(pattern)

    def remove_path(self, pattern: str) -> None:
        """Remove every path rule equal to *pattern*, ignoring case."""
        needle = pattern.lower()
        self._paths = [p for p in self._paths if p.lower() != needle]

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    # -- User agents --------------------------------------------------------

    def is_suspicious_agent(self, user_agent: str) -> bool:
        """Return ``True`` for a blank agent or one containing an agent rule."""
        if not user_agent.strip():
            return True
        ua = user_agent.lower()
        return any(a.lower() in ua for a in self._agents)

    def add_agent(self, keyword: str) -> None:
        self._agents.append(keyword)

    def remove_agent(self, keyword: str) -> None:
        """Remove every agent rule equal to *keyword*, ignoring case."""
        needle = keyword.lower()
        self._agents = [a for a in self._agents if a.lower() != needle]

    @property
    def agents(self) -> list[str]:
        return list(self._agents)

    # -- Payloads -----------------------------------------------------------

    def detect_payload(self, text: str) -> str | None:
        """Return the label of the first payload rule matching *text*, or ``None``."""
        rule = self._engine.first_match(self._payloads, text)
        return rule.label if rule is not None else None

    def add_payload(self, pattern: str, label: str = "custom") -> None:
        """Append a payload rule; it runs after every existing rule.

        Raises ``re.error`` if *pattern* does not compile.
        """
        self._engine.compile(pattern)
        self._payloads.append(PayloadRule(label, pattern))

    def remove_payload(self, label: str) -> None:
        """Remove every payload rule carrying *label*."""
        self._payloads = [r for r in self._payloads if r.label != label]

    @property
    def payloads(self) -> list[PayloadRule]:
        return list(self._payloads)
