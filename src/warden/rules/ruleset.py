"""Custom policy rules.

Rules run after the built-in checks.  Evaluation order is ascending
``priority`` and, for equal priorities, the order in which the names were
first registered.  Re-registering a name swaps the rule and priority but
keeps its registration slot.

A rule that raises, or returns anything other than a
:class:`~warden.core.types.Verdict`, aborts the evaluation with
:class:`~warden.core.errors.RuleExecutionError`.
"""
from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from warden.core.errors import RuleExecutionError
from warden.core.types import RequestSnapshot, Verdict

if TYPE_CHECKING:
    from warden.core.interfaces import Rule

DEFAULT_PRIORITY = 50


class CallableRule:
    """Adapt a plain ``request -> Verdict`` function to the :class:`Rule` protocol."""

    __slots__ = ("_fn",)

    def __init__(self, fn: Callable[[RequestSnapshot], Verdict]) -> None:
        self._fn = fn

    def evaluate(self, request: RequestSnapshot) -> Verdict:
        return self._fn(request)

    def __repr__(self) -> str:
        return f"CallableRule({self._fn!r})"


@dataclass(slots=True)
class RuleEntry:
    """A registered rule.

    Attributes
    ----------
    name:
        Unique key.
    rule:
        The rule object.
    priority:
        Lower runs first.
    enabled:
        Disabled rules are skipped but stay registered.
    sequence:
        Registration order, used to break priority ties.
    """

    name: str
    rule: Rule
    priority: int
    enabled: bool
    sequence: int


class PolicyRuleSet:
    """Ordered registry of named custom rules."""

    def __init__(self) -> None:
        self._entries: dict[str, RuleEntry] = {}
        self._counter = itertools.count()

    def add(
        self,
        name: str,
        rule: Rule | Callable[[RequestSnapshot], Verdict],
        priority: int = DEFAULT_PRIORITY,
    ) -> None:
        """Register *rule* under *name*, replacing any rule with that name.

        *rule* may be an object with ``evaluate(request)`` or a plain
        callable taking the request.
        """
        if not hasattr(rule, "evaluate"):
            if not callable(rule):
                msg = f"Rule {name!r} must be callable or define evaluate()"
                raise TypeError(msg)
            rule = CallableRule(rule)

        existing = self._entries.get(name)
        sequence = existing.sequence if existing is not None else next(self._counter)
        self._entries[name] = RuleEntry(
            name=name,
            rule=rule,
            priority=priority,
            enabled=True,
            sequence=sequence,
        )

    def enable(self, name: str) -> None:
        entry = self._entries.get(name)
        if entry is not None:
            entry.enabled = True

    def disable(self, name: str) -> None:
        entry = self._entries.get(name)
        if entry is not None:
            entry.enabled = False

    def remove(self, name: str) -> None:
        self._entries.pop(name, None)

    def evaluate(self, request: RequestSnapshot) -> Verdict:
        """Run enabled rules in order and return the first non-pass verdict."""
        for entry in self.rules:
            if not entry.enabled:
                continue
            try:
                verdict = entry.rule.evaluate(request)
            except Exception as exc:
                raise RuleExecutionError(
                    entry.name,
                    f"Custom rule {entry.name!r} raised {type(exc).__name__}: {exc}",
                ) from exc
            if not isinstance(verdict, Verdict):
                raise RuleExecutionError(
                    entry.name,
                    f"Custom rule {entry.name!r} returned {type(verdict).__name__}, "
                    "expected Verdict",
                )
            if not verdict.is_pass:
                return verdict
        return Verdict.pass_()

    # -- Introspection ------------------------------------------------------

    @property
    def rules(self) -> list[RuleEntry]:
        """Return all registrations (enabled or not) in evaluation order."""
        return sorted(self._entries.values(), key=lambda e: (e.priority, e.sequence))

    def get(self, name: str) -> RuleEntry | None:
        return self._entries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RuleEntry]:
        return iter(self.rules)
