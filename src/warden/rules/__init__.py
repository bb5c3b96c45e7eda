"""Warden custom rules.

* **PolicyRuleSet** -- named rules ordered by priority then registration,
  with enable/disable/remove.
* **CallableRule** -- adapts a plain function to the ``Rule`` protocol.
* **RuleEntry** -- a registration as seen through ``PolicyRuleSet.rules``.
"""
from __future__ import annotations

from warden.rules.ruleset import DEFAULT_PRIORITY, CallableRule, PolicyRuleSet, RuleEntry

__all__ = [
    "DEFAULT_PRIORITY",
    "CallableRule",
    "PolicyRuleSet",
    "RuleEntry",
]
