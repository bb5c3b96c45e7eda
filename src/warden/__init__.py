"""Warden -- stateful request firewall.

Inspects inbound HTTP requests and decides to allow, log or block them,
escalating repeat offenders from temporary to permanent bans.

Components
----------
* State store (:mod:`warden.storage`, :mod:`warden.core.interfaces`)
* Access list and violations (:mod:`warden.access`)
* Rate limiting (:mod:`warden.ratelimit`)
* Pattern detection (:mod:`warden.patterns`)
* Custom rules (:mod:`warden.rules`)
* Decision engine (:mod:`warden.engine`)
"""
from __future__ import annotations

__version__ = "0.1.0"

from warden.access import AccessList, ViolationTracker, ip_matches, normalize_address
from warden.core.config import StorageFailurePolicy, WardenConfig, load_config
from warden.core.errors import (
    ConfigurationError,
    RuleExecutionError,
    StorageError,
    StorageReadError,
    StorageWriteError,
    WardenError,
)
from warden.core.interfaces import (
    BanSync,
    EventSink,
    InMemoryBanSync,
    InMemoryEventSink,
    InMemoryStateStore,
    Rule,
    StateStore,
)
from warden.core.types import (
    BanRecord,
    Category,
    Check,
    Decision,
    DecisionAction,
    EventType,
    Mode,
    RequestSnapshot,
    Verdict,
    VerdictAction,
    ViolationEvent,
    ViolationRecord,
)
from warden.engine import DecisionEngine, build_engine
from warden.events import LoggingEventSink
from warden.patterns import PatternEngine, PatternMatcher, PayloadRule
from warden.ratelimit import RateWindow
from warden.rules import CallableRule, PolicyRuleSet
from warden.storage import FileStateStore

__all__ = [
    "__version__",
    # Engine
    "DecisionEngine",
    "build_engine",
    # Config
    "StorageFailurePolicy",
    "WardenConfig",
    "load_config",
    # Errors
    "ConfigurationError",
    "RuleExecutionError",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "WardenError",
    # Types
    "BanRecord",
    "Category",
    "Check",
    "Decision",
    "DecisionAction",
    "EventType",
    "Mode",
    "RequestSnapshot",
    "Verdict",
    "VerdictAction",
    "ViolationEvent",
    "ViolationRecord",
    # Interfaces
    "BanSync",
    "EventSink",
    "Rule",
    "StateStore",
    "InMemoryBanSync",
    "InMemoryEventSink",
    "InMemoryStateStore",
    # Components
    "AccessList",
    "CallableRule",
    "FileStateStore",
    "LoggingEventSink",
    "PatternEngine",
    "PatternMatcher",
    "PayloadRule",
    "PolicyRuleSet",
    "RateWindow",
    "ViolationTracker",
    "ip_matches",
    "normalize_address",
]
