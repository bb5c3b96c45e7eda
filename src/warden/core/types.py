"""Warden shared domain types.

This module defines the value types, enums, records and result objects
shared across the Warden implementation.

Key design decisions:
* ``RequestSnapshot`` is a frozen Pydantic model built by the transport
  layer; the core never reads process or environment state itself.
* Persisted records (``BanRecord``, ``ViolationRecord``,
  ``RateWindowRecord``, ``BanHistoryRecord``) are Pydantic models so a
  payload that fails validation can be recognised as corrupt.
* ``Verdict``, ``Decision`` and ``ViolationEvent`` are immutable
  dataclasses: they are produced once per evaluation and never mutated.
* Enums use *string* values so they serialise cleanly to JSON and config.
"""
from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Mode(enum.StrEnum):
    """Engine operating mode.

    * **PRODUCTION** -- detect, log, block and auto-ban.
    * **LEARNING** -- detect and log only; never blocks except banned IPs.
    * **OFF** -- every request is allowed without inspection.
    """

    PRODUCTION = "production"
    LEARNING = "learning"
    OFF = "off"


class Check(enum.StrEnum):
    """Detection checks that can be toggled individually.

    Members are listed in pipeline order.
    """

    RATE_LIMIT = "rate_limit"
    BLOCKED_PATH = "blocked_path"
    USER_AGENT = "user_agent"
    PAYLOAD = "payload"
    CUSTOM_RULES = "custom_rules"


class EventType(enum.StrEnum):
    """Type tag carried by violation events and block decisions."""

    BANNED_IP = "banned_ip"
    RATE_LIMIT = "rate_limit"
    BLOCKED_PATH = "blocked_path"
    USER_AGENT = "user_agent"
    PAYLOAD = "payload"
    CUSTOM_RULE = "custom_rule"
    CUSTOM_RULE_LOG = "custom_rule_log"
    STORAGE_FAILURE = "storage_failure"


class Category(enum.StrEnum):
    """Record categories held by a :class:`~warden.core.interfaces.StateStore`."""

    BANS = "bans"
    VIOLATIONS = "violations"
    RATE = "rate"
    HISTORY = "history"


class VerdictAction(enum.StrEnum):
    """Three-way outcome of a custom rule."""

    PASS = "pass"
    BLOCK = "block"
    LOG = "log"


class DecisionAction(enum.StrEnum):
    """Final outcome of a request evaluation."""

    ALLOW = "allow"
    BLOCK = "block"


# ---------------------------------------------------------------------------
# Request snapshot
# ---------------------------------------------------------------------------

ParamValue = str | list[str]


class RequestSnapshot(BaseModel):
    """Immutable view of one inbound HTTP request.

    Every field is an opaque string (or mapping of strings); the core
    never rejects a request for being malformed, only for matching a
    detection rule.
    """

    model_config = ConfigDict(frozen=True)

    source_address: str = "0.0.0.0"
    path: str = "/"
    raw_uri: str = "/"
    method: str = "GET"
    user_agent: str = ""
    referer: str = ""
    query_params: dict[str, ParamValue] = Field(default_factory=dict)
    body_params: dict[str, ParamValue] = Field(default_factory=dict)
    cookies: dict[str, ParamValue] = Field(default_factory=dict)
    raw_body: str = ""
    timestamp: float = Field(default_factory=time.time)

    def raw_input(self) -> str:
        """Return all user-supplied input as one string for payload scanning.

        Query, body and cookie values are joined in that order (list
        values joined by spaces), followed by the raw body when present.
        """
        parts: list[str] = []
        for bag in (self.query_params, self.body_params, self.cookies):
            for value in bag.values():
                parts.append(" ".join(value) if isinstance(value, list) else value)
        if self.raw_body:
            parts.append(self.raw_body)
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

class BanRecord(BaseModel):
    """An active (or lazily expiring) ban on one identity.

    ``expires_at == 0`` marks a permanent ban.
    """

    identity: str
    reason: str = ""
    banned_at: float
    expires_at: float = 0.0
    ban_count: int = Field(default=1, ge=1)

    @property
    def is_permanent(self) -> bool:
        return self.expires_at == 0

    def is_expired(self, now: float) -> bool:
        """Return ``True`` if this is a temporary ban whose expiry has passed."""
        return not self.is_permanent and now > self.expires_at


class ViolationRecord(BaseModel):
    """Running count of detected violations since the last ban or unban."""

    identity: str
    count: int = Field(default=0, ge=0)
    first_seen: float
    last_seen: float


class RateWindowRecord(BaseModel):
    """Request timestamps observed for one identity, oldest first."""

    identity: str
    timestamps: list[float] = Field(default_factory=list)


class BanHistoryRecord(BaseModel):
    """Ban count carried over after a temporary ban expires.

    Keeps escalation working across ban cycles once the live
    :class:`BanRecord` has been removed.
    """

    identity: str
    ban_count: int = Field(ge=1)
    last_banned_at: float


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of a single custom rule.

    Use the factory class methods rather than the constructor::

        Verdict.pass_()
        Verdict.block("too many login attempts")
        Verdict.log("unusual referer")
    """

    action: VerdictAction
    reason: str = ""

    @classmethod
    def pass_(cls) -> Verdict:
        return cls(VerdictAction.PASS)

    @classmethod
    def block(cls, reason: str = "custom rule") -> Verdict:
        return cls(VerdictAction.BLOCK, reason)

    @classmethod
    def log(cls, reason: str = "custom rule") -> Verdict:
        return cls(VerdictAction.LOG, reason)

    @property
    def is_pass(self) -> bool:
        return self.action is VerdictAction.PASS

    @property
    def is_block(self) -> bool:
        return self.action is VerdictAction.BLOCK

    @property
    def is_log(self) -> bool:
        return self.action is VerdictAction.LOG


@dataclass(frozen=True, slots=True)
class Decision:
    """Per-request result handed back to the transport layer.

    Attributes
    ----------
    action : DecisionAction
        ``ALLOW`` or ``BLOCK``.
    status_code : int | None
        HTTP status to emit when blocked.
    body : str | None
        Response body to emit when blocked.
    check : str | None
        The check that produced the block (an :class:`EventType` value).
    reason : str
        Human-readable reason for the block.
    """

    action: DecisionAction
    status_code: int | None = None
    body: str | None = None
    check: str | None = None
    reason: str = ""

    @classmethod
    def allow(cls) -> Decision:
        return cls(DecisionAction.ALLOW)

    @classmethod
    def block(
        cls,
        status_code: int,
        body: str,
        *,
        check: str | None = None,
        reason: str = "",
    ) -> Decision:
        return cls(DecisionAction.BLOCK, status_code, body, check, reason)

    @property
    def blocked(self) -> bool:
        return self.action is DecisionAction.BLOCK


USER_AGENT_PREFIX_LENGTH = 80


@dataclass(frozen=True, slots=True)
class ViolationEvent:
    """A detected violation (or custom-rule log entry) for the event sink."""

    timestamp: float
    address: str
    check_type: str
    uri: str
    reason: str
    user_agent_prefix: str
    method: str

    @classmethod
    def from_request(
        cls,
        check_type: str,
        request: RequestSnapshot,
        reason: str,
        *,
        timestamp: float,
    ) -> ViolationEvent:
        return cls(
            timestamp=timestamp,
            address=request.source_address,
            check_type=str(check_type),
            uri=request.raw_uri,
            reason=reason,
            user_agent_prefix=request.user_agent[:USER_AGENT_PREFIX_LENGTH],
            method=request.method,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "address": self.address,
            "check_type": self.check_type,
            "uri": self.uri,
            "reason": self.reason,
            "user_agent_prefix": self.user_agent_prefix,
            "method": self.method,
        }
