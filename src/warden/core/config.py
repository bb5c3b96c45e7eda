"""Warden engine configuration.

Defines the validated configuration model consumed by the decision
engine and its components, plus :func:`load_config` which deep-merges
caller overrides onto the defaults and turns validation failures into
:class:`~warden.core.errors.ConfigurationError`.
"""
from __future__ import annotations

import enum
import ipaddress
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from warden.core.errors import ConfigurationError
from warden.core.types import Check, Mode


class StorageFailurePolicy(enum.StrEnum):
    """What the engine does when the state store fails mid-evaluation.

    * **RAISE** -- propagate the :class:`StorageError` to the caller.
    * **OPEN** -- log the failure and allow the request.
    * **CLOSED** -- log the failure and block the request.
    """

    RAISE = "raise"
    OPEN = "open"
    CLOSED = "closed"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class AutoBanConfig(_Section):
    """Escalation settings (violations -> temporary ban -> permanent ban)."""

    enabled: bool = True
    violations_threshold: int = Field(
        default=5,
        ge=1,
        description="Violations that trigger a ban.",
    )
    ban_duration: int = Field(
        default=86400,
        ge=0,
        description="Temporary ban length in seconds; 0 makes every ban permanent.",
    )
    permanent_after_bans: int = Field(
        default=3,
        ge=1,
        description="The Nth ban issued to one address is permanent.",
    )


class RateLimitConfig(_Section):
    max_requests: int = Field(default=60, ge=1)
    window_seconds: int = Field(default=60, ge=1)


class WhitelistConfig(_Section):
    addresses: list[str] = Field(
        default_factory=list,
        description="Exact addresses or CIDR ranges that bypass every check.",
    )
    paths: list[str] = Field(
        default_factory=list,
        description="URI prefixes that bypass every check.",
    )

    @field_validator("addresses")
    @classmethod
    def _validate_addresses(cls, value: list[str]) -> list[str]:
        for entry in value:
            try:
                if "/" in entry:
                    ipaddress.ip_network(entry, strict=False)
                else:
                    ipaddress.ip_address(entry)
            except ValueError as exc:
                msg = f"invalid whitelist entry {entry!r}: {exc}"
                raise ValueError(msg) from exc
        return value


class BlockResponseConfig(_Section):
    status_code: int = Field(default=403, ge=100, le=599)
    body: str = "Access Denied"


class LogConfig(_Section):
    enabled: bool = True


class SyncConfig(_Section):
    enabled: bool = Field(
        default=False,
        description=(
            "Hand the full ban set to the sync collaborator whenever a "
            "permanent ban is issued."
        ),
    )


class StorageConfig(_Section):
    path: str | None = Field(
        default=None,
        description="Base directory for the file store; None keeps state in memory.",
    )
    strict_reads: bool = Field(
        default=False,
        description="Raise on unreadable records instead of treating them as absent.",
    )
    on_failure: StorageFailurePolicy = StorageFailurePolicy.RAISE


class WardenConfig(_Section):
    """Top-level configuration for a :class:`~warden.engine.DecisionEngine`.

    All fields carry defaults, so ``WardenConfig()`` is a working
    production configuration with every check enabled.
    """

    mode: Mode = Mode.PRODUCTION
    checks: dict[Check, bool] = Field(
        default_factory=lambda: {check: True for check in Check},
    )
    auto_ban: AutoBanConfig = Field(default_factory=AutoBanConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    whitelist: WhitelistConfig = Field(default_factory=WhitelistConfig)
    block_response: BlockResponseConfig = Field(default_factory=BlockResponseConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def merge_config(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* onto *defaults*.

    Nested mappings are merged key by key; any other value (lists
    included) replaces the default outright.
    """
    merged = dict(defaults)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged


def load_config(overrides: Mapping[str, Any] | None = None) -> WardenConfig:
    """Build a :class:`WardenConfig` from partial *overrides*.

    Raises
    ------
    ConfigurationError
        If the merged settings fail validation.
    """
    defaults = WardenConfig().model_dump(mode="json")
    data = merge_config(defaults, overrides or {})
    try:
        return WardenConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid Warden configuration: {exc.error_count()} error(s)",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
