"""Warden error hierarchy.

Hierarchy
---------
::

    WardenError
    +-- ConfigurationError    (WRD-E1xx)
    +-- StorageError          (WRD-E2xx)
    |   +-- StorageReadError
    |   +-- StorageWriteError
    +-- RuleExecutionError    (WRD-E3xx)

Usage
-----
Raise concrete subclasses directly::

    raise StorageWriteError("bans/10.0.0.1", details={"path": str(path)})

Catch by category::

    try:
        engine.evaluate(request)
    except StorageError:
        # handles both read and write failures
        ...
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class WardenError(Exception):
    """Base exception for all Warden errors.

    Attributes
    ----------
    code : str
        Warden error code, e.g. ``"WRD-E100"``.
    http_status : int
        Recommended HTTP status code if the error reaches a client.
    message : str
        Human-readable description.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the operator.
    """

    code: str = "WRD-E000"
    http_status: int = 500
    message: str = "Unknown Warden error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for structured logs or admin APIs."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# WRD-E1xx  Configuration
# ===================================================================

class ConfigurationError(WardenError):
    """WRD-E100 -- Invalid or missing settings at start-up.

    Always fatal: no engine is constructed from a configuration that
    fails validation.
    """

    code = "WRD-E100"
    http_status = 500
    message = "Invalid Warden configuration"
    resolution = "Fix the reported settings and restart."


# ===================================================================
# WRD-E2xx  Storage
# ===================================================================

class StorageError(WardenError):
    """WRD-E200 -- The state store could not be read or written."""

    code = "WRD-E200"
    http_status = 503
    message = "State store failure"
    resolution = "Check that the storage directory exists and is writable."


class StorageReadError(StorageError):
    """WRD-E201 -- A record could not be read or decoded.

    Only raised by stores built with ``strict_reads=True``; otherwise an
    unreadable record is treated as absent.
    """

    code = "WRD-E201"
    message = "State record could not be read"


class StorageWriteError(StorageError):
    """WRD-E202 -- A record could not be persisted or deleted."""

    code = "WRD-E202"
    message = "State record could not be written"


# ===================================================================
# WRD-E3xx  Custom rules
# ===================================================================

class RuleExecutionError(WardenError):
    """WRD-E300 -- A custom rule raised or returned an invalid verdict.

    The original exception is chained as ``__cause__``.
    """

    code = "WRD-E300"
    http_status = 500
    message = "Custom rule failed"
    resolution = "Fix the rule implementation or disable it."

    def __init__(
        self,
        rule_name: str,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.rule_name = rule_name
        merged = {"rule": rule_name}
        if details:
            merged.update(details)
        super().__init__(
            message or f"Custom rule {rule_name!r} failed",
            details=merged,
        )
