"""Event sink that forwards violation events to :mod:`logging`.

Rotation, retention and formatting belong to whatever handlers the host
application attaches to the ``warden.events`` logger.
"""
from __future__ import annotations

import logging

from warden.core.types import ViolationEvent

EVENT_LOGGER_NAME = "warden.events"


class LoggingEventSink:
    """Emit one ``WARNING`` record per event.

    The event fields are attached as ``extra={"warden_event": {...}}`` so
    structured handlers can pick them up without parsing the message.
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.WARNING) -> None:
        self._logger = logger or logging.getLogger(EVENT_LOGGER_NAME)
        self._level = level

    def emit(self, event: ViolationEvent) -> None:
        self._logger.log(
            self._level,
            "ip=%s | type=%s | uri=%s | reason=%s | ua=%s",
            event.address,
            event.check_type,
            event.uri,
            event.reason,
            event.user_agent_prefix,
            extra={"warden_event": event.to_dict()},
        )
