"""Typed access to raw state records."""
from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from warden.core.errors import StorageReadError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_record(
    model: type[ModelT],
    raw: dict[str, Any] | None,
    *,
    strict: bool = False,
) -> ModelT | None:
    """Validate *raw* as *model*.

    A record that does not match the schema is corrupt: it reads as
    ``None`` unless *strict* is set, in which case
    :class:`StorageReadError` is raised.
    """
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        if strict:
            raise StorageReadError(
                f"Corrupt {model.__name__}",
                details={"errors": exc.error_count()},
            ) from exc
        logger.warning("Corrupt %s ignored (%d error(s))", model.__name__, exc.error_count())
        return None


def dump_record(record: BaseModel) -> dict[str, Any]:
    """Return the JSON-compatible mapping stored for *record*."""
    return record.model_dump(mode="json")
