"""
Structured log helpers for the ``versevision`` logger.

Every event is a short ``area:event`` name. Context travels in the
``custom_dimensions`` extra so Application Insights indexes it per field.
"""
import logging
from typing import Any, Dict, Optional

LOGGER_NAME = "versevision"

_LOGGER = logging.getLogger(LOGGER_NAME)


def dimensions_for(session_id: Optional[str], **dimensions: Any) -> Dict[str, Any]:
    """Drop unset values and tag the session, when there is one."""
    dims = {key: value for key, value in dimensions.items() if value is not None}
    if session_id:
        dims["sessionId"] = session_id
    return dims


def log(level: int, session_id: Optional[str], message: str, *, exc_info: bool = False, **dimensions: Any) -> None:
    if not _LOGGER.isEnabledFor(level):
        return
    dims = dimensions_for(session_id, **dimensions)
    try:
        _LOGGER.log(level, message, extra={"custom_dimensions": dims}, exc_info=exc_info)
    except (KeyError, TypeError):
        # handler rejected the extra mapping; keep the dimensions in the text
        _LOGGER.log(level, "%s | %s", message, dims, exc_info=exc_info)


def info(session_id: Optional[str], message: str, **dimensions: Any) -> None:
    log(logging.INFO, session_id, message, **dimensions)


def warning(session_id: Optional[str], message: str, **dimensions: Any) -> None:
    log(logging.WARNING, session_id, message, **dimensions)


def error(session_id: Optional[str], message: str, *, exc_info: bool = False, **dimensions: Any) -> None:
    log(logging.ERROR, session_id, message, exc_info=exc_info, **dimensions)
