"""structlog setup shared by every careerboard module.

Output is JSON lines on stdout unless ``LOG_DEV_MODE`` (or ``LOG_JSON=false``)
asks for the colored console renderer. Each record carries the request's
correlation id when one is bound, and credential-bearing fields are masked
before rendering.
"""

from __future__ import annotations

import logging
import os
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

import structlog

_request_id: ContextVar[Optional[str]] = ContextVar("careerboard_request_id", default=None)

# Substrings of field names whose values never reach the log sink
_MASKED_FIELDS = frozenset({"password", "secret", "token", "salt", "hash", "email", "cookie"})

_TRUTHY = {"1", "true", "yes", "on"}


def get_correlation_id() -> Optional[str]:
    return _request_id.get()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind ``correlation_id`` (or a fresh uuid4) to the running context."""
    value = correlation_id or uuid.uuid4().hex
    _request_id.set(value)
    return value


def _mask(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and len(value) > 4:
        return f"{value[:2]}***{value[-2:]}"
    return "***"


def _stamp_request_id(_logger: Any, _method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    request_id = _request_id.get()
    if request_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = request_id
    return event_dict


def _mask_credentials(_logger: Any, _method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for field_name, value in event_dict.items():
        if field_name == "event":
            continue
        lowered = field_name.lower()
        if any(marker in lowered for marker in _MASKED_FIELDS):
            event_dict[field_name] = _mask(value)
    return event_dict


def _renderers(pretty: bool) -> List[Any]:
    if pretty:
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging(
    level: str = "INFO", *, json_output: bool = True, development_mode: bool = False
) -> None:
    """(Re)configure structlog for the whole process.

    ``level`` is a stdlib level name; unknown names fall back to INFO.
    """
    threshold = logging.getLevelName(level.upper())
    if not isinstance(threshold, int):
        threshold = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _stamp_request_id,
            _mask_credentials,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            *_renderers(development_mode or not json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


configure_logging(
    os.getenv("LOG_LEVEL", "INFO"),
    json_output=_env_flag("LOG_JSON", "true"),
    development_mode=_env_flag("LOG_DEV_MODE", "false"),
)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
