"""Structured logging for launchpad.

Library modules log through ``logging.getLogger(__name__)``; once
``configure_logging()`` has run, those records and structlog events share
one renderer (JSON lines by default).  Every entry carries the current run
id, plus the submission id while a provisioning run is in progress.

Credentials never reach the output: values under token-like keys are
replaced before rendering.

Usage::

    from launchpad.observability import configure_logging, get_logger

    configure_logging()
    with provisioning_context("sub_1"):
        get_logger().info("step_completed", step="folder")
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Iterator

import structlog

run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)

REDACTED = "[redacted]"
SECRET_KEYS = frozenset({
    "token",
    "access_token",
    "refresh_token",
    "authorization",
    "api_key",
})

# Libraries that log every request URL at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_configured = False


def bind_run_id(run_id: str | None = None) -> str:
    """Set the run id for the current context and return it."""
    rid = run_id or uuid.uuid4().hex[:12]
    run_id_ctx.set(rid)
    return rid


@contextmanager
def provisioning_context(submission_id: str, **extra: str) -> Iterator[None]:
    """Tag every entry logged inside the block with the submission id."""
    with structlog.contextvars.bound_contextvars(submission_id=submission_id, **extra):
        yield


def add_run_id(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    rid = run_id_ctx.get()
    if rid is not None:
        event_dict.setdefault("run_id", rid)
    return event_dict


def redact_secrets(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        add_run_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Route stdlib and structlog output through one formatter.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL`` or INFO.
        json_output: JSON lines when True, console output when False;
            defaults to ``LOG_FORMAT != "console"``.
        stream: Destination, stdout by default.

    Only the first call has an effect until ``reset_logging()``.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") != "console"
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def reset_logging() -> None:
    """Allow ``configure_logging()`` to run again (tests)."""
    global _configured
    _configured = False
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
