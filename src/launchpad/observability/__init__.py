"""Observability infrastructure for launchpad.

Quick start::

    from launchpad.observability import configure_logging, get_logger

    configure_logging()
    logger = get_logger()
    logger.info("provisioning_started", submission_id="sub_1")
"""

from .logging import (
    bind_run_id,
    configure_logging,
    get_logger,
    provisioning_context,
    reset_logging,
    run_id_ctx,
)

__all__ = [
    "bind_run_id",
    "configure_logging",
    "get_logger",
    "provisioning_context",
    "reset_logging",
    "run_id_ctx",
]
