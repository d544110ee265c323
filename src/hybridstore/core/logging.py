"""
hybridstore.core.logging - structlog Setup
===========================================

Every component logs through ``structlog.get_logger()`` and binds a
``component`` key. This module only decides how those events are rendered;
it is safe to skip it entirely and let structlog use its defaults.

Usage:
    >>> from hybridstore.core.config import HybridStoreConfig
    >>> from hybridstore.core.logging import configure_logging
    >>> configure_logging(HybridStoreConfig(log_level="DEBUG"))
"""

from __future__ import annotations

import logging
from typing import Optional

import structlog

from hybridstore.core.config import HybridStoreConfig


def configure_logging(config: Optional[HybridStoreConfig] = None) -> None:
    """Configure structlog from the store configuration.

    Args:
        config: Store configuration. ``log_level`` sets the minimum level;
            ``environment == "prod"`` renders JSON lines instead of the
            console format.
    """
    config = config or HybridStoreConfig()
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if config.environment == "prod"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
