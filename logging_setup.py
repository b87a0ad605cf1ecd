# -*- coding: utf-8 -*-
########################
# logging_setup.py
########################
# Purpose:
# - One-shot logging configuration for the beatline CLI (play, simulate, serve).
#
# Design notes:
# - Level comes from the CLI flags first (--debug beats --quiet), then BEATLINE_LOG_LEVEL overrides them.
# - The Flask control server logs every request through werkzeug; that logger stays at WARNING unless
#   the resolved level is DEBUG so per-frame polling does not flood the console.
# - Calling setup_logging() again after handlers exist only re-applies levels.
#
########################
# Interfaces:
# Public functions:
# - resolve_level(args=None, environ=None) -> int
# - setup_logging(args=None) -> int
#
########################

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional


LOG_LEVEL_ENV = "BEATLINE_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

CHATTY_LOGGERS = ("werkzeug",)


def _level_from_flags(args: Any) -> int:
    if args is None:
        return logging.INFO
    if getattr(args, "debug", False):
        return logging.DEBUG
    if getattr(args, "quiet", False):
        return logging.WARNING
    return logging.INFO


def _level_from_name(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    level = logging.getLevelName(str(text).strip().upper())
    # getLevelName returns "Level X" strings for unknown names.
    return level if isinstance(level, int) else None


def resolve_level(args: Any = None, environ: Optional[Mapping[str, str]] = None) -> int:
    environment = os.environ if environ is None else environ
    env_level = _level_from_name(environment.get(LOG_LEVEL_ENV))
    if env_level is not None:
        return env_level
    return _level_from_flags(args)


def setup_logging(args: Any = None) -> int:
    """Configure the root logger for a beatline command and return the level applied."""
    level = resolve_level(args)

    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    chatty_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for logger_name in CHATTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(chatty_level)

    logging.getLogger("beatline").debug("logging initialized at %s", logging.getLevelName(level))
    return level
