"""
Logging configuration using Loguru.

The package logs through the host application's loguru logger and is
disabled by default. Setting JACHE_LOG_LEVEL or JACHE_LOG_TO_FILE=true
enables it and adds sinks that only receive jache records.
"""

import os
import sys
from datetime import datetime


from loguru import logger

LOG_LEVEL = os.getenv("JACHE_LOG_LEVEL")
LOG_TO_FILE = os.getenv("JACHE_LOG_TO_FILE", "false").lower() == "true"

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[name]}:{function}:{line} | {message}"
)

SESSION_ID = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

# Sinks added by this module, so tests and hosts can remove them
SINK_IDS: list[int] = []

logger.disable("jache")

if LOG_LEVEL or LOG_TO_FILE:
    logger.enable("jache")

if LOG_LEVEL:
    SINK_IDS.append(
        logger.add(
            sys.stderr,
            format=LOG_FORMAT,
            level=LOG_LEVEL,
            filter="jache",
        )
    )

if LOG_TO_FILE:
    SINK_IDS.append(
        logger.add(
            f"logs/jache_{SESSION_ID}.log",
            format=LOG_FORMAT,
            level="DEBUG",
            filter="jache",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )
    )


def get_logger(name: str):
    """Get a named logger instance."""
    return logger.bind(name=name)
