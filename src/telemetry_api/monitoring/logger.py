"""Loguru configuration for the service."""

import json
import logging
import sys
import traceback

import loguru
from fastapi import Response
from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<bold><white>{message}</white></bold> | <dim>{extra}</dim>{stacktrace}"
)

# Standard-library loggers that only matter from WARNING up
QUIET_LOGGERS = ("asyncpg", "uvicorn.access")


# Runs at import (src/telemetry_api/__init__.py) and again in create_app with the configured level
def configure_logger(level: str = "INFO", json_logs: bool = False):
    """
    Replace loguru's default sink with a single stdout sink.

    Args:
        level: Minimum level written to stdout
        json_logs: Write one JSON object per record instead of the text format
    """
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.remove()

    if json_logs:
        logger.add(sink=sys.stdout, level=level, serialize=True, diagnose=False)
        return

    logger.add(
        sink=sys.stdout,
        level=level,
        diagnose=False,
        format=TEXT_FORMAT,
        filter=flatten_record,
    )


def flatten_record(record: "loguru.Record") -> bool:
    r"""
    Keep every text record on one line.

    The extras become a JSON object, and the traceback of an exception is appended with
    \r in place of \n so that log collectors do not split it into several events.
    """
    if record["extra"]:
        record["extra"] = json.dumps(record["extra"], default=str)

    record["stacktrace"] = ""
    if record["exception"]:
        record["stacktrace"] = " " + one_line_traceback(record["exception"])

    return True


def one_line_traceback(exception) -> str:
    exc_type, exc_value, exc_traceback = exception
    return "".join(traceback.format_exception(exc_type, exc_value, exc_traceback)).replace("\n", "\r")


def log_response_info(response: Response):
    """Log an error response built by one of the exception handlers."""
    logger.debug(
        "Error response sent",
        status_code=response.status_code,
        content_type=response.headers.get("content-type"),
    )
