"""
Centralized logging configuration for m365-cli.

Request/response dumps go to TRACE, progress messages to INFO. Everything
is written to stderr so that stdout only carries command output.
"""

import logging
import os
import sys
from typing import Optional

# Define TRACE level (below DEBUG)
TRACE_LEVEL = 5

def add_trace_level():
    """Add TRACE level to logging module."""
    logging.addLevelName(TRACE_LEVEL, "TRACE")

    def trace(self, message, *args, **kwargs):
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, message, args, **kwargs)

    logging.Logger.trace = trace

# Add TRACE level on module import
add_trace_level()

def setup_logging(level: Optional[str] = None, debug: bool = False, verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level string (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
        debug: If True, sets level to TRACE regardless of other settings
        verbose: If True, sets level to INFO unless debug is set
    """
    if debug:
        log_level = TRACE_LEVEL
    elif verbose:
        log_level = logging.INFO
    else:
        level = (level or os.getenv("LOG_LEVEL", "WARNING")).upper()
        if level == "TRACE":
            log_level = TRACE_LEVEL
        else:
            log_level = getattr(logging, level, logging.WARNING)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    # basicConfig is a no-op once configured, so set our logger explicitly
    logging.getLogger("m365_cli").setLevel(log_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given module name.

    Args:
        name: Name of the module/component

    Returns:
        Configured logger instance
    """
    return logging.getLogger(f"m365_cli.{name}")

def mask_token(token: Optional[str]) -> str:
    """Shorten a bearer token for log output."""
    if not token:
        return '<none>'
    if len(token) <= 10:
        return '***'
    return f"{token[:10]}..."
