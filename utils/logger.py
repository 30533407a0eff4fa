"""
Logging utility functions and helpers.
"""

import logging


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (usually __name__)

    Returns:
        Configured logger

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def mask_token(token: str | None, visible: int = 8) -> str:
    """
    Shorten a token for log output.

    Only the first `visible` characters are kept so a log line can be
    correlated with a client report without leaking a usable credential.
    """
    if not token:
        return "<empty>"
    if len(token) <= visible:
        return "***"
    return f"{token[:visible]}..."
