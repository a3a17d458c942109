"""
Logging configuration: one console handler on the package logger.

Modules log through logging.getLogger(__name__); uvicorn keeps its own handlers.
"""
import logging

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Configure the `dropsniper` logger and return it. Safe to call more than once.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown values fall back to INFO)
    """
    numeric_level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger("dropsniper")
    logger.setLevel(numeric_level)

    # Prevent propagation to root logger (avoid duplicate logs under uvicorn)
    logger.propagate = False

    # Remove existing handlers (prevent duplicates on reload)
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    return logger
