"""
Centralized logging configuration.

Library modules only call logging.getLogger(__name__); entry points
(CLI, API server) call setup_logging once.
"""
import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_NAME = "translation-pipeline"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the root logger with a single console handler.

    Safe to call more than once: the handler is installed only the first
    time, later calls just update the level.

    Returns:
        The root logger.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        console = logging.StreamHandler()
        console.set_name(_HANDLER_NAME)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return root
