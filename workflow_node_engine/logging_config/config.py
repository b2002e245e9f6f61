"""
Logging configuration for processes embedding the node execution engine.
"""

import logging
import sys
from typing import Optional

from workflow_node_engine.config import get_settings

from .formatters import SimpleFormatter, StructuredFormatter

NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "asyncio",
    "urllib3",
]


def setup_logging(
    service_name: str = "workflow_node_engine",
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Install a stdout handler on the root logger.

    Args:
        service_name: Name of the logger returned to the caller
        log_level: DEBUG, INFO, WARNING or ERROR; defaults to the engine settings
        log_format: "simple", "json" or "standard"; defaults to the engine settings

    Returns:
        The service logger
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    log_format = log_format or settings.log_format
    level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    elif log_format == "simple":
        formatter = SimpleFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(levelname)s:     %(asctime)s - %(name)s - [%(filename)s:%(lineno)d] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"Logging configured for {service_name} with level={level_name}, format={log_format}")
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
