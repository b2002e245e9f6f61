"""
Logging setup shared by every process that embeds the engine.
"""

from .config import get_logger, setup_logging
from .formatters import SimpleFormatter, StructuredFormatter

__all__ = [
    "setup_logging",
    "get_logger",
    "SimpleFormatter",
    "StructuredFormatter",
]
