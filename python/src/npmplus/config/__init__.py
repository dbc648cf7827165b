"""
npmplus Configuration

Settings model and logging setup shared by every component.
"""

from .logging_config import configure_logging, pkg_logger
from .settings import Settings

__all__ = [
    "Settings",
    "configure_logging",
    "pkg_logger",
]
