"""
Common utilities for m365-offboard
"""

from .config import config
from .logging import setup_logging, get_logger

__all__ = [
    'config',
    'setup_logging',
    'get_logger',
]
