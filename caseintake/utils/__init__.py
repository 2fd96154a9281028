"""Utility modules for configuration, logging, errors and encodings."""

from .config import Config
from .errors import IntakeError

__all__ = [
    'Config',
    'IntakeError'
]
