"""Configuration and logging utilities.

Modules:
    config: Configuration builder and access functions
    logger: Rich component logger
"""

from . import config, logger

__all__ = ["config", "logger"]
