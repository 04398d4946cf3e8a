"""
Logging setup shared by the engine, the memory services and the MCP server.
"""

import logging
import sys
from typing import Optional

from .config import AppConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty dependency loggers, capped at WARNING unless the app itself runs at DEBUG
DEPENDENCY_LOGGERS = ('boto3', 'botocore', 'urllib3', 'httpx', 'fastmcp')


def _level(config: AppConfig) -> int:
    return getattr(logging, config.log_level.upper(), logging.INFO)


def setup_logging(config: Optional[AppConfig] = None) -> None:
    """
    Configure the root logger to write to stdout.

    Calling it again only updates levels, so importing the package and starting the
    MCP server never stack duplicate handlers.

    Args:
        config: AppConfig instance, uses default if None
    """
    if config is None:
        from .config import config as default_config
        config = default_config

    level = _level(config)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

    dependency_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in DEPENDENCY_LOGGERS:
        logging.getLogger(name).setLevel(dependency_level)


def get_logger(name: str, config: Optional[AppConfig] = None) -> logging.Logger:
    """
    Get a module logger at the configured level.

    Args:
        name: Logger name (usually __name__)
        config: AppConfig instance, uses default if None

    Returns:
        Configured logger instance
    """
    if config is None:
        from .config import config as default_config
        config = default_config

    logger = logging.getLogger(name)
    logger.setLevel(_level(config))
    return logger
