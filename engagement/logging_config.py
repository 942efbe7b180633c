"""Logging setup for processes embedding the engagement core"""
import logging
from typing import Optional

from engagement.config import LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging with the project format"""
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
