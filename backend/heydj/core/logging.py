"""Logging configuration for the application

Channels used across the service:
    security    - rate limit, origin and CSRF rejections
    api_access  - one structured line per request
    billing     - checkout, webhook and plan changes
    attendee    - song request submissions
"""
import logging

from heydj.core.config import settings

NOISY_LOGGERS = ("stripe", "urllib3", "urllib3.connectionpool", "httpx", "sqlalchemy.engine")


def setup_logging():
    """Configure the root logger once at import of the app"""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
