# app/core/logging.py

import sys
from loguru import logger

from app.core.config import settings


def configure_logging():
    """
    Single stdout sink for the whole service.
    backtrace/diagnose leak local variables, so they stay off in prod.
    """
    is_dev = settings.ENV != "prod"

    logger.remove()
    logger.add(
        sys.stdout,
        level=settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        colorize=True,
        backtrace=is_dev,
        diagnose=is_dev,
    )
