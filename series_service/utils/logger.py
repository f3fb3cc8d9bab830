from loguru import logger
import sys
from series_service.config.settings import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | {message}"
)


def configure_logging(level=None, sink=sys.stdout):
    """Route all service logs to one sink at the given (or configured) level."""
    logger.remove()
    logger.add(sink, level=level or settings.LOG_LEVEL, format=LOG_FORMAT, diagnose=False)
    return logger


configure_logging()

__all__ = ["logger", "configure_logging"]
