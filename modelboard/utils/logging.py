import sys
from loguru import logger
from modelboard.config import settings


def setup_logging():
    """Configure logging with Loguru."""
    # Remove default handler
    logger.remove()
    logger.configure(extra={"name": "modelboard"})

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
               "<level>{message}</level>",
        level=settings.log_level,
        colorize=True,
        backtrace=True,
        diagnose=settings.debug,
    )

    if settings.log_file:
        logger.add(
            settings.log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} | {message}",
            level=settings.log_level,
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    return logger


def get_logger(name: str = None):
    """Get a logger instance bound to a component name."""
    return logger.bind(name=name or "modelboard")
