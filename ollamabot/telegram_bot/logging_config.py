"""
Logging configuration for the relay bot.

Everything logs through the "ollamabot" logger to stdout; the level
comes from LOG_LEVEL and is applied again once settings are loaded.
"""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the "ollamabot" logger; safe to call more than once."""
    logger = logging.getLogger("ollamabot")
    logger.setLevel(level.upper())

    # Repeated calls replace the handler instead of duplicating output
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    # Root handlers would print every line twice
    logger.propagate = False

    return logger


bot_logger = setup_logging()
