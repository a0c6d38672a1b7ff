"""Run the bot with long polling: python -m ollamabot"""

import sys

from ollamabot.config import ConfigError, get_settings
from ollamabot.telegram_bot.bot import get_bot_application, run_polling
from ollamabot.telegram_bot.logging_config import bot_logger as logger, setup_logging


def main() -> int:
    try:
        settings = get_settings()
        setup_logging(settings.log_level)
        get_bot_application(settings)
    except ConfigError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    logger.info("Starting bot in polling mode")
    run_polling(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
