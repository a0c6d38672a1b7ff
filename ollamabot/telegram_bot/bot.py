"""
Main Telegram bot wiring.

Uses python-telegram-bot for receiving updates, either by long polling
(run_polling) or through the FastAPI webhook (handle_telegram_update).
Updates are processed one at a time; replies go out through the
httpx Bot API client.
"""

from typing import Optional

from telegram import Update
from telegram.ext import Application, MessageHandler, filters

from ollamabot.config import Settings, get_settings
from .auth import build_auth_gate
from .context import BotSession
from .handlers import Relay, handle_error, handle_text_message
from .logging_config import bot_logger as logger
from .ollama_client import OllamaClient
from .telegram_api import TelegramAPI

POLL_TIMEOUT = 60  # seconds, Telegram long-poll timeout
SHUTDOWN_GRACE = 30.0  # seconds to let running queries finish


# Global application instance (initialized once)
_application: Optional[Application] = None


def build_relay(settings: Settings) -> Relay:
    """Create the relay and its collaborators from settings."""
    return Relay(
        transport=TelegramAPI(settings.telegram_bot_token),
        gate=build_auth_gate(settings),
        backend=OllamaClient(settings.ollama_base_url, timeout=settings.ollama_timeout),
        session=BotSession(active_model=settings.ollama_model),
    )


async def remember_bot_username(application: Application) -> None:
    """Tell the relay which @username it answers to, once getMe has run."""
    relay: Optional[Relay] = application.bot_data.get("relay")
    if relay is not None:
        relay.bot_username = application.bot.username
        logger.info(f"Bot username: @{relay.bot_username}")


async def close_relay(application: Application) -> None:
    """Let pending queries finish, then release HTTP clients and the store."""
    relay: Optional[Relay] = application.bot_data.pop("relay", None)
    if relay is None:
        return

    await relay.drain(timeout=SHUTDOWN_GRACE)
    await relay.backend.close()
    await relay.transport.close()
    relay.gate.close()
    logger.info("Relay closed")


def get_bot_application(settings: Optional[Settings] = None) -> Application:
    """Get or create telegram bot application."""
    global _application

    if _application is None:
        settings = settings or get_settings()

        _application = (
            Application.builder()
            .token(settings.telegram_bot_token)
            .concurrent_updates(False)
            .post_init(remember_bot_username)
            .post_shutdown(close_relay)
            .build()
        )
        _application.bot_data["relay"] = build_relay(settings)

        # Commands are routed by the relay itself, so TEXT includes them
        _application.add_handler(
            MessageHandler(filters.UpdateType.MESSAGE & filters.TEXT, handle_text_message)
        )

        _application.add_error_handler(handle_error)

        logger.info(
            f"Telegram bot application initialized. Model={settings.ollama_model}, "
            f"OllamaBaseURL={settings.ollama_base_url}"
        )

    return _application


def run_polling(settings: Optional[Settings] = None) -> None:
    """Run the bot with long polling until interrupted."""
    application = get_bot_application(settings)
    application.run_polling(
        timeout=POLL_TIMEOUT,
        allowed_updates=[Update.MESSAGE],
    )


async def handle_telegram_update(update_data: dict) -> None:
    """
    Process incoming webhook update from Telegram.

    Updates are queued rather than processed inline so that webhook
    deliveries keep the same one-at-a-time ordering as polling.
    """
    try:
        app = get_bot_application()

        # Convert dict to Update object
        update = Update.de_json(update_data, app.bot)

        if update:
            await app.update_queue.put(update)
        else:
            logger.warning("Received invalid update data")

    except Exception as e:
        logger.error(f"Failed to process update: {e}", exc_info=True)


async def initialize_bot() -> None:
    """
    Initialize and start bot application for webhook mode (call on startup).
    """
    app = get_bot_application()
    await app.initialize()
    # post_init only runs under run_polling
    await remember_bot_username(app)
    await app.start()
    logger.info("Bot initialized successfully")


async def shutdown_bot() -> None:
    """
    Shutdown bot application (call on shutdown).
    """
    global _application
    if _application:
        if _application.running:
            await _application.stop()
        await close_relay(_application)
        await _application.shutdown()
        _application = None
        logger.info("Bot shut down")
