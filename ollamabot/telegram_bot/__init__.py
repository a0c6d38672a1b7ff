"""
Telegram bot module for the Ollama relay.

ARCHITECTURE: Thin relay - the bot owns no model logic.
- Receives updates from Telegram (long polling or webhook)
- Checks the whitelist (optional, SQLite)
- Routes commands, forwards everything else to Ollama
- Sends the answer back in Telegram-sized chunks
"""

from .bot import get_bot_application, handle_telegram_update, run_polling
from .auth import AuthDecision, AuthGate
from .handlers import Relay

__all__ = [
    "get_bot_application",
    "handle_telegram_update",
    "run_polling",
    "AuthDecision",
    "AuthGate",
    "Relay",
]
