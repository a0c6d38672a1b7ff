"""
Telegram Bot API client for sending messages.

Simple wrapper for sending messages and chat actions back to Telegram.
Incoming updates are handled by python-telegram-bot (see bot.py).
"""

import httpx
from typing import Optional

from .logging_config import bot_logger as logger

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramAPI:
    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None, base_url: str = TELEGRAM_API_URL):
        self.base_url = f"{base_url.rstrip('/')}/bot{token}"
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = None,
        disable_web_page_preview: bool = False
    ) -> dict:
        """
        Send message to Telegram chat.

        Args:
            chat_id: Telegram chat ID
            text: Message text
            parse_mode: Optional parse mode (Markdown, HTML)
            disable_web_page_preview: Suppress link previews

        Returns:
            Telegram response dict
        """
        payload = {
            "chat_id": chat_id,
            "text": text
        }

        if parse_mode:
            payload["parse_mode"] = parse_mode
        if disable_web_page_preview:
            payload["link_preview_options"] = {"is_disabled": True}

        response = await self.client.post(f"{self.base_url}/sendMessage", json=payload)
        response.raise_for_status()
        return response.json()

    async def send_chat_action(self, chat_id: int, action: str = "typing") -> None:
        """
        Send chat action (typing indicator).

        Args:
            chat_id: Telegram chat ID
            action: Action type (typing, upload_voice, etc.)
        """
        response = await self.client.post(
            f"{self.base_url}/sendChatAction",
            json={"chat_id": chat_id, "action": action}
        )
        response.raise_for_status()

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()


async def send_markdown(transport, chat_id: int, text: str, disable_web_page_preview: bool = False) -> None:
    """
    Send text with Markdown formatting, falling back to plain text.

    Model output is not guaranteed to be valid Telegram Markdown; when
    Telegram refuses to parse it (HTTP 400) the same text is sent once
    without a parse mode.
    """
    try:
        await transport.send_message(
            chat_id, text, parse_mode="Markdown", disable_web_page_preview=disable_web_page_preview
        )
    except httpx.HTTPStatusError as e:
        if e.response.status_code != 400:
            raise
        logger.warning(f"Markdown rejected for chat_id={chat_id}, resending as plain text: {e.response.text[:200]}")
        await transport.send_message(chat_id, text, disable_web_page_preview=disable_web_page_preview)
