"""
Telegram message handling: the relay's dispatch loop.

Messages arrive one at a time (python-telegram-bot processes updates
sequentially). Commands addressed to another bot (/start@OtherBot) are
dropped; everything else goes through:

1. Admin commands (/adduser, /listusers) - only for the admin while
   auth is enabled. For anyone else they are ordinary text.
2. /whoami - always answered, even for users who are not allowed.
3. Whitelist check - deny or auth error ends the message here.
4. /start, /model
5. Anything else is a query: sent to Ollama in a background task so
   the next message is not held up by a slow model.
"""

import asyncio
from typing import Optional, Set

from telegram import Update
from telegram.ext import ContextTypes

from ollamabot.utils.chunking import TELEGRAM_CHUNK_LIMIT, split_message
from .auth import AuthDecision, AuthGate
from .context import BotSession, InboundMessage, PendingQuery
from .dispatcher import (
    ADD_USER, LIST_USERS, MODEL, START, WHOAMI,
    Command, MalformedCommandArgument, addressed_elsewhere, classify_message, parse_user_id
)
from .logging_config import bot_logger as logger
from .query import CHUNK_DELAY, TYPING_INTERVAL, run_query
from .telegram_api import send_markdown
from .user_store import AuthStoreError

LIST_USERS_LIMIT = 200

AUTH_ERROR_TEXT = "⚠️ Internal auth error, please try again later."
DENIED_TEXT = (
    "🚫 You are not allowed to use this bot.\n"
    "Ask the admin to add your Telegram ID."
)


class Relay:
    """
    Per-bot message handler. Owns the session state (active model)
    and the set of in-flight query tasks.
    """

    def __init__(
        self,
        transport,
        gate: AuthGate,
        backend,
        session: BotSession,
        typing_interval: float = TYPING_INTERVAL,
        chunk_limit: int = TELEGRAM_CHUNK_LIMIT,
        chunk_delay: float = CHUNK_DELAY,
        bot_username: Optional[str] = None
    ):
        self.transport = transport
        self.gate = gate
        self.backend = backend
        self.session = session
        self.typing_interval = typing_interval
        self.chunk_limit = chunk_limit
        self.chunk_delay = chunk_delay
        # Filled in once the bot knows its own name (getMe)
        self.bot_username = bot_username
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def handle_message(self, message: InboundMessage) -> Optional[asyncio.Task]:
        """
        Handle one inbound message.

        Returns:
            The spawned query task for free-form queries, None otherwise
        """
        text = message.text.strip()
        if not text:
            return None

        if addressed_elsewhere(text, self.bot_username):
            logger.debug(f"Ignoring command for another bot: {text.split()[0]}")
            return None

        chat_id = message.chat_id
        user_id = message.user_id
        command = classify_message(text)

        if command and command.admin_only and self.gate.is_admin(user_id):
            if command.name == ADD_USER:
                await self._handle_add_user(chat_id, command)
            elif command.name == LIST_USERS:
                await self._handle_list_users(chat_id)
            return None

        if command and command.name == WHOAMI:
            await self._handle_whoami(chat_id, user_id)
            return None

        decision = await self.gate.decide(user_id)
        if decision is AuthDecision.ERROR:
            await self.transport.send_message(chat_id, AUTH_ERROR_TEXT)
            return None
        if decision is AuthDecision.DENY:
            await self.transport.send_message(chat_id, DENIED_TEXT)
            return None

        if command and command.name == START:
            await self._handle_start(chat_id)
            return None

        if command and command.name == MODEL:
            await self._handle_model(chat_id, command)
            return None

        return await self._dispatch_query(chat_id, text)

    # ----- commands -----

    async def _handle_start(self, chat_id: int) -> None:
        await send_markdown(
            self.transport,
            chat_id,
            f"Hi! Send me any message and I'll forward it to Ollama ({self.session.active_model}).\n\n"
            "Code blocks with ``` will be rendered as code in Telegram."
        )

    async def _handle_model(self, chat_id: int, command: Command) -> None:
        if command.args:
            self.session.set_model(command.args[0])
            logger.info(f"Model changed to {self.session.active_model}")
            await send_markdown(self.transport, chat_id, f"✅ Model changed to `{self.session.active_model}`")
        else:
            await send_markdown(
                self.transport,
                chat_id,
                f"Current model: `{self.session.active_model}`\nUsage: `/model llama3.1`"
            )

    async def _handle_whoami(self, chat_id: int, user_id: int) -> None:
        lines = ["Your info:", f"- Telegram ID: {user_id}"]

        if self.gate.enabled:
            lines.append("- Auth: ENABLED")
            lines.append("- Role: admin" if self.gate.is_admin(user_id) else "- Role: user")
            try:
                allowed = await self.gate.is_authorized(user_id)
            except AuthStoreError as e:
                logger.error(f"/whoami auth error for user_id={user_id}: {e}")
                lines.append("- Allowed: ERROR (internal auth error)")
            else:
                lines.append("- Allowed: YES" if allowed else "- Allowed: NO")
        else:
            lines.append("- Auth: DISABLED (bot is open for everyone)")

        await self.transport.send_message(chat_id, "\n".join(lines) + "\n")

    async def _handle_add_user(self, chat_id: int, command: Command) -> None:
        try:
            new_user_id = parse_user_id(command)
        except MalformedCommandArgument as e:
            await self.transport.send_message(chat_id, str(e))
            return

        try:
            await self.gate.add_user(new_user_id)
        except AuthStoreError as e:
            logger.error(f"/adduser error: {e}")
            await self.transport.send_message(chat_id, f"⚠️ Failed to add user: {e}")
            return

        logger.info(f"User {new_user_id} added to whitelist")
        await self.transport.send_message(chat_id, f"✅ User {new_user_id} has been added/updated.")

    async def _handle_list_users(self, chat_id: int) -> None:
        try:
            users = await self.gate.list_users(LIST_USERS_LIMIT)
        except AuthStoreError as e:
            logger.error(f"/listusers error: {e}")
            await self.transport.send_message(chat_id, f"⚠️ Failed to list users: {e}")
            return

        if not users:
            await self.transport.send_message(chat_id, "No users in DB yet.")
            return

        text = "Registered users:\n" + "".join(
            f"- ID: {u.telegram_id}\n  created_at: {u.created_at}\n  last_activity: {u.last_activity}\n"
            for u in users
        )
        # 200 entries do not fit in one Telegram message
        for chunk in split_message(text, self.chunk_limit):
            await self.transport.send_message(chat_id, chunk)

    # ----- queries -----

    async def _dispatch_query(self, chat_id: int, text: str) -> asyncio.Task:
        try:
            await self.transport.send_chat_action(chat_id, "typing")
        except Exception as e:
            logger.debug(f"Typing indicator failed for chat_id={chat_id}: {e}")

        # Snapshot the model now, a later /model must not affect this query
        query = PendingQuery(chat_id=chat_id, model=self.session.active_model, prompt=text)

        task = asyncio.create_task(
            run_query(
                self.transport,
                self.backend,
                query,
                interval=self.typing_interval,
                limit=self.chunk_limit,
                delay=self.chunk_delay,
            )
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float = 30.0) -> None:
        """Wait for in-flight queries, cancelling whatever is left after `timeout`."""
        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} pending queries")
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} queries still running at shutdown")
            await asyncio.gather(*still_running, return_exceptions=True)


# ----- python-telegram-bot callbacks -----

async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Entry point for every text message (commands included)."""
    message = update.message
    if message is None or message.from_user is None or not message.text:
        return

    logger.info(f"Received message from user_id={message.from_user.id}, text_len={len(message.text)}")

    relay: Relay = context.bot_data["relay"]
    await relay.handle_message(
        InboundMessage(chat_id=message.chat_id, user_id=message.from_user.id, text=message.text)
    )


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in handlers. The update is dropped, the bot keeps running."""
    logger.error(f"Bot error: {context.error}", exc_info=context.error)
