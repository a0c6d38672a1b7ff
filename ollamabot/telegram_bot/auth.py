"""
Whitelist authorization for incoming Telegram users.

Decision per message, nothing is cached:
- auth disabled      -> allow
- user is the admin  -> allow
- user in the store  -> allow (and last_activity is refreshed)
- otherwise          -> deny
A failing store lookup is reported as ERROR, never as DENY.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import List, Optional

from ollamabot.config import ConfigError, Settings
from .logging_config import bot_logger as logger
from .user_store import AuthStoreError, UserRecord, UserStore


class AuthDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ERROR = "error"


class AuthGate:
    def __init__(self, enabled: bool, admin_id: Optional[int] = None, store: Optional[UserStore] = None):
        if enabled and (admin_id is None or store is None):
            raise ConfigError("auth enabled but admin id or user store is missing")
        self.enabled = enabled
        self.admin_id = admin_id
        self.store = store

    def is_admin(self, user_id: int) -> bool:
        return self.enabled and user_id == self.admin_id

    async def is_authorized(self, user_id: int) -> bool:
        """
        Check whitelist membership without side effects.

        Raises:
            AuthStoreError: the store lookup failed
        """
        if not self.enabled:
            return True
        if user_id == self.admin_id:
            return True
        return await asyncio.to_thread(self.store.is_member, user_id)

    async def decide(self, user_id: int) -> AuthDecision:
        """Authorize a message and record activity for whitelisted users."""
        try:
            allowed = await self.is_authorized(user_id)
        except AuthStoreError as e:
            logger.error(f"Auth error for user_id={user_id}: {e}")
            return AuthDecision.ERROR

        if not allowed:
            logger.info(f"Denied user_id={user_id}")
            return AuthDecision.DENY

        if self.enabled and user_id != self.admin_id:
            await self._touch(user_id)

        return AuthDecision.ALLOW

    async def _touch(self, user_id: int) -> None:
        """Best effort, admin activity is never tracked."""
        try:
            await asyncio.to_thread(self.store.touch, user_id)
        except AuthStoreError as e:
            logger.warning(f"Failed to update last_activity for user_id={user_id}: {e}")

    async def add_user(self, user_id: int) -> None:
        await asyncio.to_thread(self.store.add_user, user_id)

    async def list_users(self, limit: int) -> List[UserRecord]:
        return await asyncio.to_thread(self.store.list_users, limit)

    def close(self) -> None:
        if self.store is not None:
            self.store.close()


def build_auth_gate(settings: Settings) -> AuthGate:
    """Create the gate from settings, opening the SQLite store if auth is on."""
    if not settings.bot_auth_enabled:
        logger.info("Auth: disabled (BOT_AUTH_ENABLED is not true/1/yes). Bot is open for everyone.")
        return AuthGate(enabled=False)

    try:
        store = UserStore(settings.bot_auth_db_path)
    except AuthStoreError as e:
        raise ConfigError(f"failed to init auth: {e}") from e

    logger.info(f"Auth: ENABLED. Admin ID={settings.bot_admin_id}, DB={settings.bot_auth_db_path}")
    return AuthGate(enabled=True, admin_id=settings.bot_admin_id, store=store)
