"""
Shared test doubles: an in-memory Telegram transport, whitelist store
and Ollama backend.
"""

import asyncio

import pytest

from ollamabot.telegram_bot.auth import AuthGate
from ollamabot.telegram_bot.context import BotSession, InboundMessage
from ollamabot.telegram_bot.handlers import Relay
from ollamabot.telegram_bot.ollama_client import BackendError
from ollamabot.telegram_bot.user_store import AuthStoreError, UserRecord

ADMIN_ID = 1000


class FakeTransport:
    def __init__(self):
        self.messages = []  # (chat_id, text, parse_mode)
        self.actions = []  # (chat_id, action)

    async def send_message(self, chat_id, text, parse_mode=None, disable_web_page_preview=False):
        self.messages.append((chat_id, text, parse_mode))
        return {"ok": True}

    async def send_chat_action(self, chat_id, action="typing"):
        self.actions.append((chat_id, action))

    @property
    def texts(self):
        return [text for _, text, _ in self.messages]


class FakeStore:
    def __init__(self, members=(), fail=False):
        self.members = {m: UserRecord(m, "2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z") for m in members}
        self.fail = fail
        self.fail_touch = False
        self.touched = []

    def _check(self):
        if self.fail:
            raise AuthStoreError("database is locked")

    def is_member(self, telegram_id):
        self._check()
        return telegram_id in self.members

    def add_user(self, telegram_id):
        self._check()
        self.members[telegram_id] = UserRecord(telegram_id, "2024-02-01T00:00:00Z", "2024-02-01T00:00:00Z")

    def touch(self, telegram_id):
        if self.fail_touch:
            raise AuthStoreError("disk I/O error")
        self.touched.append(telegram_id)

    def list_users(self, limit=100):
        self._check()
        return sorted(self.members.values(), key=lambda u: u.created_at)[:limit]

    def close(self):
        pass


class FakeBackend:
    """Backend whose calls block until `release` is set (if gated)."""

    def __init__(self, answer="Hello from the model", error=None, gated=False):
        self.answer = answer
        self.error = error
        self.calls = []
        self.release = asyncio.Event() if gated else None

    async def chat(self, model, prompt):
        self.calls.append((model, prompt))
        if self.release is not None:
            await self.release.wait()
        if self.error:
            raise BackendError(self.error)
        return self.answer

    async def close(self):
        pass


def make_relay(transport=None, backend=None, store=None, auth_enabled=False, model="llama3.1"):
    gate = AuthGate(enabled=auth_enabled, admin_id=ADMIN_ID, store=store if store is not None else FakeStore())
    return Relay(
        transport=transport or FakeTransport(),
        gate=gate,
        backend=backend or FakeBackend(),
        session=BotSession(active_model=model),
        typing_interval=60.0,
        chunk_delay=0.0,
    )


def msg(text, user_id=42, chat_id=500):
    return InboundMessage(chat_id=chat_id, user_id=user_id, text=text)


@pytest.fixture
def transport():
    return FakeTransport()
