"""
Tests for the FastAPI webhook app.
"""

import pytest
from fastapi.testclient import TestClient

from ollamabot import main
from ollamabot.config import Settings


@pytest.fixture
def client(monkeypatch):
    received = []

    async def fake_handle(update_data):
        received.append(update_data)

    settings = Settings(
        _env_file=None,
        telegram_bot_token="123:abc",
        telegram_webhook_secret="s3cret",
        ollama_model="llama3.1",
    )
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "handle_telegram_update", fake_handle)

    test_client = TestClient(main.app)
    test_client.received = received
    return test_client


def test_health(client):
    """Health check reports model and auth state."""
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["model"] == "llama3.1"
    assert body["auth_enabled"] is False


def test_webhook_accepts_valid_secret(client):
    """Update is handed to the bot when the secret matches."""
    response = client.post(
        "/telegram/webhook",
        json={"update_id": 1},
        headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
    )
    assert response.status_code == 200
    assert client.received == [{"update_id": 1}]


def test_webhook_rejects_bad_secret(client):
    """Wrong secret header is refused."""
    response = client.post(
        "/telegram/webhook",
        json={"update_id": 1},
        headers={"X-Telegram-Bot-Api-Secret-Token": "wrong"},
    )
    assert response.status_code == 403
    assert client.received == []
