"""
Tests for the Bot API client and the Markdown fallback.
"""

import asyncio
import json

import httpx
import pytest

from ollamabot.telegram_bot.telegram_api import TelegramAPI, send_markdown


def make_api(handler):
    return TelegramAPI("123:abc", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def run(api, coro_fn):
    async def go():
        try:
            return await coro_fn(api)
        finally:
            await api.close()
    return asyncio.run(go())


def test_send_message_payload():
    """sendMessage body with parse mode and previews off."""
    calls = []

    def handler(request):
        calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    api = make_api(handler)
    run(api, lambda a: a.send_message(5, "*hi*", parse_mode="Markdown", disable_web_page_preview=True))

    path, body = calls[0]
    assert path == "/bot123:abc/sendMessage"
    assert body == {
        "chat_id": 5,
        "text": "*hi*",
        "parse_mode": "Markdown",
        "link_preview_options": {"is_disabled": True},
    }


def test_send_chat_action():
    """sendChatAction defaults to typing."""
    calls = []

    def handler(request):
        calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": True})

    run(make_api(handler), lambda a: a.send_chat_action(5))
    assert calls == [("/bot123:abc/sendChatAction", {"chat_id": 5, "action": "typing"})]


def test_send_message_raises_on_error():
    """Non-2xx responses raise."""
    def handler(request):
        return httpx.Response(403, json={"ok": False, "description": "bot was blocked by the user"})

    with pytest.raises(httpx.HTTPStatusError):
        run(make_api(handler), lambda a: a.send_message(5, "hi"))


def test_markdown_fallback_to_plain_text():
    """Rejected Markdown is re-sent once without parse mode."""
    bodies = []

    def handler(request):
        body = json.loads(request.content)
        bodies.append(body)
        if "parse_mode" in body:
            return httpx.Response(400, json={"ok": False, "description": "Bad Request: can't parse entities"})
        return httpx.Response(200, json={"ok": True, "result": {}})

    run(make_api(handler), lambda a: send_markdown(a, 5, "broken *markdown"))

    assert len(bodies) == 2
    assert bodies[0]["parse_mode"] == "Markdown"
    assert "parse_mode" not in bodies[1]
    assert bodies[1]["text"] == "broken *markdown"


def test_markdown_other_errors_propagate():
    """Only 400 triggers the fallback."""
    def handler(request):
        return httpx.Response(429, json={"ok": False, "description": "Too Many Requests"})

    with pytest.raises(httpx.HTTPStatusError):
        run(make_api(handler), lambda a: send_markdown(a, 5, "hello"))
