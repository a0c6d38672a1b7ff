"""
Query execution: one Ollama call per message, answered in chunks.

While the call is outstanding a heartbeat task keeps the "typing"
indicator alive in the chat (Telegram clears it after ~5 seconds).
The heartbeat is cancelled as soon as the call returns, so no
indicator is ever sent after the answer.
"""

import asyncio

from ollamabot.utils.chunking import TELEGRAM_CHUNK_LIMIT, split_message
from .context import PendingQuery
from .logging_config import bot_logger as logger
from .ollama_client import BackendError
from .telegram_api import send_markdown

TYPING_INTERVAL = 4.0  # seconds between typing indicators
CHUNK_DELAY = 0.3  # seconds between consecutive answer chunks

EMPTY_ANSWER_TEXT = "(empty response from model)"


async def _heartbeat(transport, chat_id: int, stop: asyncio.Event, interval: float) -> None:
    """
    Send "typing" now and then on a fixed `interval` grid until `stop` is set.

    Ticks are scheduled from the start time, not from the end of the
    previous send, so Bot API latency does not stretch the period.
    Ticks missed during a slow send are dropped, not replayed.
    """
    loop = asyncio.get_running_loop()
    next_at = loop.time()

    while not stop.is_set():
        try:
            await transport.send_chat_action(chat_id, "typing")
        except Exception as e:
            # Indicator is cosmetic, never fail the query over it
            logger.debug(f"Typing indicator failed for chat_id={chat_id}: {e}")

        next_at += interval
        now = loop.time()
        while next_at < now:
            next_at += interval

        try:
            await asyncio.wait_for(stop.wait(), timeout=next_at - now)
            return
        except asyncio.TimeoutError:
            pass


async def execute_query(transport, backend, query: PendingQuery, interval: float = TYPING_INTERVAL) -> str:
    """
    Run the backend call with a typing heartbeat alongside it.

    The first indicator is issued before the call starts. When the call
    finishes the heartbeat is cancelled outright, so a slow indicator
    send never holds back the answer.

    Returns:
        The model's answer

    Raises:
        BackendError: the call failed; the heartbeat is already stopped
    """
    stop = asyncio.Event()
    heartbeat = asyncio.create_task(_heartbeat(transport, query.chat_id, stop, interval))
    try:
        # Let the heartbeat issue its first indicator before the call begins
        await asyncio.sleep(0)
        return await backend.chat(query.model, query.prompt)
    finally:
        stop.set()
        heartbeat.cancel()
        try:
            await heartbeat
        except asyncio.CancelledError:
            pass


async def deliver_answer(
    transport,
    chat_id: int,
    text: str,
    limit: int = TELEGRAM_CHUNK_LIMIT,
    delay: float = CHUNK_DELAY
) -> int:
    """
    Send an answer as ordered chunks with a pause between sends.

    Returns:
        Number of chunks sent
    """
    chunks = split_message(text or EMPTY_ANSWER_TEXT, limit)
    for i, chunk in enumerate(chunks):
        if i:
            await asyncio.sleep(delay)
        await send_markdown(transport, chat_id, chunk, disable_web_page_preview=True)
    return len(chunks)


async def run_query(
    transport,
    backend,
    query: PendingQuery,
    interval: float = TYPING_INTERVAL,
    limit: int = TELEGRAM_CHUNK_LIMIT,
    delay: float = CHUNK_DELAY
) -> None:
    """
    Full lifecycle of one query task. Never raises: failures are
    reported to the chat once and logged.
    """
    logger.info(f"Query started: chat_id={query.chat_id}, model={query.model}, prompt_len={len(query.prompt)}")

    try:
        answer = await execute_query(transport, backend, query, interval=interval)
    except BackendError as e:
        logger.error(f"Ollama error for chat_id={query.chat_id}: {e}")
        try:
            await transport.send_message(query.chat_id, f"⚠️ Error from backend: {e}")
        except Exception as send_error:
            logger.error(f"Failed to report backend error to chat_id={query.chat_id}: {send_error}")
        return
    except Exception as e:
        logger.error(f"Query failed for chat_id={query.chat_id}: {e}", exc_info=True)
        return

    try:
        sent = await deliver_answer(transport, query.chat_id, answer, limit=limit, delay=delay)
    except Exception as e:
        logger.error(f"Failed to deliver answer to chat_id={query.chat_id}: {e}", exc_info=True)
        return

    logger.info(f"Query answered: chat_id={query.chat_id}, answer_len={len(answer)}, chunks={sent}")
