"""
Splitting of long replies into Telegram-sized messages.
"""

from typing import List

# Telegram caps a message at 4096 characters, keep some headroom
TELEGRAM_CHUNK_LIMIT = 4000


def split_message(text: str, limit: int = TELEGRAM_CHUNK_LIMIT) -> List[str]:
    """
    Split text into consecutive pieces of at most `limit` characters.

    Python strings index by code point, so a piece never ends in the
    middle of a multi-byte character. Joining the pieces gives back
    the original text.

    Args:
        text: Reply text
        limit: Maximum piece length in code points

    Returns:
        [text] if it already fits, otherwise the pieces in order
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")

    if len(text) <= limit:
        return [text]

    return [text[i:i + limit] for i in range(0, len(text), limit)]
