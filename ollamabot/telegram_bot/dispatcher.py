"""
Message dispatcher - classifies incoming messages.

A message is either one of the bot commands below or a free-form
query for the model. Only the first whitespace-delimited token is
looked at, and it must match a command name exactly.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

START = "/start"
WHOAMI = "/whoami"
MODEL = "/model"
ADD_USER = "/adduser"
LIST_USERS = "/listusers"

COMMANDS = frozenset({START, WHOAMI, MODEL, ADD_USER, LIST_USERS})
ADMIN_COMMANDS = frozenset({ADD_USER, LIST_USERS})

ADD_USER_USAGE = "Usage: /adduser <telegram_id>"
INVALID_USER_ID = "Invalid user id (must be integer)."

_INT_RE = re.compile(r"^[+-]?\d+$")
_INT64_MAX = 2 ** 63 - 1


class MalformedCommandArgument(ValueError):
    """Command argument missing or unparsable. The message is user-facing."""


@dataclass(frozen=True)
class Command:
    name: str
    args: Tuple[str, ...] = ()

    @property
    def admin_only(self) -> bool:
        return self.name in ADMIN_COMMANDS


def classify_message(text: str) -> Optional[Command]:
    """
    Classify normalized message text.

    Args:
        text: Message text, already stripped

    Returns:
        Command with its arguments, or None for a free-form query
    """
    parts = text.split()
    if not parts or not parts[0].startswith("/"):
        return None

    # Group chats address commands as /cmd@BotName, see addressed_elsewhere
    name = parts[0].split("@", 1)[0]
    if name not in COMMANDS:
        return None

    return Command(name=name, args=tuple(parts[1:]))


def addressed_elsewhere(text: str, bot_username: Optional[str]) -> bool:
    """
    True for a /command@OtherBot message meant for a different bot.

    Without a known username every suffix is accepted.
    """
    parts = text.split(maxsplit=1)
    if not bot_username or not parts or not parts[0].startswith("/"):
        return False

    _, sep, target = parts[0].partition("@")
    return bool(sep) and target.lower() != bot_username.lower()


def parse_user_id(command: Command) -> int:
    """Parse the Telegram id argument of /adduser."""
    if not command.args:
        raise MalformedCommandArgument(ADD_USER_USAGE)

    raw = command.args[0]
    if not _INT_RE.match(raw):
        raise MalformedCommandArgument(INVALID_USER_ID)

    value = int(raw)
    if abs(value) > _INT64_MAX:
        raise MalformedCommandArgument(INVALID_USER_ID)
    return value
