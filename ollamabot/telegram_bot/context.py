"""
Bot session state and inbound message shape.

The session is process-wide and in-memory: the only mutable value is
the model that new queries are sent to. Queries take a copy of it when
they are dispatched, so /model never changes a query already running.
"""

from dataclasses import dataclass


@dataclass
class BotSession:
    active_model: str = ""

    def set_model(self, model: str) -> None:
        self.active_model = model


@dataclass(frozen=True)
class InboundMessage:
    chat_id: int
    user_id: int
    text: str


@dataclass(frozen=True)
class PendingQuery:
    """Everything a query task needs, captured at dispatch time."""

    chat_id: int
    model: str
    prompt: str
