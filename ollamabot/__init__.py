"""Telegram bot that relays chat messages to an Ollama model."""

__version__ = "0.1.0"
