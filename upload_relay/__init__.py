"""Upload relay: stores authenticated uploads through the Telegram Bot API."""

__version__ = "1.0.0"
