"""Logging setup for the gateway's structured ``event_name`` + ``extra`` records."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    """Appends fields passed through ``extra=`` as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = {key: value for key, value in vars(record).items() if key not in _RESERVED}
        if not fields:
            return message
        return message + " " + " ".join(f"{key}={value!r}" for key, value in fields.items())


def configure_logging(level: str = "INFO") -> None:
    """Route the root logger through rich with key/value context."""
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(KeyValueFormatter("%(name)s %(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
