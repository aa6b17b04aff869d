"""Logging setup.

Modules log through ``logging.getLogger(__name__)`` and attach machine-readable
context as ``extra={"structured": {...}}``; the formatter appends it to the line.
"""

import json
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class StructuredFormatter(logging.Formatter):
    """Formatter that renders the ``structured`` extra as trailing JSON."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        structured = getattr(record, "structured", None)
        if structured:
            line = f"{line} {json.dumps(structured, default=str, sort_keys=True)}"
        return line


def configure_logging(level: str = "INFO") -> None:
    """Install the structured formatter on the root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
