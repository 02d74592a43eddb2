import json
import logging
import sys
import time
from typing import Any, Final

# Context attached by the spam gate through `extra={...}`. These are grouped
# under a "spam_check" object in JSON output and appended as key=value pairs
# in text output.
SPAM_CHECK_FIELDS: Final[tuple[str, ...]] = (
    "outcome",
    "path",
    "method",
    "status_code",
    "redirect_to",
)

# LogRecord internals never emitted. Any other attribute is a custom `extra`.
RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def spam_check_context(record: logging.LogRecord) -> dict[str, Any]:
    """Spam gate context set on the record, in `SPAM_CHECK_FIELDS` order."""
    return {
        field: record.__dict__[field]
        for field in SPAM_CHECK_FIELDS
        if record.__dict__.get(field) is not None
    }


class JsonFormatter(logging.Formatter):
    """
    Log formatter emitting one JSON object per record.

    Every object carries `level`, `msg`, `logger` and an epoch-millisecond
    `time_ms`. Spam gate context is nested under `spam_check`, e.g.

        {"level": "INFO", "msg": "Spam detected, redirecting", ...,
         "spam_check": {"outcome": "spam", "path": "/contact",
                        "method": "POST", "redirect_to": "/thanks"}}

    Other `extra` fields are kept at the top level without overriding the
    fields above, and a formatted traceback goes under `exc_info`.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "time_ms": int(time.time() * 1000),
        }

        context = spam_check_context(record)
        if context:
            payload["spam_check"] = context

        for key, value in record.__dict__.items():
            if (
                key not in RECORD_ATTRIBUTES
                and key not in SPAM_CHECK_FIELDS
                and key not in payload
            ):
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Plain `LEVEL logger message` lines, followed by spam gate context."""

    def __init__(self) -> None:
        super().__init__("%(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = spam_check_context(record)
        if not context:
            return line

        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, newline, rest = line.partition("\n")
        return f"{head} {pairs}{newline}{rest}"


def configure_logging(json_logs: bool = True, level: str = "INFO") -> None:
    """
    Configure root logger output.

    Installs a single stdout handler, replacing any existing handlers on the
    root logger to avoid duplicate lines.

    Parameters
    ----------
    json_logs : bool
        If True, emit `JsonFormatter` objects. If False, emit `TextFormatter`
        lines.
    level : str
        Logging level to apply to the root logger (e.g. "DEBUG", "WARNING").
    """
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_logs else TextFormatter())

    root.handlers[:] = [handler]
