"""
Logging for the session store.

Session ids are bearer credentials, so store log records never carry them in
clear: they reference a session through `session_ref()`, and context travels
in a fixed set of `extra` fields that SessionLogFormatter renders.
"""

import hashlib
import json
import logging
import time
from typing import IO, TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:  # pragma: no cover
    from dynamodb_sessions.core.config import SessionStoreSettings

PACKAGE_LOGGER = "dynamodb_sessions"

# Only these `extra` keys are rendered; anything else on the record is dropped
CONTEXT_FIELDS = ("table", "session", "operation", "count")

_HANDLER_NAME = "dynamodb_sessions.handler"
_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def session_ref(session_id: str) -> str:
    """Short, stable, non-reversible reference to a session id for log output"""
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:12]


def log_context(table: str, session_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
    """Build the `extra` mapping for a store log call"""
    context: Dict[str, Any] = {"table": table}
    if session_id is not None:
        context["session"] = session_ref(session_id)
    context.update(fields)
    return context


class SessionLogFormatter(logging.Formatter):
    """
    Render store records as JSON lines, or as text with key=value context.

    Timestamps are UTC.
    """

    converter = time.gmtime

    def __init__(self, as_json: bool = True):
        super().__init__(_TEXT_FORMAT)
        self.as_json = as_json

    def format(self, record: logging.LogRecord) -> str:
        context = {
            name: getattr(record, name)
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        }
        if not self.as_json:
            line = super().format(record)
            if not context:
                return line
            head, _, tail = line.partition("\n")
            pairs = " ".join(f"{name}={value}" for name, value in context.items())
            return f"{head} [{pairs}]" + (f"\n{tail}" if tail else "")

        entry: Dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **context,
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    settings: "SessionStoreSettings",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Apply the logging settings to the package logger.

    The level always follows `settings.log_level`. With `settings.log_handler`
    a stream handler (stderr unless `stream` is given) using SessionLogFormatter
    is attached and propagation to the root logger stops; without it any such
    handler is removed and records propagate to whatever the host application
    configured. Calling it again replaces the previous handler.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(settings.log_level)

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()

    if settings.log_handler:
        handler = logging.StreamHandler(stream)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(SessionLogFormatter(as_json=settings.json_logging))
        logger.addHandler(handler)
        logger.propagate = False
    else:
        logger.propagate = True

    return logger
