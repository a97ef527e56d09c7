"""Logging setup for QueueBot.

Unattended runs log one JSON object per line; ``log_format="text"`` gives
plain lines for a terminal. Every record carries the id of the command being
executed (empty between commands), and the bot password never reaches the
output.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Iterable, Optional


# Set by CommandExecutor.execute for the duration of one command.
command_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("command_id", default="")

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(command_id)s] %(message)s"

# Libraries that log every HTTP request or SQL statement at INFO.
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "urllib3", "mwclient")

# Login and edit parameters as they show up in mwclient request errors.
_CREDENTIAL_RE = re.compile(r"(?i)\b((?:lgpassword|lgtoken|token|password)=)[^\s&,'\"]+")

_REDACTED = "***"


class _ContextFilter(logging.Filter):
    """Stamp the running command id on the record and mask credentials."""

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        record.command_id = command_id_var.get()
        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(self.redact(a) if isinstance(a, str) else a for a in record.args)
        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)
        return True

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, _REDACTED)
        return _CREDENTIAL_RE.sub(lambda m: m.group(1) + _REDACTED, text)


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields become top-level keys."""

    _RECORD_FIELDS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in self._RECORD_FIELDS and key not in payload
        )
        if not payload.get("command_id"):
            payload.pop("command_id", None)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None,
                  secrets: Iterable[str] = ()) -> None:
    """Route all logging to stdout.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Defaults to INFO.
        log_format: ``"json"`` (default) or ``"text"``.
        secrets: Literal values to mask wherever they appear, e.g. the bot password.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_ContextFilter(secrets))
    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured", extra={"log_level": level, "log_format": fmt})
