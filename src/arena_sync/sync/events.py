"""Structured progress events for a sync run.

Every event is a flat dict ``{"run": <run id>, "lvl": "log"|"warn"|"error",
"msg": <event name>, ...fields}``.  Events go to the caller's ``on_log``
sink when one is configured and are always mirrored into the standard
``logging`` tree under this module's logger.
"""

from __future__ import annotations

import logging
import random
import string
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

EventSink = Callable[[dict[str, Any]], None]

# Frequent events that would flood INFO output
_CHATTY = frozenset({"progress", "heartbeat", "fetching_page", "page_fetched"})

_LEVELS = {
    "log": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def new_run_id() -> str:
    """Return ``"<epoch ms>-<6 random base36 chars>"``."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choices(alphabet, k=6))
    return f"{int(time.time() * 1000)}-{suffix}"


class EventLog:
    """Emit run-scoped events.

    Args:
        run_id: Identifier added to every event.
        sink: Optional callable receiving each event dict.
    """

    def __init__(self, run_id: str, sink: EventSink | None = None) -> None:
        self.run_id = run_id
        self.sink = sink

    def emit(self, lvl: str, msg: str, **fields: Any) -> dict[str, Any]:
        event = {"run": self.run_id, "lvl": lvl, "msg": msg, **fields}

        level = _LEVELS.get(lvl, logging.INFO)
        if level == logging.INFO and msg in _CHATTY:
            level = logging.DEBUG
        if logger.isEnabledFor(level):
            extra = " ".join(f"{k}={v}" for k, v in fields.items())
            logger.log(level, "[%s] %s %s", self.run_id, msg, extra)

        if self.sink is not None:
            try:
                self.sink(event)
            except Exception:
                logger.exception("on_log sink failed for event %s", msg)
        return event

    def log(self, msg: str, **fields: Any) -> dict[str, Any]:
        return self.emit("log", msg, **fields)

    def warn(self, msg: str, **fields: Any) -> dict[str, Any]:
        return self.emit("warn", msg, **fields)

    def error(self, msg: str, **fields: Any) -> dict[str, Any]:
        return self.emit("error", msg, **fields)
