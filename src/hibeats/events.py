# src/hibeats/events.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from hibeats.hash_utils import canonical_json

log = logging.getLogger(__name__)

INFO = "info"
WARNING = "warning"
SUCCESS = "success"
ERROR = "error"

_LOG_LEVELS = {
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    SUCCESS: logging.INFO,
    ERROR: logging.ERROR,
}


def new_run_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class EventContext:
    run_id: str
    source: str  # e.g. "cli", "pipeline"


@dataclass(frozen=True)
class ProgressEvent:
    level: str  # info | warning | success | error
    kind: str  # e.g. "submitted", "artifact_degraded"
    message: str
    run_id: str = ""
    source: str = ""
    occurred_at: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)


Observer = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """
    Fan-out of progress events to observers.

    Every event is also written to the `hibeats.events` logger. An observer that
    raises is logged and skipped; it never breaks the pipeline it is watching.
    """

    def __init__(self, ctx: EventContext, observers: Optional[List[Observer]] = None):
        self.ctx = ctx
        self._observers: List[Observer] = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(
        self,
        level: str,
        kind: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ProgressEvent:
        event = ProgressEvent(
            level=level,
            kind=kind,
            message=message,
            run_id=self.ctx.run_id,
            source=self.ctx.source,
            occurred_at=now_iso(),
            payload=dict(payload or {}),
        )
        log.log(
            _LOG_LEVELS.get(level, logging.INFO),
            "[%s] %s %s",
            kind,
            message,
            canonical_json(event.payload) if event.payload else "",
        )
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                log.exception("progress observer failed on %s", kind)
        return event

    def info(self, kind: str, message: str, **payload: Any) -> ProgressEvent:
        return self.emit(INFO, kind, message, payload)

    def warning(self, kind: str, message: str, **payload: Any) -> ProgressEvent:
        return self.emit(WARNING, kind, message, payload)

    def success(self, kind: str, message: str, **payload: Any) -> ProgressEvent:
        return self.emit(SUCCESS, kind, message, payload)

    def error(self, kind: str, message: str, **payload: Any) -> ProgressEvent:
        return self.emit(ERROR, kind, message, payload)
