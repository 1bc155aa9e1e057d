"""Caller-facing run events and the reporter that emits them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class RunEvent:
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.kind, **self.payload}


EventSink = Callable[[RunEvent], None]


class RunReporter:
    """Fans run events out to a sink and mirrors log events into ``logging``.

    Delivery is fire-and-forget: a sink that raises is logged and otherwise
    ignored so a broken transport cannot stop a run midway. Exactly one
    terminal event (``complete`` or ``error``) is ever emitted.
    """

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self._sink = sink
        self.terminal: Optional[RunEvent] = None

    def _emit(self, event: RunEvent) -> None:
        if self._sink is None:
            return
        try:
            self._sink(event)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Dropping %s event, sink failed: %s", event.kind, exc)

    def log(self, message: str, level: str = "info") -> None:
        logger.log(LEVELS.get(level, logging.INFO), message)
        self._emit(RunEvent("log", {"message": message, "level": level}))

    def progress(self, qualified_found: int, qualified_target: Optional[int]) -> None:
        self._emit(
            RunEvent("progress", {"qualified_found": qualified_found, "qualified_target": qualified_target})
        )

    def complete(self, result: Dict[str, Any]) -> None:
        self._terminate(RunEvent("complete", result))

    def error(self, reason: str) -> None:
        self._terminate(RunEvent("error", {"error": reason}))

    def _terminate(self, event: RunEvent) -> None:
        if self.terminal is not None:
            logger.error("Refusing second terminal event %s after %s", event.kind, self.terminal.kind)
            return
        self.terminal = event
        self._emit(event)


class EventRecorder:
    """Sink that keeps events in memory, used by the synchronous endpoint and CLI."""

    def __init__(self) -> None:
        self.events: List[RunEvent] = []

    def __call__(self, event: RunEvent) -> None:
        self.events.append(event)

    def as_dicts(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.events]
