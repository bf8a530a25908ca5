"""Lifecycle hooks for a regeneration turn.

The orchestrator and its collaborators report what they do through an
observer instead of writing to a shared log file. Events used:
``prompt_built``, ``call_dispatched``, ``image_received``, ``image_failed``,
``anomaly``, ``history_mismatch`` and ``turn_finalized``.
"""

import logging
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class GenerationObserver(Protocol):
    def emit(self, event: str, **payload: Any) -> None:
        ...


class NullObserver:
    def emit(self, event: str, **payload: Any) -> None:
        return None


class LoggingObserver:
    """Writes each event as one structured log record."""

    def __init__(self, log: logging.Logger = logger, level: int = logging.INFO) -> None:
        self._log = log
        self._level = level

    def emit(self, event: str, **payload: Any) -> None:
        level = logging.WARNING if event in {"anomaly", "image_failed"} else self._level
        summary = " ".join(f"{k}={_short(v)}" for k, v in payload.items())
        self._log.log(level, "%s %s", event, summary, extra={"event": event, "payload": payload})


def _short(value: Any, limit: int = 120) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."
