"""
Error Reporter

Best-effort steps (status sync, competitor cleanup, conversation creation,
notification dispatch) do not abort the workflow when they fail. This hook
records those failures so they are observable beyond the log line.
"""
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from pydantic import BaseModel, Field

from bountyexpo.shared.modules.log.logger import get_logger


class ReportedError(BaseModel):
    step: str
    error_type: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


class ErrorReporter:
    def __init__(self, max_events: int = 500, logger=None):
        self.logger = logger or get_logger("ErrorReporter")
        self._events: Deque[ReportedError] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def report(self, step: str, error: BaseException, **context) -> ReportedError:
        event = ReportedError(
            step=step,
            error_type=type(error).__name__,
            message=str(error),
            context={k: str(v) for k, v in context.items()},
        )
        with self._lock:
            self._events.append(event)
        self.logger.error(f"{step} failed: {event.error_type}: {event.message} {event.context}")
        return event

    @property
    def events(self) -> List[ReportedError]:
        with self._lock:
            return list(self._events)

    def events_for(self, step: str) -> List[ReportedError]:
        return [e for e in self.events if e.step == step]

    def last(self) -> Optional[ReportedError]:
        with self._lock:
            return self._events[-1] if self._events else None

    def clear(self):
        with self._lock:
            self._events.clear()
