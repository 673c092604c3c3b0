"""
Pipeline lifecycle events for monitoring.

Events report what a run has done; they never drive it. Listeners are called
synchronously, in registration order, and a failing listener cannot disturb
the run or the other listeners.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from mdstream.app_logger import AppLogger, LogContext, get_default_logger


class PipelineEventType(Enum):
    """Pipeline lifecycle event types."""

    RUN_STARTED = "run_started"
    DOCUMENT_STARTED = "document_started"
    DOCUMENT_RENDERED = "document_rendered"
    DOCUMENT_FAILED = "document_failed"
    RUN_COMPLETED = "run_completed"
    RUN_ABORTED = "run_aborted"


@dataclass(frozen=True)
class PipelineEvent:
    """A single lifecycle event of one pipeline run."""

    event_type: PipelineEventType
    run_id: str
    timestamp: float = field(default_factory=time.time)
    document: Optional[str] = None
    index: Optional[int] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class PipelineEventListener(Protocol):
    """Protocol for pipeline event listeners."""

    def on_pipeline_event(self, event: PipelineEvent) -> None:
        """Handle a pipeline event."""
        ...


class PipelineEventManager:
    """Registers listeners and dispatches pipeline events to them."""

    def __init__(self, logger: Optional[AppLogger] = None):
        self._listeners: List[PipelineEventListener] = []
        self._lock = threading.Lock()
        self._logger = logger or get_default_logger()
        self._context = LogContext(component="PipelineEventManager", operation="emit")

    def add_listener(self, listener: PipelineEventListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: PipelineEventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def get_listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def emit(self, event: PipelineEvent) -> None:
        """Dispatch an event to every listener with error isolation."""
        with self._lock:
            listeners = self._listeners.copy()

        for listener in listeners:
            try:
                listener.on_pipeline_event(event)
            except Exception as e:
                self._logger.error(
                    f"Error in event listener {listener.__class__.__name__}: {e}",
                    context=self._context,
                    exc_info=True,
                    event_type=event.event_type.value,
                )
