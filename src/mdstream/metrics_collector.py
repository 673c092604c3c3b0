"""
Thread-safe metrics collection for pipeline runs.

``MetricsCollector`` is a pipeline event listener: register it with a
``PipelineEventManager`` and it counts runs and documents and keeps per
document timing data.
"""

import threading
from collections import defaultdict
from typing import Any, DefaultDict, Dict, List

from mdstream.events import PipelineEvent, PipelineEventType


class MetricsCollector:
    """
    Aggregates statistics over all pipeline runs served by a process.

    Thread Safety:
    --------------
    All methods are thread-safe and can be called concurrently from multiple
    threads without data corruption.
    """

    def __init__(self):
        self._runs_started = 0
        self._runs_completed = 0
        self._runs_aborted = 0
        self._documents_rendered = 0
        self._documents_failed = 0
        self._render_times: List[float] = []
        self._events_per_type: DefaultDict[str, int] = defaultdict(int)
        self._duration_histogram: DefaultDict[str, int] = defaultdict(int)
        self._metrics_lock = threading.Lock()

    def on_pipeline_event(self, event: PipelineEvent) -> None:
        """Update counters from a pipeline event."""
        with self._metrics_lock:
            self._events_per_type[event.event_type.value] += 1

            if event.event_type == PipelineEventType.RUN_STARTED:
                self._runs_started += 1
            elif event.event_type == PipelineEventType.RUN_COMPLETED:
                self._runs_completed += 1
            elif event.event_type == PipelineEventType.RUN_ABORTED:
                self._runs_aborted += 1
            elif event.event_type == PipelineEventType.DOCUMENT_RENDERED:
                self._documents_rendered += 1
                if event.duration is not None:
                    self._render_times.append(event.duration)
                    self._duration_histogram[self._get_duration_bucket(event.duration)] += 1
            elif event.event_type == PipelineEventType.DOCUMENT_FAILED:
                self._documents_failed += 1

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get current metrics.

        Returns:
            Dictionary containing counters and calculated statistics
        """
        with self._metrics_lock:
            processed = self._documents_rendered + self._documents_failed
            if processed > 0:
                success_rate = self._documents_rendered / processed
            else:
                success_rate = 0.0

            if self._render_times:
                avg_document_time = sum(self._render_times) / len(self._render_times)
            else:
                avg_document_time = 0.0

            return {
                "runs_started": self._runs_started,
                "runs_completed": self._runs_completed,
                "runs_aborted": self._runs_aborted,
                "runs_in_progress": self._runs_started
                - self._runs_completed
                - self._runs_aborted,
                "documents_rendered": self._documents_rendered,
                "documents_failed": self._documents_failed,
                "success_rate": success_rate,
                "avg_document_time": avg_document_time,
                "events_per_type": dict(self._events_per_type),
                "document_duration_histogram": dict(self._duration_histogram),
            }

    def reset_metrics(self) -> None:
        """Reset all metrics to initial state."""
        with self._metrics_lock:
            self._runs_started = 0
            self._runs_completed = 0
            self._runs_aborted = 0
            self._documents_rendered = 0
            self._documents_failed = 0
            self._render_times.clear()
            self._events_per_type.clear()
            self._duration_histogram.clear()

    @staticmethod
    def _get_duration_bucket(duration: float) -> str:
        if duration < 0.01:
            return "< 10ms"
        elif duration < 0.05:
            return "10-50ms"
        elif duration < 0.1:
            return "50-100ms"
        elif duration < 0.5:
            return "100-500ms"
        elif duration < 1.0:
            return "500ms-1s"
        else:
            return "> 1s"
