"""Progress/log channel and the reporter the active stage writes through."""

import queue
import threading
from datetime import datetime
from typing import Any, Optional

from app.models.schemas import ErrorInfo, LogEntry, LogLevel, PipelineState, PipelineStep, ProgressEvent

_LOGURU_LEVELS = {
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
    LogLevel.ERROR: "ERROR",
    LogLevel.SUCCESS: "SUCCESS",
}


class ProgressChannel:
    """Observer interface for progress events. The pipeline only ever publishes."""

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event without blocking the caller."""


class NullProgressChannel(ProgressChannel):
    """Channel for runs nobody is watching."""


class QueueProgressChannel(ProgressChannel):
    """
    Bounded in-memory channel.

    Publishing never blocks: when the queue is full the new event is dropped
    and counted. Consumers poll with :meth:`drain`.
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: ProgressEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1

    def drain(self, limit: Optional[int] = None) -> list[ProgressEvent]:
        """Remove and return up to ``limit`` pending events (all when omitted)."""
        events = []
        while limit is None or len(events) < limit:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return events


class ProgressReporter:
    """
    Single write path into ``PipelineState``.

    The orchestrator hands this to the active stage. Every log line goes to
    loguru, the state's log list and the progress channel. Reads from other
    threads go through :meth:`snapshot`.
    """

    def __init__(
        self,
        state: Optional[PipelineState] = None,
        channel: Optional[ProgressChannel] = None,
        logger: Any = None,
    ):
        self._state = state or PipelineState()
        self.channel = channel or NullProgressChannel()
        self.logger = logger
        self._lock = threading.Lock()

    def snapshot(self) -> PipelineState:
        with self._lock:
            return self._state.model_copy(deep=True)

    @property
    def current_step(self) -> PipelineStep:
        with self._lock:
            return self._state.current_step

    def transition(self, step: PipelineStep) -> None:
        with self._lock:
            self._state.current_step = step
            if step == PipelineStep.SCRIPT and self._state.start_time is None:
                self._state.start_time = datetime.now()
            if step.is_terminal:
                self._state.end_time = datetime.now()
        self.channel.publish(ProgressEvent(step=step, message=f"step: {step.value}"))

    def progress(self, step: PipelineStep, percent: float, message: str = "") -> None:
        """Record progress (clamped to 0..100) for ``step``."""
        value = int(round(min(100.0, max(0.0, percent))))
        with self._lock:
            self._state.progress[step] = value
        self.channel.publish(ProgressEvent(step=step, percent=value, message=message))

    def log(self, step: PipelineStep, message: str, level: LogLevel = LogLevel.INFO) -> None:
        entry = LogEntry(level=level, message=message, step=step)
        with self._lock:
            self._state.logs.append(entry)
        if self.logger is not None:
            self.logger.log(_LOGURU_LEVELS[level], message)
        self.channel.publish(ProgressEvent(timestamp=entry.timestamp, level=level, message=message, step=step))

    def info(self, step: PipelineStep, message: str) -> None:
        self.log(step, message, LogLevel.INFO)

    def warning(self, step: PipelineStep, message: str) -> None:
        self.log(step, message, LogLevel.WARNING)

    def error(self, step: PipelineStep, message: str) -> None:
        self.log(step, message, LogLevel.ERROR)

    def success(self, step: PipelineStep, message: str) -> None:
        self.log(step, message, LogLevel.SUCCESS)

    def fail(self, error_info: ErrorInfo) -> None:
        with self._lock:
            self._state.error = error_info
