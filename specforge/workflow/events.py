"""Synchronous, best-effort event dispatch for pipeline progress."""

import logging
from collections.abc import Callable

from specforge.config import EventType, PhaseName
from specforge.workflow.run_state import PipelineEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[PipelineEvent], None]


class EventEmitter:
    """Registry of listeners for one pipeline run.

    A listener that raises never aborts the run: the error is logged and
    the remaining listeners still receive the event.
    """

    def __init__(self):
        self._listeners: list[EventListener] = []

    def on_event(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def emit(self, event_type: EventType, phase: PhaseName | None = None, **details) -> PipelineEvent:
        event = PipelineEvent(type=event_type, phase=phase, details=details)
        logger.debug(
            f"Event {event_type.value} (phase={phase.value if phase else '-'}) {dict(details)}"
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:  # Listener errors are isolated from the run
                logger.warning(f"Event listener {listener!r} failed on {event_type.value}: {e}")
        return event
