"""Notification dispatch for approval and payroll events.

Handlers subscribe to event types (or to everything). Delivery is
synchronous and best effort: a failing handler is logged and the next
one still runs. Events raised inside ``emitter.batch()`` are held until
the block exits cleanly, so a unit of work that rolls back notifies
nobody. The open batch lives in a context variable, so concurrent
requests sharing one emitter never see each other's batch.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable

from payroll_workflow.events.types import NotificationEvent, NotificationEventType

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[NotificationEvent], None]


@dataclass(frozen=True)
class HandlerRegistration:
    handler: NotificationHandler
    event_types: frozenset[NotificationEventType] | None  # None = all events

    def accepts(self, event: NotificationEvent) -> bool:
        return self.event_types is None or event.event_type in self.event_types


class NotificationEmitter:
    """Synchronous notification emitter.

    Usage:
        emitter = NotificationEmitter()
        emitter.on(NotificationEventType.REQUEST_SUBMITTED, send_mail)

        with emitter.batch():
            await engine.approve(request, actor_no)
            await session.commit()
        # Events released when the block exits cleanly
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []
        self._pending: ContextVar[list[NotificationEvent] | None] = ContextVar(
            f"notification_batch_{id(self)}", default=None
        )

    def on(
        self,
        event_type: NotificationEventType | list[NotificationEventType],
        handler: NotificationHandler,
    ) -> None:
        """Register handler for specific event type(s)."""
        types = event_type if isinstance(event_type, list) else [event_type]
        self._handlers.append(HandlerRegistration(handler, frozenset(types)))

    def on_all(self, handler: NotificationHandler) -> None:
        self._handlers.append(HandlerRegistration(handler, None))

    def off(self, handler: NotificationHandler) -> None:
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    @property
    def batching(self) -> bool:
        return self._pending.get() is not None

    def emit(self, event: NotificationEvent) -> list[Exception]:
        """Deliver an event, or queue it while a batch is open.

        Returns the exceptions raised by handlers (always empty when queued).
        """
        pending = self._pending.get()
        if pending is not None:
            pending.append(event)
            return []
        return self._dispatch([event])

    def batch(self) -> EventBatch:
        """Hold events until the context exits, then emit them together."""
        return EventBatch(self)

    def _dispatch(self, events: list[NotificationEvent]) -> list[Exception]:
        errors: list[Exception] = []
        for event in events:
            for reg in self._handlers:
                if not reg.accepts(event):
                    continue
                try:
                    reg.handler(event)
                except Exception as e:
                    logger.exception(
                        "Notification handler %r failed for %s on %s #%s",
                        reg.handler,
                        event.event_type.value,
                        event.request_type,
                        event.request_id,
                    )
                    errors.append(e)
        return errors


class EventBatch:
    """Context manager returned by ``NotificationEmitter.batch``.

    Nested batches hand their events to the enclosing batch instead of
    dispatching them.
    """

    def __init__(self, emitter: NotificationEmitter) -> None:
        self._emitter = emitter
        self._events: list[NotificationEvent] = []
        self._errors: list[Exception] = []
        self._token = None

    def __enter__(self) -> EventBatch:
        self._token = self._emitter._pending.set(self._events)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._emitter._pending.reset(self._token)
        if exc_type is not None:
            logger.debug("Discarding %s notifications after %s", len(self._events), exc_type.__name__)
            return
        outer = self._emitter._pending.get()
        if outer is not None:
            outer.extend(self._events)
        else:
            self._errors = self._emitter._dispatch(self._events)

    @property
    def events(self) -> list[NotificationEvent]:
        return list(self._events)

    @property
    def errors(self) -> list[Exception]:
        """Errors from handler execution (available after context exits)."""
        return self._errors


class RecordingSink:
    """Handler that keeps every event it receives, in order."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def __call__(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: NotificationEventType) -> list[NotificationEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()
