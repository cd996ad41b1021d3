"""Workflow notification events."""

from payroll_workflow.events.emitter import EventBatch, NotificationEmitter, RecordingSink
from payroll_workflow.events.types import NotificationEvent, NotificationEventType

__all__ = [
    "EventBatch",
    "NotificationEmitter",
    "NotificationEvent",
    "NotificationEventType",
    "RecordingSink",
]
