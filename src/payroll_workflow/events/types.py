"""Notification events raised on workflow and payroll transitions.

Events are immutable records. Delivery (email, push, in-app) belongs to
whoever registers a handler on the emitter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class NotificationEventType(str, Enum):
    """Event types emitted by the core."""

    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    REQUEST_ADVANCED = "REQUEST_ADVANCED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    PAYROLL_CALCULATED = "PAYROLL_CALCULATED"
    PAYROLL_RECALCULATED = "PAYROLL_RECALCULATED"
    LOAN_INSTALLMENT_PAID = "LOAN_INSTALLMENT_PAID"
    LOAN_FULLY_PAID = "LOAN_FULLY_PAID"


@dataclass(frozen=True)
class NotificationEvent:
    """A single notification record."""

    event_type: NotificationEventType
    request_type: str
    request_id: int
    recipient_no: int | None
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type.value,
            "request_type": self.request_type,
            "request_id": self.request_id,
            "recipient_no": self.recipient_no,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }
