"""
Domain events returned by lifecycle transitions.

Services never perform side effects beyond their own entities; they return
a list of ``DomainEvent`` and the caller hands it to the effect dispatcher
once the transaction has committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import EventKind, NotificationType, ResourceType


@dataclass(frozen=True)
class DomainEvent:
    kind: EventKind
    actor_id: int
    ride_id: int
    booking_id: Optional[int] = None
    rating_id: Optional[int] = None
    passenger_id: Optional[int] = None
    driver_id: Optional[int] = None
    ratee_id: Optional[int] = None
    reason: Optional[str] = None
    score: Optional[int] = None
    is_passenger_rating: Optional[bool] = None
    source_address: Optional[str] = None
    destination_address: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    recipient_id: int
    type: NotificationType
    title: str
    message: str
    resource_type: Optional[ResourceType] = None
    resource_id: Optional[int] = None
    sender_id: Optional[int] = None

    def as_dict(self) -> dict:
        return {
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "related_resource": (
                {"type": self.resource_type.value, "id": self.resource_id}
                if self.resource_type is not None
                else None
            ),
        }
