"""
Effect Dispatcher mapping
=========================

A pure function from a ``DomainEvent`` to the notifications it raises.
No I/O happens here, which keeps the mapping testable without persistence
or a notification backend.

  BOOKING_REQUESTED  -> driver     booking_request
  BOOKING_APPROVED   -> passenger  booking_approved
  BOOKING_REJECTED   -> passenger  booking_rejected
  BOOKING_CANCELLED  -> counterparty of the actor (both parties for admins)
  RIDE_UPDATED       -> passenger  system_notification
  RIDE_STARTED       -> passenger  ride_started
  RIDE_COMPLETED     -> passenger  ride_completed
  RATING_SUBMITTED   -> ratee      new_rating
"""

from __future__ import annotations

from .enums import EventKind, NotificationType, ResourceType
from .events import DomainEvent, Notification


def notifications_for(event: DomainEvent) -> list[Notification]:
    builder = _BUILDERS.get(event.kind)
    if builder is None:
        return []
    return builder(event)


def _booking_requested(event: DomainEvent) -> list[Notification]:
    route = ""
    if event.source_address and event.destination_address:
        route = f" from {event.source_address} to {event.destination_address}"
    return [
        Notification(
            recipient_id=event.driver_id,
            sender_id=event.actor_id,
            type=NotificationType.BOOKING_REQUEST,
            title="New Booking Request",
            message=f"You have a new booking request for your ride{route}",
            resource_type=ResourceType.BOOKING,
            resource_id=event.booking_id,
        )
    ]


def _booking_approved(event: DomainEvent) -> list[Notification]:
    return [
        Notification(
            recipient_id=event.passenger_id,
            sender_id=event.actor_id,
            type=NotificationType.BOOKING_APPROVED,
            title="Booking Approved",
            message="Your booking request has been approved by the driver.",
            resource_type=ResourceType.BOOKING,
            resource_id=event.booking_id,
        )
    ]


def _booking_rejected(event: DomainEvent) -> list[Notification]:
    if event.reason:
        message = f"Your booking request has been rejected. Reason: {event.reason}"
    else:
        message = "Your booking request has been rejected by the driver."
    return [
        Notification(
            recipient_id=event.passenger_id,
            sender_id=event.actor_id,
            type=NotificationType.BOOKING_REJECTED,
            title="Booking Rejected",
            message=message,
            resource_type=ResourceType.BOOKING,
            resource_id=event.booking_id,
        )
    ]


def _booking_cancelled(event: DomainEvent) -> list[Notification]:
    if event.actor_id == event.passenger_id:
        recipients = [(event.driver_id, "passenger")]
    elif event.actor_id == event.driver_id:
        recipients = [(event.passenger_id, "driver")]
    else:
        recipients = [(event.passenger_id, "admin"), (event.driver_id, "admin")]

    return [
        Notification(
            recipient_id=recipient,
            sender_id=event.actor_id,
            type=NotificationType.BOOKING_CANCELLED,
            title="Booking Cancelled",
            message=f"Booking has been cancelled by the {role}. Reason: {event.reason}",
            resource_type=ResourceType.BOOKING,
            resource_id=event.booking_id,
        )
        for recipient, role in recipients
    ]


def _ride_updated(event: DomainEvent) -> list[Notification]:
    return [
        Notification(
            recipient_id=event.passenger_id,
            sender_id=event.actor_id,
            type=NotificationType.SYSTEM_NOTIFICATION,
            title="Ride Details Updated",
            message="The details of a ride you are booked on have been updated.",
            resource_type=ResourceType.RIDE,
            resource_id=event.ride_id,
        )
    ]


def _ride_started(event: DomainEvent) -> list[Notification]:
    return [
        Notification(
            recipient_id=event.passenger_id,
            sender_id=event.actor_id,
            type=NotificationType.RIDE_STARTED,
            title="Ride Started",
            message="Your ride has started. The driver is on the way.",
            resource_type=ResourceType.RIDE,
            resource_id=event.ride_id,
        )
    ]


def _ride_completed(event: DomainEvent) -> list[Notification]:
    return [
        Notification(
            recipient_id=event.passenger_id,
            sender_id=event.actor_id,
            type=NotificationType.RIDE_COMPLETED,
            title="Ride Completed",
            message="Your ride has been completed. Please rate your experience.",
            resource_type=ResourceType.BOOKING,
            resource_id=event.booking_id,
        )
    ]


def _rating_submitted(event: DomainEvent) -> list[Notification]:
    rater_role = "passenger" if event.is_passenger_rating else "driver"
    return [
        Notification(
            recipient_id=event.ratee_id,
            sender_id=event.actor_id,
            type=NotificationType.NEW_RATING,
            title="New Rating Received",
            message=f"You received a {event.score}-star rating from your {rater_role}.",
            resource_type=ResourceType.RATING,
            resource_id=event.rating_id,
        )
    ]


_BUILDERS = {
    EventKind.BOOKING_REQUESTED: _booking_requested,
    EventKind.BOOKING_APPROVED: _booking_approved,
    EventKind.BOOKING_REJECTED: _booking_rejected,
    EventKind.BOOKING_CANCELLED: _booking_cancelled,
    EventKind.RIDE_UPDATED: _ride_updated,
    EventKind.RIDE_STARTED: _ride_started,
    EventKind.RIDE_COMPLETED: _ride_completed,
    EventKind.RATING_SUBMITTED: _rating_submitted,
}
