"""
Effect Dispatcher
=================

Turns committed domain events into notifications and hands them to a sink.
Delivery is best-effort: a sink failure is logged and the remaining
notifications are still attempted.  Nothing here touches the database, so
a failed notification can never undo a committed transition.
"""

from __future__ import annotations

import logging
from typing import Iterable

from src.domain.effects import notifications_for
from src.domain.events import DomainEvent
from src.infrastructure.notifications import NotificationSink

logger = logging.getLogger(__name__)


class EffectDispatcher:
    def __init__(self, sink: NotificationSink):
        self.sink = sink

    async def dispatch(self, events: Iterable[DomainEvent]) -> int:
        """Emit every notification for *events*; return how many succeeded."""
        delivered = 0
        for event in events:
            for notification in notifications_for(event):
                try:
                    await self.sink.emit(notification)
                except Exception:
                    logger.exception(
                        "Failed to deliver %s notification to user %s (event %s)",
                        notification.type.value,
                        notification.recipient_id,
                        event.kind.value,
                    )
                    continue
                delivered += 1
        return delivered
