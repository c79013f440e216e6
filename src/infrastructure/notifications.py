"""
Notification sinks
==================

Where dispatched notifications end up.

* ``LoggingNotificationSink`` -- writes each notification to the log.
* ``RedisNotificationSink``   -- LPUSHes a JSON document onto a Redis list
  (``settings.notification_queue_key``) for a delivery worker to consume.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod

import redis.asyncio as aioredis

from src.domain.events import Notification

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    async def emit(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    async def emit(self, notification: Notification) -> None:
        logger.info(
            "Notify user %s [%s]: %s",
            notification.recipient_id,
            notification.type.value,
            notification.message,
        )


class RedisNotificationSink(NotificationSink):
    def __init__(self, client: aioredis.Redis, key: str):
        self.client = client
        self.key = key

    async def emit(self, notification: Notification) -> None:
        await self.client.lpush(self.key, json.dumps(notification.as_dict()))
