from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .capabilities import NotificationEvent, NotificationEventKind, NotificationListener

logger = logging.getLogger(__name__)


@dataclass
class PendingNotification:
    identifier: str
    when: datetime
    payload: Dict[str, Any]
    title: str
    body: str
    timer: Optional[asyncio.TimerHandle] = None


class LocalNotificationCenter:
    """In-process timed notifications driven by the running event loop.

    Pending notifications live only as long as the process, like local
    notifications cleared by ``cancel_all`` on the mobile platforms.
    """

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now().astimezone()):
        self._clock = clock
        self._pending: Dict[str, PendingNotification] = {}
        self._listeners: List[NotificationListener] = []
        self._delivered: Dict[str, str] = {}

    @property
    def pending(self) -> List[PendingNotification]:
        return sorted(self._pending.values(), key=lambda n: n.when)

    async def schedule_at(
        self,
        when: datetime,
        payload: Dict[str, Any],
        title: str = "Alarm",
        body: str = "",
    ) -> str:
        if "alarm_id" not in payload:
            raise ValueError("Notification payload requires alarm_id")
        loop = asyncio.get_running_loop()
        identifier = uuid.uuid4().hex
        delay = max(0.0, (when - self._clock()).total_seconds())
        notification = PendingNotification(identifier, when, dict(payload), title, body)
        notification.timer = loop.call_later(delay, self._fire, identifier)
        self._pending[identifier] = notification
        logger.debug("Notification %s due in %.1fs (%s)", identifier, delay, title)
        return identifier

    async def cancel(self, identifier: str) -> None:
        notification = self._pending.pop(identifier, None)
        if notification is None:
            logger.debug("Notification %s already gone", identifier)
            return
        if notification.timer:
            notification.timer.cancel()

    async def cancel_all(self) -> None:
        for notification in self._pending.values():
            if notification.timer:
                notification.timer.cancel()
        count = len(self._pending)
        self._pending.clear()
        logger.info("Cancelled %s pending notifications", count)

    def add_listener(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def tap(self, alarm_id: str) -> bool:
        """Deliver a "tapped" event for the last notification delivered for ``alarm_id``."""
        identifier = self._delivered.get(alarm_id)
        if identifier is None:
            logger.warning("No delivered notification to tap for alarm %s", alarm_id)
            return False
        self._emit(NotificationEvent(NotificationEventKind.TAPPED, alarm_id, identifier))
        return True

    def _fire(self, identifier: str) -> None:
        notification = self._pending.pop(identifier, None)
        if notification is None:
            return
        alarm_id = str(notification.payload["alarm_id"])
        self._delivered[alarm_id] = identifier
        logger.info("Notification fired: %s (%s)", notification.title, identifier)
        self._emit(NotificationEvent(NotificationEventKind.FIRED, alarm_id, identifier))

    def _emit(self, event: NotificationEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - callback safety
                logger.error("Notification listener failed", exc_info=True)
