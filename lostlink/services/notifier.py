import logging
import threading
import time
from typing import Callable, Dict, Protocol

from lostlink import config
from lostlink.models.notification import Notification, NotificationRead

logger = logging.getLogger(__name__)

MATCH_NOTIFICATION_EVENT = "match_notification"


class Publisher(Protocol):
    async def publish(self, room: str, event: str, payload: dict) -> None:
        ...


class RecentDeliveryGuard:
    """Remembers recently forwarded keys for a short cooldown.

    Shared by every request in the process. Losing its contents only risks
    one duplicate live push.
    """

    def __init__(
        self,
        cooldown: float = config.NOTIFICATION_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, float] = {}
        self._last_sweep = clock()

    def now(self) -> float:
        return self._clock()

    def claim(self, key: str) -> bool:
        """True the first time ``key`` is seen within the cooldown."""
        with self._lock:
            now = self._clock()

            if now - self._last_sweep >= self.cooldown:
                self._sweep(now)

            seen_at = self._entries.get(key)
            if seen_at is not None and now - seen_at <= self.cooldown:
                return False

            self._entries[key] = now
            return True

    def release(self, key: str) -> None:
        """Forget ``key`` so the next claim succeeds."""
        with self._lock:
            self._entries.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [key for key, seen_at in self._entries.items() if now - seen_at > self.cooldown]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NotificationEmitter:
    def __init__(self, publisher: Publisher, guard: RecentDeliveryGuard):
        self.publisher = publisher
        self.guard = guard

    def _delivery_key(self, user_id: str, notification: Notification) -> str:
        if notification.id:
            return f"{user_id}_{notification.id}"

        bucket = int(self.guard.now() // self.guard.cooldown)
        return f"{user_id}_{notification.match_id}_{bucket}"

    async def emit(self, user_id: str, notification: Notification) -> bool:
        """Push an already stored notification to the user's live connections.

        Returns False when the push was suppressed as a duplicate or failed.
        """
        key = self._delivery_key(user_id, notification)
        if not self.guard.claim(key):
            logger.debug("Suppressed duplicate notification %s", key)
            return False

        payload = NotificationRead.model_validate(notification).model_dump(mode="json")

        try:
            await self.publisher.publish(user_id, MATCH_NOTIFICATION_EVENT, payload)
        except Exception:
            logger.exception("Emit notification error for user %s", user_id)
            # nothing went out, a retry must not be suppressed
            self.guard.release(key)
            return False

        logger.info("Emitted match notification to user %s", user_id)
        return True
